"""Email delivery through the Resend API."""

import base64
import logging
from typing import Optional

import httpx

from kindle_digest.core import DeliveryError, DeliveryService, EpubAttachment

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


def parse_recipients(value: Optional[str]) -> list[str]:
    """Split a comma-separated recipient list."""
    if not value:
        return []
    return [address.strip() for address in value.split(",") if address.strip()]


class ResendEmailSender(DeliveryService):
    """Send digest EPUBs as email attachments via Resend."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        recipients: list[str],
        api_url: str = RESEND_API_URL,
        timeout: float = 60.0,
    ) -> None:
        """Initialize the sender.

        Args:
            api_key: Resend API key
            sender: From address
            recipients: Kindle addresses to deliver to
            api_url: Resend emails endpoint
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.sender = sender
        self.recipients = recipients
        self.api_url = api_url
        self.timeout = timeout

    def _build_payload(self, attachments: list[EpubAttachment], subject: str, text: str) -> dict:
        return {
            "from": self.sender,
            "to": self.recipients,
            "subject": subject,
            "text": text,
            "attachments": [
                {
                    "filename": attachment.filename,
                    "content": base64.b64encode(attachment.content).decode("ascii"),
                }
                for attachment in attachments
            ],
        }

    async def send(self, attachments: list[EpubAttachment], subject: str, text: str) -> str:
        """Send the email and return the Resend message id.

        Raises:
            DeliveryError: If configuration is missing or Resend rejects the request
        """
        if not self.api_key:
            raise DeliveryError("RESEND_API_KEY is not configured")
        if not self.sender:
            raise DeliveryError("Sender address is not configured")
        if not self.recipients:
            raise DeliveryError("No recipients configured")

        payload = self._build_payload(attachments, subject, text)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise DeliveryError(
                    f"Failed to send email: {e.response.status_code} {e.response.text}"
                ) from e
            except httpx.HTTPError as e:
                raise DeliveryError(f"Failed to send email: {e}") from e

        message_id = response.json().get("id", "")
        logger.info(
            "Sent %d attachment(s) to %s (id=%s)",
            len(attachments), ", ".join(self.recipients), message_id,
        )
        return message_id
