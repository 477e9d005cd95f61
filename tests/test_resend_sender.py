"""Tests for Resend email delivery."""

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from kindle_digest.adapters.notifications import ResendEmailSender, parse_recipients
from kindle_digest.core import DeliveryError, EpubAttachment


@pytest.fixture
def sender() -> ResendEmailSender:
    return ResendEmailSender(
        api_key="re_test",
        sender="digest@example.com",
        recipients=["reader@kindle.com"],
    )


def attachments() -> list[EpubAttachment]:
    return [
        EpubAttachment(filename="kindle-digest-summary-2024-01-15.epub", content=b"summary"),
        EpubAttachment(filename="kindle-digest-full-2024-01-15.epub", content=b"full"),
    ]


def test_parse_recipients() -> None:
    """Test comma-separated recipient lists."""
    assert parse_recipients("a@kindle.com, b@kindle.com,") == ["a@kindle.com", "b@kindle.com"]
    assert parse_recipients(None) == []


@pytest.mark.asyncio
async def test_send_posts_payload(sender: ResendEmailSender) -> None:
    """Test the email payload carries base64 attachments."""
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock()
        mock_response.json.return_value = {"id": "msg_123"}

        mock_client = AsyncMock()
        mock_client.__aenter__.return_value = mock_client
        mock_client.post.return_value = mock_response
        mock_client_class.return_value = mock_client

        message_id = await sender.send(attachments(), "Kindle Digest - Monday", "Attached.")

        assert message_id == "msg_123"
        mock_client.post.assert_called_once()
        call_args = mock_client.post.call_args
        assert call_args.args[0] == "https://api.resend.com/emails"
        assert call_args.kwargs["headers"]["Authorization"] == "Bearer re_test"

        payload = call_args.kwargs["json"]
        assert payload["from"] == "digest@example.com"
        assert payload["to"] == ["reader@kindle.com"]
        assert payload["subject"] == "Kindle Digest - Monday"
        assert payload["text"] == "Attached."
        assert [a["filename"] for a in payload["attachments"]] == [
            "kindle-digest-summary-2024-01-15.epub",
            "kindle-digest-full-2024-01-15.epub",
        ]
        assert base64.b64decode(payload["attachments"][1]["content"]) == b"full"


@pytest.mark.asyncio
async def test_send_http_error_raises(sender: ResendEmailSender) -> None:
    """Test rejected requests raise DeliveryError."""
    with patch("httpx.AsyncClient") as mock_client_class:
        error_response = MagicMock()
        error_response.status_code = 422
        error_response.text = "invalid from address"

        mock_response = MagicMock()
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "422", request=MagicMock(), response=error_response
        )

        mock_client = AsyncMock()
        mock_client.__aenter__.return_value = mock_client
        mock_client.post.return_value = mock_response
        mock_client_class.return_value = mock_client

        with pytest.raises(DeliveryError, match="422"):
            await sender.send(attachments(), "subject", "text")


@pytest.mark.asyncio
async def test_send_network_error_raises(sender: ResendEmailSender) -> None:
    """Test network failures raise DeliveryError."""
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = AsyncMock()
        mock_client.__aenter__.return_value = mock_client
        mock_client.post.side_effect = httpx.ConnectError("unreachable")
        mock_client_class.return_value = mock_client

        with pytest.raises(DeliveryError):
            await sender.send(attachments(), "subject", "text")


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"api_key": ""},
    {"sender": ""},
    {"recipients": []},
])
async def test_send_requires_configuration(kwargs: dict) -> None:
    """Test missing configuration raises without sending."""
    config = {"api_key": "re_test", "sender": "digest@example.com", "recipients": ["reader@kindle.com"]}
    config.update(kwargs)

    with patch("httpx.AsyncClient") as mock_client_class:
        with pytest.raises(DeliveryError):
            await ResendEmailSender(**config).send(attachments(), "subject", "text")

        mock_client_class.assert_not_called()
