"""Delivery adapters."""

from kindle_digest.adapters.notifications.resend_sender import ResendEmailSender, parse_recipients

__all__ = ["ResendEmailSender", "parse_recipients"]
