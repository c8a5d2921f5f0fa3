"""Outbound email.

Emails are logged rather than delivered; no mail provider is wired in.
"""

from __future__ import annotations

from typing import Any

from app.logging_config import get_logger

logger = get_logger(__name__)


async def send_email(
    recipient: str, subject: str, template: str, context: dict[str, Any] | None = None
) -> None:
    """Log an email that would be sent."""
    # Only the recipient's domain is logged
    logger.info(
        "email_queued",
        subject=subject,
        template=template,
        context_keys=sorted((context or {}).keys()),
        recipient_domain=recipient.rsplit("@", 1)[-1] if "@" in recipient else "",
    )
