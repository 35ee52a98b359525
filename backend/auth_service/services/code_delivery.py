"""Delivery channel for one-time verification codes.

The engine hands every issued code to a CodeSender. Production uses
EmailCodeSender (Resend); development without a RESEND_API_KEY uses
LogCodeSender, which only records that a code was issued.
"""

import logging
from typing import Protocol

from auth_service.core.config import Settings
from auth_service.core.email import send_verification_code_email

logger = logging.getLogger(__name__)


class CodeSender(Protocol):
    """Delivers a one-time code to the account holder."""

    async def send(self, *, identifier: str, code: str) -> None:
        """Deliver ``code`` to ``identifier``."""
        ...


class EmailCodeSender:
    """Sends codes by email through the Resend API."""

    def __init__(self, *, ttl_minutes: int) -> None:
        self._ttl_minutes = ttl_minutes

    async def send(self, *, identifier: str, code: str) -> None:
        await send_verification_code_email(
            to_email=identifier, code=code, ttl_minutes=self._ttl_minutes
        )


class LogCodeSender:
    """Development sender: logs the issuance, never the code itself."""

    async def send(self, *, identifier: str, code: str) -> None:  # noqa: ARG002
        logger.info("Verification code issued for %s (email delivery disabled)", identifier)


def code_sender_from_settings(settings: Settings) -> CodeSender:
    """Pick the delivery channel for this deployment."""
    if settings.resend_api_key.get_secret_value():
        return EmailCodeSender(ttl_minutes=settings.otp_ttl_minutes)
    return LogCodeSender()
