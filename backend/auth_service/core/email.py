"""Email sending via Resend API.

Simple HTTP POST to Resend for one-time verification code emails.
Plain-text format.
"""

import logging

import httpx

from auth_service.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


async def send_verification_code_email(
    *, to_email: str, code: str, ttl_minutes: int
) -> None:
    """Send a one-time verification code via Resend.

    Delivery failures are logged and not raised: the challenge is already
    stored, and the user can ask for a new code.

    Args:
        to_email: Recipient email address (normalized identifier).
        code: Plain one-time code.
        ttl_minutes: Code lifetime, quoted in the email body.
    """
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {settings.resend_api_key.get_secret_value()}",
                },
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": "Your verification code",
                    "text": (
                        f"Your verification code is {code}\n\n"
                        f"It expires in {ttl_minutes} minutes. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError:
        logger.warning("Failed to send verification code email", exc_info=True)
