"""
Transactional email for queue sign-in codes, delivered through Resend.

Without a RESEND_API_KEY the message is logged instead of sent, which is
what local development and the test suite rely on.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import resend

from pp_app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def _code_html(code: str, minutes: int) -> str:
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Your PeerPlates queue code</h2>
        <p>Use this code to check your place in the queue:</p>
        <p style="font-size: 28px; font-weight: bold; letter-spacing: 4px;">{code}</p>
        <p>It expires in {minutes} minutes. If you didn't ask for it, ignore this email.</p>
    </body>
    </html>
    """


async def send_queue_code(to_email: str, code: str) -> EmailResult:
    subject = "Your PeerPlates queue code"
    if not settings.resend_api_key:
        logger.info("[DEMO EMAIL] queue code for %s: %s", to_email, code)
        return EmailResult(success=True, message_id="demo")

    resend.api_key = settings.resend_api_key
    params: resend.Emails.SendParams = {
        "from": settings.email_from,
        "to": [to_email],
        "subject": subject,
        "html": _code_html(code, settings.otp_ttl_minutes),
    }
    try:
        response = await asyncio.to_thread(resend.Emails.send, params)
    except Exception as e:
        logger.exception("resend delivery failed for %s", to_email)
        return EmailResult(success=False, error=str(e))
    return EmailResult(success=True, message_id=response.get("id"))
