"""Email verification via Resend API."""

import asyncio
import logging
import secrets
from datetime import timedelta

import resend
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from lander.config import get_settings
from lander.models.email_verification import EmailVerification
from lander.models.user import User
from lander.utils import as_utc, now_utc

logger = logging.getLogger(__name__)


async def send_email(to_email: str, subject: str, html_body: str) -> bool:
    """Send an email via Resend.

    Returns True on success, False on failure.
    """
    settings = get_settings()
    if not settings.resend_api_key:
        logger.warning("Resend API key not configured — skipping email")
        return False

    try:
        await asyncio.to_thread(
            resend.Emails.send,
            {
                "from": settings.email_from,
                "to": [to_email],
                "subject": subject,
                "html": html_body,
            },
        )
        logger.info("Email sent to %s", to_email)
        return True
    except Exception as e:
        logger.error("Failed to send email to %s: %s", to_email, e)
        return False


async def create_verification(db: AsyncSession, user: User) -> EmailVerification:
    """Replace any outstanding token for ``user`` with a fresh one."""
    settings = get_settings()
    await db.execute(delete(EmailVerification).where(EmailVerification.user_id == user.id))
    record = EmailVerification(
        token=secrets.token_urlsafe(32),
        user_id=user.id,
        expires_at=now_utc() + timedelta(hours=settings.email_verification_ttl_hours),
    )
    db.add(record)
    await db.commit()
    return record


async def send_verification_email(db: AsyncSession, user: User) -> bool:
    settings = get_settings()
    record = await create_verification(db, user)
    link = f"{settings.app_url}/api/auth/verify-email?token={record.token}"
    html = (
        f"<p>Hi{' ' + user.name if user.name else ''}!</p>"
        f'<p>Confirm your email for {settings.app_name}: <a href="{link}">{link}</a></p>'
        f"<p>The link is valid for {settings.email_verification_ttl_hours} hours.</p>"
    )
    return await send_email(user.email, f"Confirm your email — {settings.app_name}", html)


async def confirm_email(db: AsyncSession, token: str) -> bool:
    """Mark the token's user as verified. Returns False for unknown or expired tokens."""
    result = await db.execute(select(EmailVerification).where(EmailVerification.token == token))
    record = result.scalar_one_or_none()
    if not record or as_utc(record.expires_at) < now_utc():
        return False

    user = await db.get(User, record.user_id)
    if user:
        user.email_verified = True
    await db.delete(record)
    await db.commit()
    return user is not None
