"""Outgoing email over SMTP."""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from famconomy.api.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _deliver(settings: Settings, message: EmailMessage) -> None:
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15) as server:
        server.starttls()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(message)


async def send_email(
    to_email: str,
    subject: str,
    html: str,
    text: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> bool:
    """
    Send an email; skipped with a warning when SMTP is not configured.

    Returns:
        bool: True when the message was handed to the SMTP server
    """
    settings = settings or get_settings()

    if not settings.SMTP_HOST:
        logger.warning(f"SMTP not configured, skipping email to {to_email}: {subject}")
        return False

    message = EmailMessage()
    message["From"] = settings.SMTP_FROM
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text or subject)
    message.add_alternative(html, subtype="html")

    try:
        await asyncio.to_thread(_deliver, settings, message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False

    logger.info(f"Email sent to {to_email}: {subject}")
    return True


def invitation_link(token: str, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return f"{settings.FRONTEND_URL.rstrip('/')}/join?token={token}"


async def send_invitation_email(
    to_email: str,
    family_name: str,
    inviter_name: str,
    token: str,
    settings: Optional[Settings] = None,
) -> bool:
    """Email the join link for an invitation."""
    settings = settings or get_settings()
    link = invitation_link(token, settings)
    subject = f"You're invited to join the {family_name} family on FamConomy"
    html = f"""
    <html>
    <body>
        <h2>Family Invitation</h2>
        <p>{inviter_name} invited you to join the {family_name} family on FamConomy.</p>
        <p><a href="{link}">Accept the invitation</a></p>
        <p>This link expires in {settings.INVITATION_EXPIRE_DAYS} days.</p>
    </body>
    </html>
    """
    text = f"{inviter_name} invited you to join the {family_name} family on FamConomy: {link}"
    return await send_email(to_email, subject, html, text=text, settings=settings)
