import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid

from app.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


def render_otp_email(otp_code: str, expiration_minutes: int) -> tuple[str, str, str]:
    """Return (subject, text, html) for a verification code email."""
    subject = "Your Huntier verification code"
    text = (
        f"Your Huntier verification code is: {otp_code}\n\n"
        f"This code will expire in {expiration_minutes} minutes.\n"
        "Never share this code with anyone. If you didn't request it, ignore this email."
    )
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #2563eb;">Huntier</h2>
      <p>Your verification code is:</p>
      <div style="font-size: 32px; font-weight: bold; letter-spacing: 4px;">{otp_code}</div>
      <p>This code will expire in <strong>{expiration_minutes} minutes</strong>.</p>
      <p style="color: #666; font-size: 14px;">
        Never share this code with anyone. If you didn't request it, ignore this email.
      </p>
    </div>
    """
    return subject, text, html


def send_email(to_email: str, subject: str, text: str, html: str | None = None) -> str | None:
    """
    Send through SMTP when configured. Without SMTP_HOST the message is
    printed to the log for development and None is returned.
    Returns the Message-ID header on success; raises EmailDeliveryError.
    """
    if not settings.SMTP_HOST:
        logger.info("=" * 60)
        logger.info(f"[EMAIL]  To      : {to_email}")
        logger.info(f"[EMAIL]  Subject : {subject}")
        logger.info(f"[EMAIL]  Body    : {text}")
        logger.info("=" * 60)
        return None

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to_email
    msg["Message-ID"] = make_msgid(domain="huntier")
    msg.set_content(text)
    if html:
        msg.add_alternative(html, subtype="html")

    try:
        ctx = ssl.create_default_context()
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT,
                          timeout=settings.DELIVERY_TIMEOUT_SECONDS) as server:
            server.starttls(context=ctx)
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise EmailDeliveryError(str(e)) from e

    return msg.get("Message-ID")
