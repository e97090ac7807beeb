import logging

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class SmsDeliveryError(Exception):
    pass


def format_otp_sms(otp_code: str, expiration_minutes: int) -> str:
    return (
        f"Your Huntier verification code is: {otp_code}. "
        f"This code will expire in {expiration_minutes} minutes. Do not share this code with anyone."
    )


def send_sms(phone: str, message: str) -> str | None:
    """
    POST the message to the configured HTTP SMS gateway.
    Without SMS_PROVIDER_URL the message is printed to the log (development).
    Returns the provider's message id when it reports one.
    """
    if not settings.SMS_PROVIDER_URL:
        logger.info("=" * 60)
        logger.info(f"[SMS]  To      : {phone}")
        logger.info(f"[SMS]  Message : {message}")
        logger.info("=" * 60)
        return None

    payload = {"to": phone, "message": message}
    if settings.SMS_SENDER_NAME:
        payload["sender"] = settings.SMS_SENDER_NAME
    headers = {"Content-Type": "application/json"}
    if settings.SMS_PROVIDER_TOKEN:
        headers["Authorization"] = f"Bearer {settings.SMS_PROVIDER_TOKEN}"

    try:
        resp = httpx.post(settings.SMS_PROVIDER_URL, json=payload, headers=headers,
                          timeout=settings.DELIVERY_TIMEOUT_SECONDS)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        raise SmsDeliveryError(str(e)) from e

    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("messageId") or body.get("id")
    return None
