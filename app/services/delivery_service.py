import logging
from dataclasses import dataclass
from typing import Protocol

from app.config import settings
from app.models.otp_code import ContactType
from app.utils.contact import Contact
from app.utils.email import EmailDeliveryError, render_otp_email, send_email
from app.utils.sms import SmsDeliveryError, format_otp_sms, send_sms

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    success:           bool
    providerMessageId: str | None = None
    error:             str | None = None


class DeliveryProvider(Protocol):
    def send(self, contact: Contact, code: str) -> DeliveryResult:
        ...


class EmailProvider:
    def send(self, contact: Contact, code: str) -> DeliveryResult:
        subject, text, html = render_otp_email(code, settings.OTP_EXPIRE_MINUTES)
        try:
            message_id = send_email(contact.value, subject, text, html)
        except EmailDeliveryError as e:
            return DeliveryResult(success=False, error=str(e))
        return DeliveryResult(success=True, providerMessageId=message_id)


class SmsProvider:
    def send(self, contact: Contact, code: str) -> DeliveryResult:
        try:
            message_id = send_sms(contact.value, format_otp_sms(code, settings.OTP_EXPIRE_MINUTES))
        except SmsDeliveryError as e:
            return DeliveryResult(success=False, error=str(e))
        return DeliveryResult(success=True, providerMessageId=message_id)


class DeliveryDispatcher:
    """Routes a code to the provider registered for the contact's kind."""

    def __init__(self, providers: dict[ContactType, DeliveryProvider] | None = None):
        self.providers = providers or {
            ContactType.EMAIL: EmailProvider(),
            ContactType.PHONE: SmsProvider(),
        }

    def send(self, contact: Contact, code: str) -> DeliveryResult:
        provider = self.providers.get(contact.kind)
        if provider is None:
            return DeliveryResult(success=False, error=f"No provider for {contact.kind.value}")

        result = provider.send(contact, code)
        if result.success:
            logger.info(f"Code delivered to {contact.kind.value} {contact.masked} "
                        f"(messageId={result.providerMessageId})")
        else:
            logger.warning(f"Delivery to {contact.kind.value} {contact.masked} failed: {result.error}")
        return result


delivery_dispatcher = DeliveryDispatcher()
