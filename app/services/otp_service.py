import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.models.otp_code import OtpCode
from app.models.otp_blacklist import BlacklistReason
from app.repositories.otp_repository import otp_repository
from app.services.blacklist_service import BlacklistService, blacklist_service
from app.services.delivery_service import DeliveryDispatcher, DeliveryResult, delivery_dispatcher
from app.services.rate_limit_service import RateLimiter, rate_limiter
from app.utils import clock
from app.utils.contact import Contact
from app.utils.exceptions import (
    DeliveryFailureException,
    OTPNotFoundException, OTPExpiredException, OTPAlreadyUsedException, OTPInvalidException,
)
from app.utils.security import generate_otp, otp_expiry, codes_match

logger = logging.getLogger(__name__)


class OtpState(str, enum.Enum):
    NO_CODE     = "no_code"
    ACTIVE      = "active"
    VERIFIED    = "verified"
    EXPIRED     = "expired"
    BLACKLISTED = "blacklisted"


@dataclass
class OtpSendResult:
    contact:     Contact
    expiresAt:   datetime
    resendCount: int
    remaining:   int
    delivery:    DeliveryResult


class OtpService:
    """
    Issues and verifies one-time codes for a contact.

    One row per contact holds the latest code. Sends replace it, failed
    verifications count against it, and overflowing either counter puts the
    contact on the blacklist.
    """

    def __init__(
        self,
        limiter: RateLimiter | None = None,
        blacklist: BlacklistService | None = None,
        dispatcher: DeliveryDispatcher | None = None,
    ):
        self.limiter = limiter or rate_limiter
        self.blacklist = blacklist or blacklist_service
        self.dispatcher = dispatcher or delivery_dispatcher

    # ─── Send ─────────────────────────────────────────────────────────────────
    def send(self, db: Session, contact: Contact) -> OtpSendResult:
        # Gates run before anything is generated
        self.blacklist.ensure_not_blacklisted(db, contact)
        limit = self.limiter.enforce(db, contact)

        now = clock.utcnow()
        code = generate_otp()
        expires_at = otp_expiry(now)
        resend_window_start = now - timedelta(minutes=settings.OTP_RESEND_WINDOW_MINUTES)

        record_id, resend_count = otp_repository.upsert_active_code(
            db, contact, code, now, expires_at, resend_window_start,
        )

        if resend_count > settings.OTP_MAX_RESENDS:
            logger.warning(f"Resend ceiling reached for {contact.kind.value} {contact.masked} "
                           f"({resend_count}/{settings.OTP_MAX_RESENDS})")
            # Committed together with the ban, so the contact starts fresh once it lapses
            otp_repository.reset_resends(db, record_id)
            status = self.blacklist.add(db, contact, BlacklistReason.MAX_RESENDS)
            raise self.blacklist.exception_for(status)
        db.commit()

        logger.info(f"Code issued for {contact.kind.value} {contact.masked} "
                    f"(resend {resend_count}, expires {expires_at.isoformat()})")

        # The record is committed; a failed delivery never rolls it back
        delivery = self.dispatcher.send(contact, code)
        if not delivery.success:
            raise DeliveryFailureException(contact.kind.value)

        return OtpSendResult(
            contact=contact,
            expiresAt=expires_at,
            resendCount=resend_count,
            remaining=limit.remaining,
            delivery=delivery,
        )

    # ─── Verify ───────────────────────────────────────────────────────────────
    def verify(self, db: Session, contact: Contact, submitted_code: str) -> OtpCode:
        """
        Consume the contact's code. Raises one of the OTP*Exception classes,
        or BlacklistedException when this attempt exhausts the allowance.
        """
        self.blacklist.ensure_not_blacklisted(db, contact)

        now = clock.utcnow()
        record = otp_repository.get_code(db, contact)
        if record is None:
            logger.warning(f"Verify without code for {contact.kind.value} {contact.masked}")
            raise OTPNotFoundException()
        if now > clock.as_utc(record.expiresAt):
            logger.warning(f"Expired code submitted for {contact.kind.value} {contact.masked}")
            raise OTPExpiredException()
        if record.isUsed:
            logger.warning(f"Used code submitted for {contact.kind.value} {contact.masked}")
            raise OTPAlreadyUsedException()

        if not codes_match(submitted_code, record.code):
            attempts = otp_repository.record_attempt(db, record.id, now)
            db.commit()
            logger.warning(f"Wrong code for {contact.kind.value} {contact.masked} "
                           f"({attempts}/{settings.OTP_MAX_VERIFY_ATTEMPTS})")
            if attempts >= settings.OTP_MAX_VERIFY_ATTEMPTS:
                status = self.blacklist.add(db, contact, BlacklistReason.MAX_ATTEMPTS)
                raise self.blacklist.exception_for(status)
            raise OTPInvalidException()

        if not otp_repository.mark_used(db, record.id, record.code, now):
            db.rollback()
            raise OTPAlreadyUsedException()
        db.commit()

        logger.info(f"Code verified for {contact.kind.value} {contact.masked}")
        return otp_repository.get_code(db, contact)

    # ─── Introspection ────────────────────────────────────────────────────────
    def get_state(self, db: Session, contact: Contact) -> OtpState:
        if self.blacklist.is_blacklisted(db, contact).blacklisted:
            return OtpState.BLACKLISTED
        record = otp_repository.get_code(db, contact)
        if record is None:
            return OtpState.NO_CODE
        if record.isUsed:
            return OtpState.VERIFIED
        if clock.utcnow() > clock.as_utc(record.expiresAt):
            return OtpState.EXPIRED
        return OtpState.ACTIVE


otp_service = OtpService()
