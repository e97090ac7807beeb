import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.models.otp_code import OtpCode
from app.models.otp_blacklist import OtpBlacklist
from app.models.otp_send_counter import OtpSendCounter
from app.models.refresh_token import RefreshToken
from app.utils import clock

logger = logging.getLogger(__name__)


class CleanupService:
    """Deletes records that can no longer affect any decision."""

    def run(
        self, db: Session,
        otp_retention_days: int | None = None,
        blacklist_retention_days: int | None = None,
    ) -> dict:
        now = clock.utcnow()
        otp_cutoff = now - timedelta(days=otp_retention_days or settings.OTP_RETENTION_DAYS)
        ban_cutoff = now - timedelta(days=blacklist_retention_days or settings.BLACKLIST_RETENTION_DAYS)
        counter_cutoff = int((now - timedelta(hours=settings.SEND_COUNTER_RETENTION_HOURS)).timestamp())

        # Codes expired longer than the retention period
        expired_otps = (
            db.query(OtpCode)
            .filter(OtpCode.expiresAt < otp_cutoff)
            .delete(synchronize_session=False)
        )
        expired_bans = (
            db.query(OtpBlacklist)
            .filter(OtpBlacklist.expiresAt.is_not(None), OtpBlacklist.expiresAt < ban_cutoff)
            .delete(synchronize_session=False)
        )
        stale_counters = (
            db.query(OtpSendCounter)
            .filter(OtpSendCounter.windowStart < counter_cutoff)
            .delete(synchronize_session=False)
        )
        dead_tokens = (
            db.query(RefreshToken)
            .filter((RefreshToken.expiresAt < now) | (RefreshToken.revoked.is_(True)))
            .delete(synchronize_session=False)
        )
        db.commit()

        summary = {
            "expiredOtps":          expired_otps,
            "expiredBlacklist":     expired_bans,
            "staleSendCounters":    stale_counters,
            "deadRefreshTokens":    dead_tokens,
            "totalCleaned":         expired_otps + expired_bans + stale_counters + dead_tokens,
        }
        logger.info(f"Cleanup finished: {summary}")
        return summary


cleanup_service = CleanupService()
