import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.config import settings
from app.repositories.otp_repository import otp_repository
from app.utils import clock
from app.utils.contact import Contact
from app.utils.exceptions import RateLimitedException

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed:           bool
    remaining:         int
    retryAfterSeconds: int | None = None
    reason:            str | None = None


class RateLimiter:
    """
    Fixed-window send limiter per contact.

    The window counter is incremented and read back in one statement, so two
    simultaneous sends for one contact can never both see the last free slot.
    """

    def __init__(self, limit: int | None = None, window_seconds: int | None = None):
        self._limit = limit
        self._window_seconds = window_seconds

    @property
    def limit(self) -> int:
        return self._limit or settings.OTP_SEND_RATE_LIMIT

    @property
    def window_seconds(self) -> int:
        return self._window_seconds or settings.OTP_SEND_RATE_WINDOW_SECONDS

    def check_send_rate(self, db: Session, contact: Contact) -> RateLimitResult:
        now_ts = int(clock.utcnow().timestamp())
        window_start = now_ts - (now_ts % self.window_seconds)

        count = otp_repository.increment_send_counter(db, contact, window_start)
        db.commit()

        if count > self.limit:
            retry_after = max(window_start + self.window_seconds - now_ts, 1)
            logger.warning(f"Send rate exceeded for {contact.kind.value} {contact.masked} "
                           f"({count}/{self.limit}), retry in {retry_after}s")
            return RateLimitResult(
                allowed=False,
                remaining=0,
                retryAfterSeconds=retry_after,
                reason="Too many verification codes requested",
            )
        return RateLimitResult(allowed=True, remaining=self.limit - count)

    def enforce(self, db: Session, contact: Contact) -> RateLimitResult:
        result = self.check_send_rate(db, contact)
        if not result.allowed:
            raise RateLimitedException(result.retryAfterSeconds, result.remaining)
        return result


rate_limiter = RateLimiter()
