import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings
from app.models.otp_code import ContactType
from app.models.otp_blacklist import OtpBlacklist, BlacklistReason
from app.repositories.otp_repository import otp_repository
from app.utils import clock
from app.utils.audit import AuditAction, log_action
from app.utils.contact import Contact
from app.utils.exceptions import BlacklistedException

logger = logging.getLogger(__name__)


@dataclass
class BlacklistStatus:
    blacklisted: bool
    reason:      BlacklistReason | None = None
    expiresAt:   datetime | None = None


def ban_duration(reason: BlacklistReason) -> timedelta | None:
    """Cooldown per reason; None means indefinite."""
    if reason == BlacklistReason.MAX_ATTEMPTS:
        return timedelta(minutes=settings.BLACKLIST_MAX_ATTEMPTS_MINUTES)
    if reason == BlacklistReason.MAX_RESENDS:
        return timedelta(minutes=settings.BLACKLIST_MAX_RESENDS_MINUTES)
    return None


def _is_active(entry: OtpBlacklist, now: datetime) -> bool:
    expires_at = clock.as_utc(entry.expiresAt)
    return expires_at is None or expires_at > now


def _time_remaining(expires_at: datetime | None, now: datetime) -> str | None:
    if expires_at is None:
        return None
    seconds = max(int((expires_at - now).total_seconds()), 0)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def _serialize_entry(entry: OtpBlacklist, now: datetime) -> dict:
    expires_at = clock.as_utc(entry.expiresAt)
    return {
        "id":            entry.id,
        "contactValue":  entry.contactValue,
        "contactType":   entry.contactType.value,
        "reason":        entry.reason.value,
        "note":          entry.note,
        "blacklistedAt": clock.as_utc(entry.blacklistedAt).isoformat(),
        "expiresAt":     expires_at.isoformat() if expires_at else None,
        "isActive":      _is_active(entry, now),
        "timeRemaining": _time_remaining(expires_at, now),
    }


class BlacklistService:

    # ─── Status ───────────────────────────────────────────────────────────────
    def is_blacklisted(self, db: Session, contact: Contact) -> BlacklistStatus:
        entry = otp_repository.get_ban(db, contact)
        if entry is None or not _is_active(entry, clock.utcnow()):
            return BlacklistStatus(blacklisted=False)
        return BlacklistStatus(
            blacklisted=True,
            reason=entry.reason,
            expiresAt=clock.as_utc(entry.expiresAt),
        )

    def ensure_not_blacklisted(self, db: Session, contact: Contact) -> None:
        """Gate used before code generation and before verification."""
        status = self.is_blacklisted(db, contact)
        if status.blacklisted:
            logger.warning(f"Blocked request for blacklisted {contact.kind.value} {contact.masked} "
                           f"(reason={status.reason.value})")
            raise self.exception_for(status)

    # ─── Mutations ────────────────────────────────────────────────────────────
    def add(
        self, db: Session, contact: Contact, reason: BlacklistReason,
        note: str | None = None, actor_id: str | None = None,
    ) -> BlacklistStatus:
        """Upsert the ban (overwrites any previous reason/expiry) and commit."""
        now = clock.utcnow()
        duration = ban_duration(reason)
        expires_at = now + duration if duration is not None else None

        otp_repository.upsert_ban(db, contact, reason, now, expires_at, note)
        log_action(db, actor_id, AuditAction.BLACKLIST, "Contact", contact.masked,
                   f"{contact.kind.value} blacklisted ({reason.value})")
        db.commit()

        logger.info(f"Blacklisted {contact.kind.value} {contact.masked} reason={reason.value} "
                    f"until={expires_at.isoformat() if expires_at else 'indefinite'}")
        return BlacklistStatus(blacklisted=True, reason=reason, expiresAt=expires_at)

    def remove(self, db: Session, contact: Contact, actor_id: str | None = None) -> bool:
        removed = otp_repository.clear_ban(db, contact) > 0
        if removed:
            log_action(db, actor_id, AuditAction.UNBLACKLIST, "Contact", contact.masked,
                       f"{contact.kind.value} removed from blacklist")
        db.commit()
        logger.info(f"Unblacklist {contact.kind.value} {contact.masked}: removed={removed}")
        return removed

    def exception_for(self, status: BlacklistStatus) -> BlacklistedException:
        retry_after = None
        if status.expiresAt is not None:
            retry_after = max(int((status.expiresAt - clock.utcnow()).total_seconds()), 1)
        return BlacklistedException(status.reason.value, status.expiresAt, retry_after)

    # ─── Admin queries ────────────────────────────────────────────────────────
    def _active_query(self, db: Session, now: datetime):
        return db.query(OtpBlacklist).filter(
            (OtpBlacklist.expiresAt.is_(None)) | (OtpBlacklist.expiresAt > now)
        )

    def list_active(
        self, db: Session, page: int, limit: int,
        search: str | None = None,
        contact_type: ContactType | None = None,
        reason: BlacklistReason | None = None,
    ) -> tuple[list[dict], int]:
        now = clock.utcnow()
        q = self._active_query(db, now)
        if search:
            q = q.filter(OtpBlacklist.contactValue.ilike(f"%{search}%"))
        if contact_type is not None:
            q = q.filter(OtpBlacklist.contactType == contact_type)
        if reason is not None:
            q = q.filter(OtpBlacklist.reason == reason)

        total = q.count()
        entries = (q.order_by(OtpBlacklist.blacklistedAt.desc())
                   .offset((page - 1) * limit).limit(limit).all())
        return [_serialize_entry(e, now) for e in entries], total

    def stats(self, db: Session) -> dict:
        now = clock.utcnow()
        rows = (
            self._active_query(db, now)
            .with_entities(OtpBlacklist.contactType, OtpBlacklist.reason, func.count(OtpBlacklist.id))
            .group_by(OtpBlacklist.contactType, OtpBlacklist.reason)
            .all()
        )
        result = {
            "totalActive":      0,
            "emailBlacklisted": 0,
            "phoneBlacklisted": 0,
            "maxAttempts":      0,
            "maxResends":       0,
            "manual":           0,
        }
        by_reason = {
            BlacklistReason.MAX_ATTEMPTS: "maxAttempts",
            BlacklistReason.MAX_RESENDS:  "maxResends",
            BlacklistReason.MANUAL:       "manual",
        }
        for contact_type, reason, count in rows:
            result["totalActive"] += count
            if contact_type == ContactType.EMAIL:
                result["emailBlacklisted"] += count
            else:
                result["phoneBlacklisted"] += count
            result[by_reason[reason]] += count
        return result

    def recent_activity(self, db: Session, hours: int = 24, limit: int = 50) -> list[dict]:
        now = clock.utcnow()
        cutoff = now - timedelta(hours=hours)
        entries = (
            db.query(OtpBlacklist)
            .filter(OtpBlacklist.blacklistedAt >= cutoff)
            .order_by(OtpBlacklist.blacklistedAt.desc())
            .limit(limit)
            .all()
        )
        return [_serialize_entry(e, now) for e in entries]


blacklist_service = BlacklistService()
