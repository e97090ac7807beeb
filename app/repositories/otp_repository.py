"""
Atomic storage primitives for codes, bans and send counters.

Every write here is one SQL statement (INSERT ... ON CONFLICT DO UPDATE or
UPDATE ... RETURNING) so concurrent requests for the same contact are
serialized by the database rather than by the application. Nothing in this
module commits; the calling service owns the transaction.
"""
from datetime import datetime

from sqlalchemy import select, update, delete, case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.models.otp_code import OtpCode
from app.models.otp_blacklist import OtpBlacklist, BlacklistReason
from app.models.otp_send_counter import OtpSendCounter
from app.utils.contact import Contact


def _upsert(db: Session, table):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")


class OtpRepository:

    # ─── Codes ────────────────────────────────────────────────────────────────
    def get_code(self, db: Session, contact: Contact) -> OtpCode | None:
        stmt = (
            select(OtpCode)
            .where(OtpCode.contactValue == contact.value, OtpCode.contactType == contact.kind)
            .execution_options(populate_existing=True)
        )
        return db.execute(stmt).scalar_one_or_none()

    def upsert_active_code(
        self, db: Session, contact: Contact, code: str,
        now: datetime, expires_at: datetime, resend_window_start: datetime,
    ) -> tuple[int, int]:
        """
        Replace the contact's code (latest write wins).
        Returns (record id, resendCount inside the current resend window).
        """
        t = OtpCode.__table__
        stmt = _upsert(db, t).values(
            contactValue=contact.value,
            contactType=contact.kind,
            code=code,
            createdAt=now,
            expiresAt=expires_at,
            isUsed=False,
            usedAt=None,
            attemptCount=0,
            lastAttemptAt=None,
            resendCount=1,
            lastResendAt=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[t.c.contactValue, t.c.contactType],
            set_={
                "code":          stmt.excluded.code,
                "createdAt":     stmt.excluded.createdAt,
                "expiresAt":     stmt.excluded.expiresAt,
                "isUsed":        False,
                "usedAt":        None,
                "attemptCount":  0,
                "lastAttemptAt": None,
                "resendCount":   case(
                    (t.c.lastResendAt >= resend_window_start, t.c.resendCount + 1),
                    else_=1,
                ),
                "lastResendAt":  stmt.excluded.lastResendAt,
            },
        ).returning(t.c.id, t.c.resendCount)
        row = db.execute(stmt).one()
        return row.id, row.resendCount

    def reset_resends(self, db: Session, record_id: int) -> None:
        """Restart the resend window so the next send counts as the first."""
        t = OtpCode.__table__
        db.execute(update(t).where(t.c.id == record_id).values(resendCount=0))

    def record_attempt(self, db: Session, record_id: int, now: datetime) -> int:
        """Increment the failed-attempt counter; returns the new value."""
        t = OtpCode.__table__
        stmt = (
            update(t)
            .where(t.c.id == record_id)
            .values(attemptCount=t.c.attemptCount + 1, lastAttemptAt=now)
            .returning(t.c.attemptCount)
        )
        return db.execute(stmt).scalar_one()

    def mark_used(self, db: Session, record_id: int, code: str, now: datetime) -> bool:
        """
        Consume the record only if it is still unused and still holds `code`.
        False means another request consumed or replaced it first.
        """
        t = OtpCode.__table__
        stmt = (
            update(t)
            .where(t.c.id == record_id, t.c.code == code, t.c.isUsed.is_(False))
            .values(isUsed=True, usedAt=now)
        )
        return db.execute(stmt).rowcount == 1

    # ─── Bans ─────────────────────────────────────────────────────────────────
    def get_ban(self, db: Session, contact: Contact) -> OtpBlacklist | None:
        stmt = (
            select(OtpBlacklist)
            .where(OtpBlacklist.contactValue == contact.value, OtpBlacklist.contactType == contact.kind)
            .execution_options(populate_existing=True)
        )
        return db.execute(stmt).scalar_one_or_none()

    def upsert_ban(
        self, db: Session, contact: Contact, reason: BlacklistReason,
        now: datetime, expires_at: datetime | None, note: str | None = None,
    ) -> None:
        t = OtpBlacklist.__table__
        stmt = _upsert(db, t).values(
            contactValue=contact.value,
            contactType=contact.kind,
            reason=reason,
            note=note,
            blacklistedAt=now,
            expiresAt=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[t.c.contactValue, t.c.contactType],
            set_={
                "reason":        stmt.excluded.reason,
                "note":          stmt.excluded.note,
                "blacklistedAt": stmt.excluded.blacklistedAt,
                "expiresAt":     stmt.excluded.expiresAt,
            },
        )
        db.execute(stmt)

    def clear_ban(self, db: Session, contact: Contact) -> int:
        t = OtpBlacklist.__table__
        stmt = delete(t).where(t.c.contactValue == contact.value, t.c.contactType == contact.kind)
        return db.execute(stmt).rowcount

    # ─── Send counters ────────────────────────────────────────────────────────
    def increment_send_counter(self, db: Session, contact: Contact, window_start: int) -> int:
        """Atomically count one send in the window; returns the new count."""
        t = OtpSendCounter.__table__
        stmt = _upsert(db, t).values(
            contactValue=contact.value,
            contactType=contact.kind,
            windowStart=window_start,
            count=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[t.c.contactValue, t.c.contactType, t.c.windowStart],
            set_={"count": t.c.count + 1},
        ).returning(t.c.count)
        return db.execute(stmt).scalar_one()


otp_repository = OtpRepository()
