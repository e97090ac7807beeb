from app.testing_utils import DatabaseTestCase, FrozenClock

import unittest
from datetime import timedelta

from app.models.audit_log import AuditLog
from app.models.otp_blacklist import OtpBlacklist, BlacklistReason
from app.models.otp_code import ContactType
from app.services.blacklist_service import blacklist_service
from app.utils.contact import Contact
from app.utils.exceptions import BlacklistedException

EMAIL = Contact("seeker@example.com", ContactType.EMAIL)
PHONE = Contact("+14155550123", ContactType.PHONE)


class TestBlacklistService(DatabaseTestCase):

    def test_unknown_contact_is_not_blacklisted(self):
        self.assertFalse(blacklist_service.is_blacklisted(self.db, EMAIL).blacklisted)

    def test_max_attempts_ban_lasts_one_minute(self):
        with FrozenClock() as clock:
            status = blacklist_service.add(self.db, EMAIL, BlacklistReason.MAX_ATTEMPTS)
            self.assertEqual(status.expiresAt, clock.now + timedelta(minutes=1))
            self.assertTrue(blacklist_service.is_blacklisted(self.db, EMAIL).blacklisted)

            clock.advance(seconds=59)
            self.assertTrue(blacklist_service.is_blacklisted(self.db, EMAIL).blacklisted)

            clock.advance(seconds=2)
            self.assertFalse(blacklist_service.is_blacklisted(self.db, EMAIL).blacklisted)

    def test_max_resends_ban_lasts_five_minutes(self):
        with FrozenClock() as clock:
            blacklist_service.add(self.db, PHONE, BlacklistReason.MAX_RESENDS)
            clock.advance(minutes=4, seconds=59)
            self.assertTrue(blacklist_service.is_blacklisted(self.db, PHONE).blacklisted)
            clock.advance(seconds=2)
            self.assertFalse(blacklist_service.is_blacklisted(self.db, PHONE).blacklisted)

    def test_manual_ban_never_expires(self):
        with FrozenClock() as clock:
            status = blacklist_service.add(self.db, EMAIL, BlacklistReason.MANUAL, note="fraud report")
            self.assertIsNone(status.expiresAt)
            clock.advance(days=365)
            result = blacklist_service.is_blacklisted(self.db, EMAIL)
            self.assertTrue(result.blacklisted)
            self.assertEqual(result.reason, BlacklistReason.MANUAL)

    def test_add_overwrites_previous_entry(self):
        blacklist_service.add(self.db, EMAIL, BlacklistReason.MAX_ATTEMPTS)
        blacklist_service.add(self.db, EMAIL, BlacklistReason.MANUAL)

        self.db.expire_all()
        rows = self.db.query(OtpBlacklist).filter(OtpBlacklist.contactValue == EMAIL.value).all()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].reason, BlacklistReason.MANUAL)
        self.assertIsNone(rows[0].expiresAt)

    def test_remove(self):
        blacklist_service.add(self.db, EMAIL, BlacklistReason.MANUAL)
        self.assertTrue(blacklist_service.remove(self.db, EMAIL))
        self.assertFalse(blacklist_service.is_blacklisted(self.db, EMAIL).blacklisted)
        self.assertFalse(blacklist_service.remove(self.db, EMAIL))

    def test_ensure_not_blacklisted_raises_with_retry_hint(self):
        with FrozenClock():
            blacklist_service.add(self.db, EMAIL, BlacklistReason.MAX_RESENDS)
            with self.assertRaises(BlacklistedException) as ctx:
                blacklist_service.ensure_not_blacklisted(self.db, EMAIL)

        exc = ctx.exception
        self.assertEqual(exc.status_code, 429)
        self.assertEqual(exc.extra["reason"], "max_resends")
        self.assertEqual(exc.extra["retryAfter"], 300)
        self.assertEqual(exc.headers["Retry-After"], "300")

    def test_add_and_remove_are_audited(self):
        blacklist_service.add(self.db, EMAIL, BlacklistReason.MANUAL)
        blacklist_service.remove(self.db, EMAIL)
        actions = [a.action for a in self.db.query(AuditLog).order_by(AuditLog.id).all()]
        self.assertEqual(actions, ["BLACKLIST", "UNBLACKLIST"])

    def test_stats_and_listing_count_only_active_entries(self):
        with FrozenClock() as clock:
            blacklist_service.add(self.db, EMAIL, BlacklistReason.MAX_ATTEMPTS)
            blacklist_service.add(self.db, PHONE, BlacklistReason.MANUAL)
            blacklist_service.add(self.db, Contact("other@example.com", ContactType.EMAIL),
                                  BlacklistReason.MAX_RESENDS)
            clock.advance(minutes=2)   # the max_attempts ban has lapsed

            stats = blacklist_service.stats(self.db)
            self.assertEqual(stats["totalActive"], 2)
            self.assertEqual(stats["emailBlacklisted"], 1)
            self.assertEqual(stats["phoneBlacklisted"], 1)
            self.assertEqual(stats["maxAttempts"], 0)
            self.assertEqual(stats["manual"], 1)

            entries, total = blacklist_service.list_active(self.db, 1, 20)
            self.assertEqual(total, 2)
            self.assertTrue(all(e["isActive"] for e in entries))

            entries, total = blacklist_service.list_active(self.db, 1, 20, contact_type=ContactType.PHONE)
            self.assertEqual(total, 1)
            self.assertEqual(entries[0]["contactValue"], PHONE.value)
            self.assertIsNone(entries[0]["timeRemaining"])


if __name__ == '__main__':
    unittest.main()
