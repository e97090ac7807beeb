from app.testing_utils import DatabaseTestCase, FakeDispatcher, FrozenClock

import os
import shutil
import tempfile
import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest import mock

from app.database import db_manager
from app.models.otp_blacklist import BlacklistReason
from app.models.otp_code import OtpCode, ContactType
from app.models.otp_send_counter import OtpSendCounter
from app.services.otp_service import OtpSendResult, OtpService, OtpState
from app.services.rate_limit_service import RateLimiter
from app.utils.contact import Contact
from app.utils.exceptions import (
    BlacklistedException,
    DeliveryFailureException,
    OTPAlreadyUsedException,
    OTPExpiredException,
    OTPInvalidException,
    OTPNotFoundException,
    OTPVerificationException,
    RateLimitedException,
)

EMAIL = Contact("user@example.com", ContactType.EMAIL)
PHONE = Contact("+14155550123", ContactType.PHONE)
WRONG = "000000"   # outside the generated range, never a valid code


class OtpServiceTestCase(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.dispatcher = FakeDispatcher()
        self.service = OtpService(limiter=RateLimiter(limit=100), dispatcher=self.dispatcher)


class TestSend(OtpServiceTestCase):

    def test_send_creates_fresh_record(self):
        result = self.service.send(self.db, EMAIL)

        record = self.fetch_code(EMAIL.value)
        self.assertRegex(record.code, r"^\d{6}$")
        self.assertEqual(record.code, self.dispatcher.last_code)
        self.assertEqual(record.attemptCount, 0)
        self.assertEqual(record.resendCount, 1)
        self.assertFalse(record.isUsed)
        self.assertEqual(result.resendCount, 1)
        self.assertTrue(result.delivery.success)

    def test_expiry_is_ten_minutes(self):
        with FrozenClock() as clock:
            result = self.service.send(self.db, EMAIL)
            self.assertEqual((result.expiresAt - clock.now).total_seconds(), 600)

    def test_second_send_replaces_code(self):
        with mock.patch("app.services.otp_service.generate_otp", side_effect=["111111", "222222"]):
            self.service.send(self.db, EMAIL)
            self.service.send(self.db, EMAIL)

        rows = self.db.query(OtpCode).filter(OtpCode.contactValue == EMAIL.value).all()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].code, "222222")
        self.assertEqual(rows[0].resendCount, 2)

    def test_new_code_resets_attempts(self):
        self.service.send(self.db, EMAIL)
        with self.assertRaises(OTPInvalidException):
            self.service.verify(self.db, EMAIL, WRONG)
        self.assertEqual(self.fetch_code(EMAIL.value).attemptCount, 1)

        self.service.send(self.db, EMAIL)
        self.assertEqual(self.fetch_code(EMAIL.value).attemptCount, 0)

    def test_contacts_are_independent(self):
        self.service.send(self.db, EMAIL)
        self.service.send(self.db, PHONE)
        self.assertEqual(self.db.query(OtpCode).count(), 2)

    def test_resend_ceiling_blacklists(self):
        with FrozenClock():
            for _ in range(5):
                self.service.send(self.db, PHONE)
            with self.assertRaises(BlacklistedException) as ctx:
                self.service.send(self.db, PHONE)

            self.assertEqual(ctx.exception.reason, BlacklistReason.MAX_RESENDS.value)
            self.assertEqual(len(self.dispatcher.sent), 5)
            with self.assertRaises(BlacklistedException):
                self.service.send(self.db, PHONE)

    def test_send_allowed_once_resend_ban_expires(self):
        with FrozenClock() as clock:
            for _ in range(5):
                self.service.send(self.db, PHONE)
            with self.assertRaises(BlacklistedException):
                self.service.send(self.db, PHONE)

            clock.advance(minutes=5, seconds=1)
            result = self.service.send(self.db, PHONE)

            self.assertEqual(result.resendCount, 1)
            self.assertEqual(self.fetch_code(PHONE.value, ContactType.PHONE).code, self.dispatcher.last_code)
            self.assertEqual(len(self.dispatcher.sent), 6)

    def test_resend_count_restarts_after_window(self):
        with FrozenClock() as clock:
            for _ in range(5):
                self.service.send(self.db, PHONE)
            clock.advance(minutes=61)
            result = self.service.send(self.db, PHONE)
            self.assertEqual(result.resendCount, 1)

    def test_rate_limited_send_generates_nothing(self):
        service = OtpService(limiter=RateLimiter(limit=2, window_seconds=300), dispatcher=self.dispatcher)
        with FrozenClock():
            service.send(self.db, EMAIL)
            service.send(self.db, EMAIL)
            with self.assertRaises(RateLimitedException) as ctx:
                service.send(self.db, EMAIL)

        self.assertEqual(len(self.dispatcher.sent), 2)
        self.assertEqual(self.fetch_code(EMAIL.value).resendCount, 2)
        self.assertGreaterEqual(ctx.exception.retry_after, 1)
        self.assertLessEqual(ctx.exception.retry_after, 300)
        self.assertEqual(ctx.exception.remaining, 0)

    def test_delivery_failure_keeps_record(self):
        service = OtpService(limiter=RateLimiter(limit=100), dispatcher=FakeDispatcher(fail=True))
        with self.assertRaises(DeliveryFailureException):
            service.send(self.db, EMAIL)

        record = self.fetch_code(EMAIL.value)
        self.assertIsNotNone(record)
        self.assertEqual(record.resendCount, 1)
        self.assertFalse(record.isUsed)

    def test_blacklisted_contact_cannot_send(self):
        self.service.blacklist.add(self.db, EMAIL, BlacklistReason.MANUAL)
        with self.assertRaises(BlacklistedException):
            self.service.send(self.db, EMAIL)
        self.assertEqual(self.dispatcher.sent, [])
        self.assertIsNone(self.fetch_code(EMAIL.value))


class TestConcurrentSends(OtpServiceTestCase):
    """Two requests for one phone racing each other, each on its own connection."""

    def setUp(self):
        tmpdir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, tmpdir, ignore_errors=True)
        self.database_url = f"sqlite:///{os.path.join(tmpdir, 'otp.db')}"
        super().setUp()

    def _send_together(self, service, contact, workers=2):
        barrier = threading.Barrier(workers)

        def worker():
            db = db_manager.session()
            try:
                barrier.wait()
                return service.send(db, contact)
            except RateLimitedException as e:
                return e
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(worker) for _ in range(workers)]
            return [f.result() for f in futures]

    def _counted_sends(self, contact):
        self.db.expire_all()
        rows = (self.db.query(OtpSendCounter)
                .filter(OtpSendCounter.contactValue == contact.value,
                        OtpSendCounter.contactType == contact.kind)
                .all())
        return sum(row.count for row in rows)

    def test_simultaneous_sends_share_one_record(self):
        with FrozenClock():
            results = self._send_together(self.service, PHONE)

        self.assertTrue(all(isinstance(r, OtpSendResult) for r in results))
        self.assertEqual(sorted(r.resendCount for r in results), [1, 2])

        rows = self.db.query(OtpCode).filter(OtpCode.contactValue == PHONE.value).all()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].resendCount, 2)
        self.assertIn(rows[0].code, [code for _, code in self.dispatcher.sent])
        self.assertEqual(self._counted_sends(PHONE), 2)

    def test_last_free_slot_goes_to_one_request(self):
        service = OtpService(limiter=RateLimiter(limit=1, window_seconds=300), dispatcher=self.dispatcher)
        with FrozenClock():
            results = self._send_together(service, PHONE)

        sent = [r for r in results if isinstance(r, OtpSendResult)]
        limited = [r for r in results if isinstance(r, RateLimitedException)]
        self.assertEqual(len(sent), 1)
        self.assertEqual(len(limited), 1)
        self.assertEqual(len(self.dispatcher.sent), 1)

        record = self.fetch_code(PHONE.value, ContactType.PHONE)
        self.assertEqual(record.code, self.dispatcher.last_code)
        self.assertEqual(record.resendCount, 1)
        # Both requests were counted; only the one under the limit went out
        self.assertEqual(self._counted_sends(PHONE), 2)


class TestVerify(OtpServiceTestCase):

    def test_correct_code_succeeds_exactly_once(self):
        self.service.send(self.db, EMAIL)
        code = self.dispatcher.last_code

        record = self.service.verify(self.db, EMAIL, code)
        self.assertTrue(record.isUsed)
        self.assertIsNotNone(record.usedAt)

        with self.assertRaises(OTPAlreadyUsedException):
            self.service.verify(self.db, EMAIL, code)

    def test_no_code_sent(self):
        with self.assertRaises(OTPNotFoundException):
            self.service.verify(self.db, EMAIL, "123456")

    def test_expired_code_rejected_without_attempts(self):
        with FrozenClock() as clock:
            self.service.send(self.db, EMAIL)
            clock.advance(minutes=10, seconds=1)
            with self.assertRaises(OTPExpiredException):
                self.service.verify(self.db, EMAIL, self.dispatcher.last_code)

    def test_code_valid_until_expiry_instant(self):
        with FrozenClock() as clock:
            self.service.send(self.db, EMAIL)
            clock.advance(minutes=10)
            self.service.verify(self.db, EMAIL, self.dispatcher.last_code)

    def test_wrong_code_is_counted(self):
        self.service.send(self.db, EMAIL)
        with self.assertRaises(OTPInvalidException):
            self.service.verify(self.db, EMAIL, WRONG)

        record = self.fetch_code(EMAIL.value)
        self.assertEqual(record.attemptCount, 1)
        self.assertIsNotNone(record.lastAttemptAt)

    def test_failures_look_identical_to_clients(self):
        errors = [cls() for cls in (OTPNotFoundException, OTPExpiredException,
                                    OTPAlreadyUsedException, OTPInvalidException)]
        self.assertEqual(len({(e.status_code, e.message, e.error_code) for e in errors}), 1)
        self.assertEqual(errors[0].status_code, 400)
        self.assertTrue(all(isinstance(e, OTPVerificationException) for e in errors))

    def test_third_wrong_attempt_blacklists(self):
        self.service.send(self.db, EMAIL)
        code = self.dispatcher.last_code

        for _ in range(2):
            with self.assertRaises(OTPInvalidException):
                self.service.verify(self.db, EMAIL, WRONG)
        with self.assertRaises(BlacklistedException) as ctx:
            self.service.verify(self.db, EMAIL, WRONG)
        self.assertEqual(ctx.exception.reason, BlacklistReason.MAX_ATTEMPTS.value)

        # Even the right code is refused while banned
        with self.assertRaises(BlacklistedException):
            self.service.verify(self.db, EMAIL, code)
        with self.assertRaises(BlacklistedException):
            self.service.send(self.db, EMAIL)

    def test_ban_lapses_after_cooldown(self):
        with FrozenClock() as clock:
            self.service.send(self.db, EMAIL)
            for _ in range(2):
                with self.assertRaises(OTPInvalidException):
                    self.service.verify(self.db, EMAIL, WRONG)
            with self.assertRaises(BlacklistedException):
                self.service.verify(self.db, EMAIL, WRONG)

            clock.advance(minutes=1, seconds=1)
            self.service.send(self.db, EMAIL)
            self.service.verify(self.db, EMAIL, self.dispatcher.last_code)

    def test_leading_zero_code_keeps_six_characters(self):
        with mock.patch("app.services.otp_service.generate_otp", return_value="012345"):
            self.service.send(self.db, EMAIL)
        self.assertEqual(self.fetch_code(EMAIL.value).code, "012345")

        with self.assertRaises(OTPInvalidException):
            self.service.verify(self.db, EMAIL, "12345")
        self.service.verify(self.db, EMAIL, "012345")


class TestState(OtpServiceTestCase):

    def test_state_transitions(self):
        with FrozenClock() as clock:
            self.assertEqual(self.service.get_state(self.db, EMAIL), OtpState.NO_CODE)

            self.service.send(self.db, EMAIL)
            self.assertEqual(self.service.get_state(self.db, EMAIL), OtpState.ACTIVE)

            clock.advance(minutes=11)
            self.assertEqual(self.service.get_state(self.db, EMAIL), OtpState.EXPIRED)

            self.service.send(self.db, EMAIL)
            self.service.verify(self.db, EMAIL, self.dispatcher.last_code)
            self.assertEqual(self.service.get_state(self.db, EMAIL), OtpState.VERIFIED)

            self.service.blacklist.add(self.db, EMAIL, BlacklistReason.MANUAL)
            self.assertEqual(self.service.get_state(self.db, EMAIL), OtpState.BLACKLISTED)


if __name__ == '__main__':
    unittest.main()
