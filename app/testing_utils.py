"""
Shared fixtures for the app/test_*.py modules.

Import this module before anything else from `app`: settings are read from
the environment at import time, and the tests must never reach a real
database, SMTP server or SMS gateway.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "test"
os.environ["SMTP_HOST"] = ""
os.environ["SMS_PROVIDER_URL"] = ""
os.environ.setdefault("SECRET_KEY", "test-access-secret")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

import app.models  # noqa: F401 (registers every table on Base.metadata)
from app.config import settings
from app.database import Base, db_manager
from app.models.otp_code import OtpCode, ContactType
from app.services.delivery_service import DeliveryResult
from app.utils.contact import Contact

ADMIN_HEADERS = {"X-Admin-Key": settings.ADMIN_API_KEY}


class FakeDispatcher:
    """Records every (contact, code) instead of delivering it."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[Contact, str]] = []

    def send(self, contact: Contact, code: str) -> DeliveryResult:
        self.sent.append((contact, code))
        if self.fail:
            return DeliveryResult(success=False, error="provider unavailable")
        return DeliveryResult(success=True, providerMessageId=f"fake-{len(self.sent)}")

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


class FrozenClock:
    """
    Patches app.utils.clock.utcnow to a controllable instant.

        with FrozenClock() as clock:
            ...
            clock.advance(minutes=11)
    """

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)
        self._patcher = mock.patch("app.utils.clock.utcnow", side_effect=lambda: self.now)

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def __enter__(self):
        self._patcher.start()
        return self

    def __exit__(self, *exc):
        self._patcher.stop()
        return False


class DatabaseTestCase(unittest.TestCase):
    """Fresh SQLite schema per test, exposed as self.db. In-memory unless database_url is overridden."""

    database_url = "sqlite://"

    def setUp(self):
        db_manager.init(self.database_url)
        Base.metadata.create_all(bind=db_manager.engine)
        self.db = db_manager.session()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=db_manager.engine)
        db_manager.dispose()

    # ─── Helpers ──────────────────────────────────────────────────────────────
    def fetch_code(self, value: str, kind: ContactType = ContactType.EMAIL) -> OtpCode | None:
        self.db.expire_all()
        return (self.db.query(OtpCode)
                .filter(OtpCode.contactValue == value, OtpCode.contactType == kind)
                .first())


class ApiTestCase(DatabaseTestCase):
    """
    DatabaseTestCase plus a TestClient. Codes go to self.dispatcher
    instead of a real provider.
    """

    def setUp(self):
        super().setUp()
        from fastapi.testclient import TestClient
        from app.main import app as application
        from app.services.otp_service import otp_service

        self.dispatcher = FakeDispatcher()
        patcher = mock.patch.object(otp_service, "dispatcher", self.dispatcher)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = TestClient(application)

    def send_code(self, value: str = "user@example.com", kind: str = "email"):
        return self.client.post("/otp/send", json={"contactValue": value, "contactType": kind})

    def login(self, value: str = "user@example.com", kind: str = "email", user_agent: str = "pytest-agent"):
        """Send + verify; returns the verify response (cookies land in the client jar)."""
        sent = self.send_code(value, kind)
        assert sent.status_code == 200, sent.text
        return self.client.post(
            "/otp/verify",
            json={"userId": sent.json()["userId"], "code": self.dispatcher.last_code, "type": kind},
            headers={"User-Agent": user_agent},
        )
