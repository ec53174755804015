# tests/conftest.py
"""
Shared fixtures: a Portal wired to a disposable SQLite file, an in-memory
outbox instead of SMTP, and a clock the tests can move forward.
"""
import datetime
import re

import pytest
from fastapi.testclient import TestClient

from grievance_portal.app import Portal, create_app
from grievance_portal.config import Settings
from grievance_portal.notifier import OutboxNotifier


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime.datetime(2025, 1, 15, 9, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + datetime.timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def outbox():
    return OutboxNotifier()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'portal_test.db'}",
        encryption_key="test-encryption-passphrase",
        jwt_secret="test-jwt-secret",
        bcrypt_rounds=4,
        otp_rate_limit_per_minute=3,
    )


@pytest.fixture
def portal(settings, outbox, clock):
    p = Portal(settings, notifier=outbox, clock=clock)
    p.init()
    yield p
    p.db.dispose()


@pytest.fixture
def client(portal):
    return TestClient(create_app(portal))


@pytest.fixture
def read_code(outbox):
    """Pull the 6-digit code out of the last OTP mail sent to an address."""
    def _read(email):
        msg = outbox.last_to(email)
        assert msg is not None, f"no mail sent to {email}"
        m = re.search(r"<div class='code-box'>(\d{6})</div>", msg["html"])
        assert m, "OTP code not found in mail body"
        return m.group(1)
    return _read
