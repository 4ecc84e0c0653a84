"""Shared fixtures for the OTP test suite."""

import datetime
import re

import pytest
from peewee import SqliteDatabase

from cims_otp.utils import create_tables, set_configs

set_configs("MODE", "testing")

from cims_otp.sms_outbound import SMSProvider  # noqa: E402


class FakeClock:
    """Controllable clock for time-dependent tests."""

    def __init__(self, start=None):
        self.now = start or datetime.datetime(2026, 1, 15, 9, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += datetime.timedelta(**kwargs)
        return self.now


class RecordingSMSProvider(SMSProvider):
    """Records outbound messages instead of sending them."""

    def __init__(self, succeed=True):
        self.succeed = succeed
        self.messages = []

    def send(self, phone_number, message):
        self.messages.append((phone_number, message))
        return self.succeed

    def last_code(self):
        """The code carried by the most recent message."""
        _, message = self.messages[-1]
        return re.search(r"\b(\d{6})\b", message).group(1)


@pytest.fixture()
def clock():
    """A fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture()
def sms_provider():
    """An SMS provider that accepts and records every message."""
    return RecordingSMSProvider()


@pytest.fixture(autouse=True)
def setup_teardown_database(tmp_path):
    """Setup and teardown test database."""
    from cims_otp.db_models import OTP, OTPIssuance

    db_path = tmp_path / "test.db"
    test_db = SqliteDatabase(str(db_path))
    test_db.bind([OTP, OTPIssuance])
    test_db.connect()
    create_tables([OTP, OTPIssuance])

    yield

    test_db.drop_tables([OTP, OTPIssuance])
    test_db.close()
