# SPDX-License-Identifier: GPL-3.0-only
"""OTP record stores.

A store keeps at most one OTP record per phone number plus a log of
issuances used for rate limiting. Writes that follow a read are conditional
on the record's ``version`` so concurrent writers cannot silently clobber
each other.
"""

import dataclasses
import datetime
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from base_logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime.datetime]

RECORD_FIELDS = (
    "otp_code",
    "date_expires",
    "attempt_count",
    "is_verified",
    "date_verified",
)


@dataclasses.dataclass
class OTPRecord:
    """A stored one-time passcode for a phone number."""

    phone_number: str
    otp_code: str
    date_expires: datetime.datetime
    attempt_count: int = 0
    is_verified: bool = False
    date_verified: Optional[datetime.datetime] = None
    version: int = 0
    date_created: Optional[datetime.datetime] = None

    def is_expired(self, now: datetime.datetime) -> bool:
        """Check if the code is past its expiry instant."""
        return now > self.date_expires


def _check_fields(fields: dict) -> None:
    unknown = set(fields) - set(RECORD_FIELDS)
    if unknown:
        raise ValueError(f"Unknown OTP record fields: {sorted(unknown)}")


class OTPStore(ABC):
    """Storage capability for OTP records, keyed by phone number."""

    @abstractmethod
    def find(self, phone_number: str) -> Optional[OTPRecord]:
        """Return the record for a phone number, or None."""

    @abstractmethod
    def upsert(self, record: OTPRecord) -> OTPRecord:
        """Insert or replace the record for ``record.phone_number``.

        Returns the stored record with its new version.
        """

    @abstractmethod
    def update(self, phone_number: str, expected_version: int, **fields) -> bool:
        """Update fields if the stored version still matches.

        Returns False when the record was replaced or deleted in between.
        """

    @abstractmethod
    def delete(self, phone_number: str, expected_version: Optional[int] = None) -> bool:
        """Delete the record, optionally only if the version matches."""

    @abstractmethod
    def record_issuance(
        self, phone_number: str, when: Optional[datetime.datetime] = None
    ) -> None:
        """Log an accepted issuance for rate limiting."""

    @abstractmethod
    def count_issuances_since(self, phone_number: str, since: datetime.datetime) -> int:
        """Count issuances for a phone number strictly after ``since``."""

    @abstractmethod
    def prune_issuances(
        self, before: datetime.datetime, phone_number: Optional[str] = None
    ) -> int:
        """Delete issuance log entries at or before ``before``."""

    @abstractmethod
    def purge_expired(
        self,
        now: Optional[datetime.datetime] = None,
        max_attempts: Optional[int] = None,
    ) -> int:
        """Delete every record past its expiry. Returns the number removed.

        Records with ``max_attempts`` or more failed attempts are kept, so a
        locked-out phone keeps reporting too many attempts until re-issued.
        """


class PeeweeOTPStore(OTPStore):
    """Durable store backed by the ``otp`` and ``otp_issuance`` tables."""

    def __init__(self, clock: Clock = datetime.datetime.now):
        from cims_otp.db_models import OTP, OTPIssuance

        self.otp_model = OTP
        self.issuance_model = OTPIssuance
        self.database = OTP._meta.database
        self.clock = clock

    def _to_record(self, otp_entry) -> OTPRecord:
        return OTPRecord(
            phone_number=otp_entry.phone_number,
            otp_code=otp_entry.otp_code,
            date_expires=otp_entry.date_expires,
            attempt_count=otp_entry.attempt_count,
            is_verified=otp_entry.is_verified,
            date_verified=otp_entry.date_verified,
            version=otp_entry.version,
            date_created=otp_entry.date_created,
        )

    def find(self, phone_number):
        OTP = self.otp_model
        otp_entry = OTP.get_or_none(OTP.phone_number == phone_number)
        return self._to_record(otp_entry) if otp_entry else None

    def upsert(self, record):
        OTP = self.otp_model
        with self.database.atomic():
            existing = OTP.get_or_none(OTP.phone_number == record.phone_number)
            version = existing.version + 1 if existing else 1
            OTP.replace(
                phone_number=record.phone_number,
                otp_code=record.otp_code,
                date_expires=record.date_expires,
                attempt_count=record.attempt_count,
                is_verified=record.is_verified,
                date_verified=record.date_verified,
                version=version,
                date_created=record.date_created or self.clock(),
            ).execute()
            stored = OTP.get(OTP.phone_number == record.phone_number)

        logger.debug("OTP record upserted at version %d", version)
        return self._to_record(stored)

    def update(self, phone_number, expected_version, **fields):
        _check_fields(fields)
        OTP = self.otp_model
        rows_updated = (
            OTP.update(version=expected_version + 1, **fields)
            .where(
                (OTP.phone_number == phone_number) & (OTP.version == expected_version)
            )
            .execute()
        )
        if rows_updated == 0:
            logger.warning("Conditional OTP update missed at version %d", expected_version)
        return rows_updated > 0

    def delete(self, phone_number, expected_version=None):
        OTP = self.otp_model
        condition = OTP.phone_number == phone_number
        if expected_version is not None:
            condition &= OTP.version == expected_version
        return OTP.delete().where(condition).execute() > 0

    def record_issuance(self, phone_number, when=None):
        self.issuance_model.create(
            phone_number=phone_number, date_created=when or self.clock()
        )

    def count_issuances_since(self, phone_number, since):
        OTPIssuance = self.issuance_model
        return (
            OTPIssuance.select()
            .where(
                (OTPIssuance.phone_number == phone_number)
                & (OTPIssuance.date_created > since)
            )
            .count()
        )

    def prune_issuances(self, before, phone_number=None):
        OTPIssuance = self.issuance_model
        condition = OTPIssuance.date_created <= before
        if phone_number is not None:
            condition &= OTPIssuance.phone_number == phone_number
        return OTPIssuance.delete().where(condition).execute()

    def purge_expired(self, now=None, max_attempts=None):
        OTP = self.otp_model
        condition = OTP.date_expires < (now or self.clock())
        if max_attempts is not None:
            condition &= OTP.attempt_count < max_attempts
        return OTP.delete().where(condition).execute()


class MemoryOTPStore(OTPStore):
    """Process-local store for development and tests.

    Contents are lost on restart. Records are copied in and out so callers
    never hold a reference to stored state.
    """

    def __init__(self, clock: Clock = datetime.datetime.now):
        self.clock = clock
        self._records: Dict[str, OTPRecord] = {}
        self._issuances: Dict[str, List[datetime.datetime]] = {}
        self._lock = threading.Lock()

    def find(self, phone_number):
        with self._lock:
            record = self._records.get(phone_number)
            return dataclasses.replace(record) if record else None

    def upsert(self, record):
        with self._lock:
            existing = self._records.get(record.phone_number)
            stored = dataclasses.replace(
                record,
                version=existing.version + 1 if existing else 1,
                date_created=record.date_created or self.clock(),
            )
            self._records[record.phone_number] = stored
            return dataclasses.replace(stored)

    def update(self, phone_number, expected_version, **fields):
        _check_fields(fields)
        with self._lock:
            record = self._records.get(phone_number)
            if record is None or record.version != expected_version:
                return False
            self._records[phone_number] = dataclasses.replace(
                record, version=expected_version + 1, **fields
            )
            return True

    def delete(self, phone_number, expected_version=None):
        with self._lock:
            record = self._records.get(phone_number)
            if record is None:
                return False
            if expected_version is not None and record.version != expected_version:
                return False
            del self._records[phone_number]
            return True

    def record_issuance(self, phone_number, when=None):
        with self._lock:
            self._issuances.setdefault(phone_number, []).append(when or self.clock())

    def count_issuances_since(self, phone_number, since):
        with self._lock:
            return sum(1 for ts in self._issuances.get(phone_number, []) if ts > since)

    def prune_issuances(self, before, phone_number=None):
        removed = 0
        with self._lock:
            phones = [phone_number] if phone_number else list(self._issuances)
            for phone in phones:
                timestamps = self._issuances.get(phone, [])
                kept = [ts for ts in timestamps if ts > before]
                removed += len(timestamps) - len(kept)
                if kept:
                    self._issuances[phone] = kept
                else:
                    self._issuances.pop(phone, None)
        return removed

    def purge_expired(self, now=None, max_attempts=None):
        now = now or self.clock()
        with self._lock:
            expired = [
                phone
                for phone, record in self._records.items()
                if now > record.date_expires
                and (max_attempts is None or record.attempt_count < max_attempts)
            ]
            for phone in expired:
                del self._records[phone]
        return len(expired)
