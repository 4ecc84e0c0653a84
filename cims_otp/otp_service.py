# SPDX-License-Identifier: GPL-3.0-only
"""OTP Service Module - issues and verifies phone number OTPs."""

import datetime
import hmac
import secrets
import string
from typing import Callable, List, Optional, Tuple

from base_logger import get_logger
from cims_otp.otp_store import OTPRecord, OTPStore
from cims_otp.sms_outbound import (
    SMSConfigurationError,
    SMSProvider,
    get_phonenumber_region_code,
)
from cims_otp.types import OTPFailure
from cims_otp.utils import (
    get_configs,
    get_int_config,
    get_list_config,
    is_valid_phone_number,
    mask_phone_number,
)

logger = get_logger(__name__)

OTP_LENGTH = 6
OTP_EXPIRY_MINUTES = get_int_config("OTP_EXPIRY_MINUTES", 5)
MAX_OTP_VERIFY_ATTEMPTS = get_int_config("OTP_MAX_VERIFY_ATTEMPTS", 5)
MAX_OTP_REQUESTS = get_int_config("OTP_MAX_REQUESTS", 3)
RATE_LIMIT_WINDOW_MINUTES = get_int_config("OTP_RATE_LIMIT_WINDOW_MINUTES", 60)
OTP_PROJECT_NAME = get_configs("OTP_PROJECT_NAME", default_value="CIMS")
SMS_OTP_ALLOWED_COUNTRIES = get_list_config("SMS_OTP_ALLOWED_COUNTRIES")

MAX_CONFLICT_RETRIES = 3

FAILURE_MESSAGES = {
    OTPFailure.INVALID_REQUEST: "Invalid request payload",
    OTPFailure.INVALID_PHONE_FORMAT: (
        "Invalid phone number. Use international format, e.g. +15551234567."
    ),
    OTPFailure.INVALID_ACTION: "Invalid action",
    OTPFailure.REGION_NOT_SUPPORTED: (
        "SMS OTP service unavailable for your region. Contact support."
    ),
    OTPFailure.RATE_LIMITED: "Too many OTP requests. Wait and try again.",
    OTPFailure.TOO_MANY_ATTEMPTS: (
        "Too many incorrect attempts. Please request a new OTP."
    ),
    OTPFailure.EXPIRED: "OTP has expired. Please request a new one.",
    OTPFailure.INVALID_CODE: "Invalid OTP",
    OTPFailure.NOT_FOUND: "No OTP found for this number. Please request a new one.",
    OTPFailure.DELIVERY_FAILED: "Failed to send OTP",
    OTPFailure.SERVICE_UNAVAILABLE: "Service temporarily unavailable",
}

OTPResult = Tuple[bool, str, Optional[OTPFailure]]


class ConcurrentModificationError(Exception):
    """Raised when an OTP record keeps changing under a verification."""


def generate_otp(length: int = OTP_LENGTH) -> str:
    """Generate random numeric OTP."""
    return "".join(secrets.choice(string.digits) for _ in range(length))


def failure(reason: OTPFailure, message: Optional[str] = None) -> OTPResult:
    """Build a failed OTP result."""
    return False, message or FAILURE_MESSAGES[reason], reason


class OTPService:
    """Issues, delivers and verifies one-time passcodes for phone numbers.

    Args:
        store: Where OTP records and the issuance log live.
        sms_provider: Delivers the code to the phone.
        clock: Returns the current time. Defaults to ``datetime.datetime.now``.
        code_generator: Returns a fresh code. Defaults to ``generate_otp``.
    """

    def __init__(
        self,
        store: OTPStore,
        sms_provider: SMSProvider,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
        code_generator: Callable[[], str] = generate_otp,
        expiry_minutes: int = OTP_EXPIRY_MINUTES,
        max_verify_attempts: int = MAX_OTP_VERIFY_ATTEMPTS,
        max_requests: int = MAX_OTP_REQUESTS,
        rate_limit_window_minutes: int = RATE_LIMIT_WINDOW_MINUTES,
        allowed_countries: Optional[List[str]] = None,
    ):
        self.store = store
        self.sms_provider = sms_provider
        self.clock = clock
        self.code_generator = code_generator
        self.expiry = datetime.timedelta(minutes=expiry_minutes)
        self.max_verify_attempts = max_verify_attempts
        self.max_requests = max_requests
        self.rate_limit_window = datetime.timedelta(minutes=rate_limit_window_minutes)
        self.allowed_countries = (
            SMS_OTP_ALLOWED_COUNTRIES if allowed_countries is None else allowed_countries
        )

    def build_message(self, otp_code: str) -> str:
        """Build the SMS body carrying the code."""
        minutes = int(self.expiry.total_seconds() // 60)
        return (
            f"Your {OTP_PROJECT_NAME} verification code is: {otp_code}. "
            f"Valid for {minutes} minute{'s' if minutes != 1 else ''}."
        )

    def is_region_allowed(self, phone_number: str) -> bool:
        """Check the phone's region against the SMS allow-list, if any."""
        if not self.allowed_countries:
            return True

        region_code, country_name = get_phonenumber_region_code(phone_number)
        if region_code not in self.allowed_countries:
            logger.info(
                "SMS OTP blocked for country: %s with region: %s",
                country_name,
                region_code,
            )
            return False
        return True

    def is_rate_limited(self, phone_number: str, now: datetime.datetime) -> bool:
        """Check issuances for the phone in the trailing window."""
        issued = self.store.count_issuances_since(
            phone_number, now - self.rate_limit_window
        )
        if issued >= self.max_requests:
            logger.info(
                "Rate limit active for %s: %d issuances in the last %s",
                mask_phone_number(phone_number),
                issued,
                self.rate_limit_window,
            )
            return True
        return False

    def issue_code(self, phone_number: str) -> OTPResult:
        """
        Generate, store and send a new OTP for a phone number.

        Any existing record for the phone is replaced. The code is never
        returned; it only travels in the SMS.

        Args:
            phone_number (str): Recipient in E.164 format.

        Returns:
            tuple: (success, message, failure reason or None).
        """
        logger.debug("Issuing OTP")

        if not is_valid_phone_number(phone_number):
            return failure(OTPFailure.INVALID_PHONE_FORMAT)

        if not self.is_region_allowed(phone_number):
            return failure(OTPFailure.REGION_NOT_SUPPORTED)

        try:
            self.sms_provider.check_configuration(phone_number)
        except SMSConfigurationError as e:
            return failure(OTPFailure.SERVICE_UNAVAILABLE, str(e))

        now = self.clock()
        if self.is_rate_limited(phone_number, now):
            return failure(OTPFailure.RATE_LIMITED)

        otp_code = self.code_generator()
        record = self.store.upsert(
            OTPRecord(
                phone_number=phone_number,
                otp_code=otp_code,
                date_expires=now + self.expiry,
                attempt_count=0,
                is_verified=False,
                date_verified=None,
                date_created=now,
            )
        )
        self.store.record_issuance(phone_number, now)
        self.store.prune_issuances(now - self.rate_limit_window, phone_number)
        logger.info(
            "OTP record created for %s, expires at %s",
            mask_phone_number(phone_number),
            record.date_expires,
        )

        if not self.sms_provider.send(phone_number, self.build_message(otp_code)):
            logger.error("OTP delivery failed for %s", mask_phone_number(phone_number))
            return failure(OTPFailure.DELIVERY_FAILED)

        logger.info("OTP sent to %s", mask_phone_number(phone_number))
        return True, "OTP sent successfully", None

    def verify_code(self, phone_number: str, otp_code: Optional[str]) -> OTPResult:
        """
        Verify a submitted code against the stored OTP.

        Checks run in order: record exists, attempt budget left, not expired,
        code matches. A verified or expired record is deleted. A mismatch
        increments the attempt count.

        Args:
            phone_number (str): Phone in E.164 format.
            otp_code (str): The candidate code.

        Returns:
            tuple: (success, message, failure reason or None).

        Raises:
            ConcurrentModificationError: If the record changed under every
                retry of the verification.
        """
        logger.debug("Verifying OTP")

        if not is_valid_phone_number(phone_number):
            return failure(OTPFailure.INVALID_PHONE_FORMAT)

        candidate = otp_code or ""
        for _ in range(MAX_CONFLICT_RETRIES):
            result = self._attempt_verification(phone_number, candidate)
            if result is not None:
                return result
            logger.warning(
                "OTP record for %s changed during verification, retrying",
                mask_phone_number(phone_number),
            )

        raise ConcurrentModificationError(
            "OTP record changed during verification too many times"
        )

    def _attempt_verification(
        self, phone_number: str, candidate: str
    ) -> Optional[OTPResult]:
        """Run one verification pass. Returns None if a conditional write missed."""
        record = self.store.find(phone_number)
        if record is None:
            logger.warning("No OTP record found for verification")
            return failure(OTPFailure.NOT_FOUND)

        if record.attempt_count >= self.max_verify_attempts:
            logger.warning(
                "OTP attempts exhausted for %s", mask_phone_number(phone_number)
            )
            return failure(OTPFailure.TOO_MANY_ATTEMPTS)

        now = self.clock()
        if record.is_expired(now):
            if not self.store.delete(phone_number, expected_version=record.version):
                return None
            logger.info("Expired OTP deleted for %s", mask_phone_number(phone_number))
            return failure(OTPFailure.EXPIRED)

        if not hmac.compare_digest(
            candidate.encode("utf-8"), record.otp_code.encode("utf-8")
        ):
            if not self.store.update(
                phone_number, record.version, attempt_count=record.attempt_count + 1
            ):
                return None
            logger.warning(
                "Incorrect OTP for %s, attempt %d of %d",
                mask_phone_number(phone_number),
                record.attempt_count + 1,
                self.max_verify_attempts,
            )
            return failure(OTPFailure.INVALID_CODE)

        if not self.store.update(
            phone_number, record.version, is_verified=True, date_verified=now
        ):
            return None
        self.store.delete(phone_number, expected_version=record.version + 1)

        logger.info("OTP verified for %s", mask_phone_number(phone_number))
        return True, "OTP verified successfully.", None


def build_otp_service(**kwargs) -> OTPService:
    """Build an OTP service backed by the database and configured SMS provider."""
    from cims_otp.otp_store import PeeweeOTPStore
    from cims_otp.sms_outbound import build_sms_provider

    return OTPService(store=PeeweeOTPStore(), sms_provider=build_sms_provider(), **kwargs)
