# SPDX-License-Identifier: GPL-3.0-only
"""gRPC Phone Verification Service"""

import re
import threading
import traceback
import weakref

import grpc

from base_logger import get_logger
from cims_otp.grpc_otp_services.issue_code import IssueCode
from cims_otp.grpc_otp_services.process_request import ProcessOTPRequest
from cims_otp.grpc_otp_services.verify_code import VerifyCode
from cims_otp.otp_service import FAILURE_MESSAGES, OTPService, build_otp_service
from cims_otp.types import OTPFailure
from protos.v1 import otp_pb2_grpc

logger = get_logger(__name__)

SERVICE_NAME = "cims.otp.v1.PhoneVerification"

FAILURE_STATUS_CODES = {
    OTPFailure.INVALID_REQUEST: grpc.StatusCode.INVALID_ARGUMENT,
    OTPFailure.INVALID_PHONE_FORMAT: grpc.StatusCode.INVALID_ARGUMENT,
    OTPFailure.INVALID_ACTION: grpc.StatusCode.INVALID_ARGUMENT,
    OTPFailure.REGION_NOT_SUPPORTED: grpc.StatusCode.FAILED_PRECONDITION,
    OTPFailure.RATE_LIMITED: grpc.StatusCode.RESOURCE_EXHAUSTED,
    OTPFailure.TOO_MANY_ATTEMPTS: grpc.StatusCode.RESOURCE_EXHAUSTED,
    OTPFailure.EXPIRED: grpc.StatusCode.FAILED_PRECONDITION,
    OTPFailure.INVALID_CODE: grpc.StatusCode.UNAUTHENTICATED,
    OTPFailure.NOT_FOUND: grpc.StatusCode.NOT_FOUND,
    OTPFailure.DELIVERY_FAILED: grpc.StatusCode.UNAVAILABLE,
    OTPFailure.SERVICE_UNAVAILABLE: grpc.StatusCode.UNAVAILABLE,
}


class PhoneVerificationService(otp_pb2_grpc.PhoneVerificationServicer):
    """Phone Verification Service Descriptor"""

    _phone_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
        weakref.WeakValueDictionary()
    )
    _locks_lock: threading.Lock = threading.Lock()

    def __init__(self, otp_service: OTPService = None):
        self._otp_service = otp_service

    @property
    def otp_service(self) -> OTPService:
        """The OTP service, built from configuration on first use."""
        if self._otp_service is None:
            self._otp_service = build_otp_service()
        return self._otp_service

    @classmethod
    def _get_phone_lock(cls, phone_number: str) -> threading.Lock:
        """Get or create a lock for a phone number."""
        with cls._locks_lock:
            lock = cls._phone_locks.get(phone_number)
            if lock is None:
                lock = threading.Lock()
                cls._phone_locks[phone_number] = lock
                logger.debug("New phone lock created.")
            return lock

    def handle_create_grpc_error_response(
        self, context, response, error, status_code, **kwargs
    ):
        """Handles the creation of a gRPC error response."""
        user_msg = kwargs.get("user_msg")
        error_type = kwargs.get("error_type")
        reason = kwargs.get("reason")

        if not user_msg:
            user_msg = str(error)

        if error_type == "UNKNOWN":
            traceback.print_exception(type(error), error, error.__traceback__)
        else:
            logger.error(str(error))

        context.set_details(user_msg)
        context.set_code(status_code)

        return response(error=user_msg, reason=reason.value if reason else "")

    def handle_otp_failure(self, context, response, message, reason):
        """Converts a failed OTP service result into an error response."""
        return self.handle_create_grpc_error_response(
            context,
            response,
            f"OTP request rejected: {reason.value}",
            FAILURE_STATUS_CODES.get(reason, grpc.StatusCode.INTERNAL),
            user_msg=message,
            reason=reason,
        )

    def handle_unexpected_error(self, context, response, error):
        """Converts an unexpected exception into a service-unavailable response."""
        return self.handle_create_grpc_error_response(
            context,
            response,
            error,
            grpc.StatusCode.INTERNAL,
            user_msg=FAILURE_MESSAGES[OTPFailure.SERVICE_UNAVAILABLE],
            error_type="UNKNOWN",
            reason=OTPFailure.SERVICE_UNAVAILABLE,
        )

    def handle_request_field_validation(
        self, context, request, response, required_fields
    ):
        """Validates the required fields of a request."""
        for field in required_fields:
            if not getattr(request, field, None):
                if field == "phone":
                    user_msg = "Phone number is required"
                    reason = OTPFailure.INVALID_PHONE_FORMAT
                else:
                    user_msg = f"Missing required field: {field}"
                    reason = OTPFailure.INVALID_REQUEST
                return self.handle_create_grpc_error_response(
                    context,
                    response,
                    f"Missing required field: {field}",
                    grpc.StatusCode.INVALID_ARGUMENT,
                    user_msg=user_msg,
                    reason=reason,
                )

        return None

    def clean_phone_number(self, phone_number):
        """Cleans up the phone number by removing spaces."""
        return re.sub(r"\s+", "", phone_number)

    ProcessOTPRequest = ProcessOTPRequest
    IssueCode = IssueCode
    VerifyCode = VerifyCode
