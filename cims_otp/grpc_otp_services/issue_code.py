# SPDX-License-Identifier: GPL-3.0-only
"""Issue Code gRPC service implementation."""

from base_logger import get_logger
from protos.v1 import otp_pb2

logger = get_logger(__name__)


def IssueCode(self, request, context):
    """Handles issuing an OTP to a phone number."""

    response = otp_pb2.OTPResponse

    try:
        invalid_fields = self.handle_request_field_validation(
            context, request, response, ["phone"]
        )
        if invalid_fields:
            return invalid_fields

        phone_number = self.clean_phone_number(request.phone)

        with self._get_phone_lock(phone_number):
            success, message, reason = self.otp_service.issue_code(phone_number)

        if not success:
            return self.handle_otp_failure(context, response, message, reason)

        return response(success=True, message=message)

    except Exception as e:
        return self.handle_unexpected_error(context, response, e)
