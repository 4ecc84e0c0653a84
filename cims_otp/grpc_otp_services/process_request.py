# SPDX-License-Identifier: GPL-3.0-only
"""Action-dispatching OTP request gRPC service implementation."""

import grpc

from base_logger import get_logger
from cims_otp.otp_service import FAILURE_MESSAGES
from cims_otp.types import OTPAction, OTPFailure
from protos.v1 import otp_pb2

logger = get_logger(__name__)


def ProcessOTPRequest(self, request, context):
    """Handles an OTP request carrying an ``action`` of send or verify."""

    response = otp_pb2.OTPResponse

    try:
        invalid_fields = self.handle_request_field_validation(
            context, request, response, ["phone"]
        )
        if invalid_fields:
            return invalid_fields

        try:
            action = OTPAction(request.action)
        except ValueError:
            return self.handle_create_grpc_error_response(
                context,
                response,
                f"Unsupported action: {request.action!r}",
                grpc.StatusCode.INVALID_ARGUMENT,
                user_msg=FAILURE_MESSAGES[OTPFailure.INVALID_ACTION],
                reason=OTPFailure.INVALID_ACTION,
            )

        logger.debug("Dispatching OTP request for action: %s", action.value)

        if action == OTPAction.SEND:
            return self.IssueCode(request, context)
        return self.VerifyCode(request, context)

    except Exception as e:
        return self.handle_unexpected_error(context, response, e)
