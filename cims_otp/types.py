# SPDX-License-Identifier: GPL-3.0-only
"""Common type definitions for the application."""

from enum import Enum


class OTPAction(Enum):
    """Actions accepted by the OTP request boundary."""

    SEND = "send"
    VERIFY = "verify"


class OTPFailure(Enum):
    """Reasons an OTP request can fail."""

    INVALID_REQUEST = "invalid_request"
    INVALID_PHONE_FORMAT = "invalid_phone_format"
    INVALID_ACTION = "invalid_action"
    REGION_NOT_SUPPORTED = "region_not_supported"
    RATE_LIMITED = "rate_limited"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    EXPIRED = "expired"
    INVALID_CODE = "invalid_code"
    NOT_FOUND = "not_found"
    DELIVERY_FAILED = "delivery_failed"
    SERVICE_UNAVAILABLE = "service_unavailable"


class SMSProviderName(Enum):
    """Supported SMS providers."""

    TWILIO = "twilio"
    QUEUEDROID = "queuedroid"
    ROUTING = "routing"
    MOCK = "mock"
