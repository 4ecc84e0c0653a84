"""
This program is free software: you can redistribute it under the terms
of the GNU General Public License, v. 3.0. If a copy of the GNU General
Public License was not distributed with this file, see <https://www.gnu.org/licenses/>.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import phonenumbers
import requests
from phonenumbers import geocoder
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from base_logger import get_logger
from cims_otp.types import SMSProviderName
from cims_otp.utils import (
    get_bool_config,
    get_configs,
    get_list_config,
    mask_phone_number,
)

TWILIO_SUCCESS_STATUSES = ("accepted", "queued", "sending", "sent", "delivered")
QUEUEDROID_DEFAULT_API_URL = "https://api.queuedroid.com/v1/messages/send"

logger = get_logger(__name__)


class SMSConfigurationError(Exception):
    """Raised when an SMS provider is missing required configuration."""


class SMSProvider(ABC):
    """Base class for outbound SMS providers."""

    @abstractmethod
    def send(self, phone_number: str, message: str) -> bool:
        """
        Send a text message.

        Args:
            phone_number (str): The recipient's phone number in E.164 format.
            message (str): The message body.

        Returns:
            bool: True if the provider accepted the message, False otherwise.
        """

    def check_configuration(self, phone_number: Optional[str] = None) -> None:
        """Raise SMSConfigurationError if the provider cannot send to the recipient."""


class TwilioSMSProvider(SMSProvider):
    """SMS delivery through the Twilio Messages API."""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        client: Optional[Client] = None,
    ):
        self.account_sid = account_sid or get_configs("TWILIO_ACCOUNT_SID")
        self.auth_token = auth_token or get_configs("TWILIO_AUTH_TOKEN")
        self.from_number = from_number or get_configs("TWILIO_PHONE_NUMBER")
        self._client = client

    @property
    def client(self) -> Client:
        """Lazily created Twilio REST client."""
        if self._client is None:
            if not (self.account_sid and self.auth_token and self.from_number):
                logger.error("Missing Twilio credentials")
                raise SMSConfigurationError("SMS service not configured")
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def check_configuration(self, phone_number=None):
        _ = self.client

    def send(self, phone_number, message):
        client = self.client

        try:
            sent_message = client.messages.create(
                body=message, from_=self.from_number, to=phone_number
            )
        except TwilioRestException as e:
            logger.error("Twilio error: %s", e)
            return False

        if sent_message.status in TWILIO_SUCCESS_STATUSES:
            logger.info("SMS sent via Twilio to %s", mask_phone_number(phone_number))
            return True

        logger.error("Twilio send failed: %s", sent_message.status)
        return False


class QueuedroidSMSProvider(SMSProvider):
    """SMS delivery through the Queuedroid HTTP API."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        exchange_id: Optional[str] = None,
        queue_id: Optional[str] = None,
        timeout: int = 10,
    ):
        self.api_url = api_url or get_configs(
            "QUEUEDROID_API_URL", default_value=QUEUEDROID_DEFAULT_API_URL
        )
        self.api_key = api_key or get_configs("QUEUEDROID_API_KEY")
        self.exchange_id = exchange_id or get_configs("QUEUEDROID_EXCHANGE_ID")
        self.queue_id = queue_id or get_configs("QUEUEDROID_QUEUE_ID")
        self.timeout = timeout

    def check_configuration(self, phone_number=None):
        if not self.api_key:
            logger.error("Missing Queuedroid API key")
            raise SMSConfigurationError("SMS service not configured")

    def send(self, phone_number, message):
        self.check_configuration()

        try:
            data = {
                "content": message,
                "exchange_id": self.exchange_id,
                "queue_id": self.queue_id,
                "phone_number": phone_number,
            }
            headers = {"Authorization": f"Bearer {self.api_key}"}
            response = requests.post(
                self.api_url, json=data, headers=headers, timeout=self.timeout
            )

            if response.ok:
                logger.info("Message sent successfully via Queuedroid.")
                return True
            response.raise_for_status()
            return False
        except requests.RequestException as exc:
            logger.error("Error sending message via Queuedroid: %s", exc)
            return False


class MockSMSProvider(SMSProvider):
    """Accepts every message without sending it. For testing."""

    def send(self, phone_number, message):
        logger.info("Mock SMS accepted for %s", mask_phone_number(phone_number))
        return True


class RoutingSMSProvider(SMSProvider):
    """Pick a provider per message based on the recipient.

    Dummy numbers go to the mock provider, regions supported by Queuedroid
    go to Queuedroid, everything else goes to the default provider.
    """

    def __init__(
        self,
        default: SMSProvider,
        queuedroid: Optional[SMSProvider] = None,
        queuedroid_region_codes: Optional[List[str]] = None,
        dummy_phone_numbers: Optional[List[str]] = None,
        mock: Optional[SMSProvider] = None,
    ):
        self.default = default
        self.queuedroid = queuedroid
        self.queuedroid_region_codes = queuedroid_region_codes or []
        self.dummy_phone_numbers = dummy_phone_numbers or []
        self.mock = mock or MockSMSProvider()

    def select(self, phone_number: str) -> SMSProvider:
        """Return the provider that should deliver to ``phone_number``."""
        if phone_number in self.dummy_phone_numbers:
            return self.mock

        if self.queuedroid and self.queuedroid_region_codes:
            region_code, _ = get_phonenumber_region_code(phone_number)
            if region_code in self.queuedroid_region_codes:
                return self.queuedroid

        return self.default

    def check_configuration(self, phone_number=None):
        if phone_number is not None:
            self.select(phone_number).check_configuration(phone_number)
            return

        self.default.check_configuration()
        if self.queuedroid and self.queuedroid_region_codes:
            self.queuedroid.check_configuration()

    def send(self, phone_number, message):
        return self.select(phone_number).send(phone_number, message)


def get_phonenumber_region_code(phone_number: str) -> tuple:
    """
    Get the region code for a given phone number.

    Args:
        phone_number (str): The phone number in E.164 format.

    Returns:
        tuple: A tuple containing the region code (str) and country name (str).
            Both are None if the number cannot be parsed.
    """
    try:
        parsed_number = phonenumbers.parse(phone_number)
    except phonenumbers.NumberParseException as e:
        logger.warning("Unable to parse phone number for region lookup: %s", e)
        return None, None

    region_code = geocoder.region_code_for_number(parsed_number)
    country_name = geocoder.description_for_number(parsed_number, "en")
    return region_code, country_name


def build_sms_provider(provider_name: Optional[str] = None) -> SMSProvider:
    """
    Build the SMS provider selected by configuration.

    Args:
        provider_name (str, optional): One of twilio, queuedroid, routing or
            mock. Defaults to the SMS_PROVIDER setting.

    Returns:
        SMSProvider: The configured provider.
    """
    if get_bool_config("MOCK_OTP"):
        logger.info("MOCK_OTP enabled, using mock SMS provider")
        return MockSMSProvider()

    name = SMSProviderName(
        (provider_name or get_configs("SMS_PROVIDER", default_value="twilio")).lower()
    )
    dummy_phone_numbers = [
        number.strip()
        for number in get_configs(
            "DUMMY_PHONENUMBERS", default_value="+15550000000"
        ).split(",")
        if number.strip()
    ]

    if name == SMSProviderName.MOCK:
        return MockSMSProvider()
    if name == SMSProviderName.QUEUEDROID:
        default = QueuedroidSMSProvider()
    else:
        default = TwilioSMSProvider()

    if name == SMSProviderName.ROUTING:
        return RoutingSMSProvider(
            default=default,
            queuedroid=QueuedroidSMSProvider(),
            queuedroid_region_codes=get_list_config(
                "QUEUEDROID_SUPPORTED_VERIFICATION_REGION_CODES"
            ),
            dummy_phone_numbers=dummy_phone_numbers,
        )

    return RoutingSMSProvider(default=default, dummy_phone_numbers=dummy_phone_numbers)
