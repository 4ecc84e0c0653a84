# SPDX-License-Identifier: GPL-3.0-only
"""Peewee Database Models."""

import datetime

from peewee import (
    BooleanField,
    CharField,
    DateTimeField,
    IntegerField,
    Model,
)

from cims_otp.db import connect

database = connect()


class BaseModel(Model):
    """Base model bound to the configured database."""

    class Meta:
        database = database


class OTP(BaseModel):
    """Model representing the one live OTP for a phone number."""

    phone_number = CharField(max_length=32, unique=True)
    otp_code = CharField(max_length=6)
    date_expires = DateTimeField()
    attempt_count = IntegerField(default=0)
    is_verified = BooleanField(default=False)
    date_verified = DateTimeField(null=True)
    version = IntegerField(default=0)
    date_created = DateTimeField(default=datetime.datetime.now)

    class Meta:
        table_name = "otp"


class OTPIssuance(BaseModel):
    """Model logging every accepted OTP issuance, for rate limiting."""

    phone_number = CharField(max_length=32, index=True)
    date_created = DateTimeField(default=datetime.datetime.now, index=True)

    class Meta:
        table_name = "otp_issuance"
        indexes = ((("phone_number", "date_created"), False),)
