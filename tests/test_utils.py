"""Test module for utility helpers."""

import pytest

from cims_otp.utils import (
    get_bool_config,
    get_configs,
    get_int_config,
    get_list_config,
    is_valid_phone_number,
    mask_phone_number,
    set_configs,
)


@pytest.mark.parametrize(
    "phone_number",
    ["+15551234567", "+442071234567", "+2348031234567", "+12", "+123456789012345"],
)
def test_valid_phone_numbers(phone_number):
    assert is_valid_phone_number(phone_number) is True


@pytest.mark.parametrize(
    "phone_number",
    [
        "15551234567",
        "+05551234567",
        "+1",
        "+1234567890123456",
        "+1 555 123 4567",
        "+1555-123-4567",
        "+15551234567\n",
        "+1٥٥٥١٢٣٤٥٦٧",
        "+१५५५1234567",
        "+１5551234567",
        "",
        None,
        15551234567,
    ],
)
def test_invalid_phone_numbers(phone_number):
    assert is_valid_phone_number(phone_number) is False


def test_phone_number_length_bounds():
    """Country code digit plus 1 to 14 more: 2 to 15 digits in total."""
    assert is_valid_phone_number("+1") is False
    assert is_valid_phone_number("+12") is True
    assert is_valid_phone_number("+1" + "2" * 14) is True
    assert is_valid_phone_number("+1" + "2" * 15) is False


def test_mask_phone_number():
    assert mask_phone_number("+15551234567") == "+1555***4567"
    assert mask_phone_number("+1234") == "+1***"
    assert mask_phone_number(None) == "<none>"


def test_get_configs(monkeypatch):
    monkeypatch.delenv("OTP_TEST_SETTING", raising=False)
    assert get_configs("OTP_TEST_SETTING", default_value="fallback") == "fallback"

    with pytest.raises(KeyError):
        get_configs("OTP_TEST_SETTING", strict=True)

    monkeypatch.setenv("OTP_TEST_SETTING", "  ")
    with pytest.raises(ValueError):
        get_configs("OTP_TEST_SETTING", strict=True)


def test_get_int_config(monkeypatch):
    monkeypatch.delenv("OTP_TEST_INT", raising=False)
    assert get_int_config("OTP_TEST_INT", 5) == 5

    monkeypatch.setenv("OTP_TEST_INT", "15")
    assert get_int_config("OTP_TEST_INT", 5) == 15

    monkeypatch.setenv("OTP_TEST_INT", "fifteen")
    assert get_int_config("OTP_TEST_INT", 5) == 5


@pytest.mark.parametrize(
    "value, expected",
    [("true", True), ("ON", True), ("1", True), ("no", False), ("maybe", False)],
)
def test_get_bool_config(monkeypatch, value, expected):
    monkeypatch.setenv("OTP_TEST_BOOL", value)
    assert get_bool_config("OTP_TEST_BOOL") is expected


def test_get_list_config(monkeypatch):
    monkeypatch.setenv("OTP_TEST_LIST", "['ng', \"gh\", ke]")
    assert get_list_config("OTP_TEST_LIST") == ["NG", "GH", "KE"]

    monkeypatch.delenv("OTP_TEST_LIST")
    assert get_list_config("OTP_TEST_LIST") == []


def test_set_configs(monkeypatch):
    monkeypatch.delenv("OTP_TEST_FLAG", raising=False)
    set_configs("OTP_TEST_FLAG", True)
    assert get_configs("OTP_TEST_FLAG") == "true"
    monkeypatch.delenv("OTP_TEST_FLAG")

    with pytest.raises(ValueError):
        set_configs("", "value")
