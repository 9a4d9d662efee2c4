"""Tests for phone normalization."""

import pytest

from app.core.phone import (
    InvalidPhoneError,
    format_phone_for_display,
    normalize_phone,
    try_normalize_phone,
)


@pytest.mark.parametrize(
    "raw",
    [
        "(281)788-2316",
        "281-788-2316",
        "281.788.2316",
        "2817882316",
        "+1 281 788 2316",
        "1-281-788-2316",
        "+12817882316",
    ],
)
def test_common_formats_normalize_to_e164(raw):
    assert normalize_phone(raw) == "+12817882316"


def test_normalization_is_idempotent():
    assert normalize_phone(normalize_phone("(281) 788-2316")) == "+12817882316"


@pytest.mark.parametrize(
    "raw",
    [
        "",
        None,
        "12345",
        "281-788-231",
        "22817882316",  # 11 digits without the US country code
        "+44 20 7946 0958",
        "call me",
    ],
)
def test_invalid_phones_are_rejected(raw):
    with pytest.raises(InvalidPhoneError):
        normalize_phone(raw)


def test_invalid_phone_error_keeps_raw_value():
    with pytest.raises(InvalidPhoneError) as exc_info:
        normalize_phone("555")
    assert exc_info.value.raw == "555"


def test_try_normalize_returns_none_on_invalid():
    assert try_normalize_phone("555") is None
    assert try_normalize_phone("281 788 2316") == "+12817882316"


def test_format_phone_for_display():
    assert format_phone_for_display("+12817882316") == "(281) 788-2316"
    assert format_phone_for_display("not-a-phone") == "not-a-phone"
