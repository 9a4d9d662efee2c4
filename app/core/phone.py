"""Phone number utilities used as the contact dedup key."""

import re

_NON_DIGITS = re.compile(r"\D")


class InvalidPhoneError(ValueError):
    """Raised when a phone number cannot be normalized to +1XXXXXXXXXX."""

    def __init__(self, raw: str | None) -> None:
        self.raw = raw
        super().__init__(f"Invalid phone number: {raw!r}")


def normalize_phone(phone: str | None) -> str:
    """Normalize a US phone number to E.164 (+1XXXXXXXXXX).

    Handles various input formats:
        (281)788-2316   → +12817882316
        281-788-2316    → +12817882316
        +1 281 788 2316 → +12817882316
        1-281-788-2316  → +12817882316

    Anything that does not reduce to 10 digits, or 11 digits with a leading
    country code of 1, is rejected. The result is never partially normalized.

    Raises:
        InvalidPhoneError: If the input cannot be normalized
    """
    if not phone:
        raise InvalidPhoneError(phone)

    digits = _NON_DIGITS.sub("", phone)

    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"

    raise InvalidPhoneError(phone)


def try_normalize_phone(phone: str | None) -> str | None:
    """Normalize a phone number, returning None instead of raising."""
    try:
        return normalize_phone(phone)
    except InvalidPhoneError:
        return None


def format_phone_for_display(phone: str) -> str:
    """Format a normalized phone as (XXX) XXX-XXXX.

    Values that are not in +1XXXXXXXXXX form are returned unchanged.
    """
    if not phone.startswith("+1") or len(phone) != 12:
        return phone
    digits = phone[2:]
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
