"""Input clean-up applied to client-supplied booking fields."""

import re
from typing import Optional

_WHITESPACE = re.compile(r"\s+")
_NON_DIGITS = re.compile(r"\D")
_NAME_DISALLOWED = re.compile(r"[^\w\s\u00C0-\u017F'.-]")
_SCRIPT_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)

DEFAULT_COUNTRY_CODE = "55"


def sanitize_name(name: str) -> str:
    """Collapse whitespace and drop markup characters from a person's name."""
    cleaned = _NAME_DISALLOWED.sub("", name)
    return _WHITESPACE.sub(" ", cleaned).strip()


def sanitize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Digits only, with the country code prefixed to bare national numbers.

    10 or 11 digit numbers are treated as national (area code + number).
    """
    if phone is None:
        return None
    digits = _NON_DIGITS.sub("", phone)
    if not digits:
        return None
    if len(digits) in (10, 11):
        return DEFAULT_COUNTRY_CODE + digits
    return digits


def sanitize_text(value: Optional[str]) -> Optional[str]:
    """Strip angle brackets, script URLs and inline handlers from free text."""
    if value is None:
        return None
    cleaned = value.replace("<", "").replace(">", "")
    cleaned = _SCRIPT_SCHEME.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    cleaned = cleaned.strip()
    return cleaned or None
