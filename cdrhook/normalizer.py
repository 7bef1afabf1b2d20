# =====================================================================
# Field Normalization Functions
# =====================================================================

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import phonenumbers

from cdrhook.config import logger


class _Undefined:
    """Marker for a field whose raw value was not text at all."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Cleaned = Union[str, None, _Undefined]


def clean_text(value: Any, prefix: str = "") -> Cleaned:
    """
    Trim a raw CDR field and strip the technical prefix from it.

    Returns None when nothing is left and UNDEFINED when the input
    is not a string.
    """
    if not isinstance(value, str):
        return UNDEFINED

    value = value.strip()
    if prefix:
        value = value.replace(prefix, "", 1)

    if len(value) == 0:
        return None

    return value


def clean_phone(value: Any, prefix: str = "", region: str = "US") -> Cleaned:
    """
    Clean a phone number and format it as E.164.

    Numbers that cannot be parsed are passed through as cleaned text.
    """
    value = clean_text(value, prefix)
    if not isinstance(value, str):
        return value

    try:
        number = phonenumbers.parse(value, region)
        return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)
    except phonenumbers.NumberParseException as e:
        logger.error(f"Could not parse phone number {value!r}: {e}")
        return value


def clean_date(value: Any) -> Optional[datetime]:
    """Convert a CDR microsecond timestamp to an aware UTC datetime."""
    try:
        millis = int(value) // 1000
    except (TypeError, ValueError):
        return None

    if millis <= 0:
        return None

    try:
        return EPOCH + timedelta(milliseconds=millis)
    except OverflowError:
        return None
