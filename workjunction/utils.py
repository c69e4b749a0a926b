"""Shared utilities used across the booking core."""

import re
from datetime import date, datetime

_TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})$")
_TIME_12H = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("98765 43210")
        '9876543210'
        >>> normalize_phone("+91 (987) 654-3210")
        '+919876543210'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def normalize_time(value: str) -> str:
    """Normalize a 24h ``H:MM`` or 12h ``hh:MM AM`` time to ``HH:MM``.

    Raises:
        ValueError: If the value is not a recognisable clock time.

    Examples:
        >>> normalize_time("9:00")
        '09:00'
        >>> normalize_time("01:30 PM")
        '13:30'
    """
    raw = value.strip()
    match = _TIME_24H.match(raw)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
    else:
        match = _TIME_12H.match(raw)
        if not match:
            raise ValueError(f"Unrecognised time: {value!r}")
        hour, minute = int(match.group(1)), int(match.group(2))
        if not 1 <= hour <= 12:
            raise ValueError(f"Unrecognised time: {value!r}")
        meridiem = match.group(3).upper()
        if meridiem == "AM":
            hour = 0 if hour == 12 else hour
        else:
            hour = 12 if hour == 12 else hour + 12
    if hour > 23 or minute > 59:
        raise ValueError(f"Unrecognised time: {value!r}")
    return f"{hour:02d}:{minute:02d}"


def time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight. ``24:00`` is allowed as an end bound."""
    if value.strip() == "24:00":
        return 24 * 60
    hours, minutes = normalize_time(value).split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` date string."""
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()
