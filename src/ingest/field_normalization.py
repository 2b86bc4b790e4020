"""Field-level normalization helpers.

This module converts raw location, date, time, and numeric strings into
canonical forms. Every helper degrades to ``None`` instead of raising so
one malformed value never aborts a record.
"""

from __future__ import annotations

from datetime import datetime
import math
import re
from typing import Sequence

from core.constants import UNKNOWN_LOCATION

_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_US_DATE_PATTERN = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_MERIDIEM_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?\s*([AaPp])\.?[Mm]\.?$")
_GENERIC_DATE_FORMATS = (
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%Y%m%d",
)


def normalize_location(value: object) -> str:
    """Trim and collapse whitespace in a location name.

    Args:
        value: Raw location value.

    Returns:
        Normalized location, or ``"Unknown"`` when empty.
    """
    if value is None:
        return UNKNOWN_LOCATION
    collapsed = " ".join(str(value).split())
    return collapsed or UNKNOWN_LOCATION


def normalize_date(value: object) -> str | None:
    """Normalize a raw date to ``YYYY-MM-DD``.

    Accepts ISO dates unchanged, ``MM/DD/YYYY`` and ``MM-DD-YYYY``, then
    falls back to ISO datetimes and a short list of written formats.

    Args:
        value: Raw date value.

    Returns:
        Canonical date string, or ``None`` when unparseable.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if _ISO_DATE_PATTERN.match(text):
        return text if _is_valid_date(text) else None
    us_match = _US_DATE_PATTERN.match(text)
    if us_match:
        month, day, year = us_match.groups()
        candidate = f"{year}-{int(month):02d}-{int(day):02d}"
        return candidate if _is_valid_date(candidate) else None
    return _parse_generic_date(text)


def normalize_time(value: object) -> str | None:
    """Normalize a raw time to ``HH:MM``.

    Seconds are truncated, single-digit hours are padded, and 12-hour
    clock values with an AM/PM suffix are converted.

    Args:
        value: Raw time value.

    Returns:
        Canonical time string, or ``None`` when unparseable.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    clock_match = _CLOCK_PATTERN.match(text)
    if clock_match:
        return _format_clock(int(clock_match.group(1)), int(clock_match.group(2)))
    meridiem_match = _MERIDIEM_PATTERN.match(text)
    if meridiem_match:
        hour = int(meridiem_match.group(1))
        minute = int(meridiem_match.group(2))
        if hour < 1 or hour > 12:
            return None
        is_pm = meridiem_match.group(3).lower() == "p"
        hour = hour % 12 + (12 if is_pm else 0)
        return _format_clock(hour, minute)
    return None


def time_to_minutes(time_value: str) -> int:
    """Convert canonical ``HH:MM`` to minutes since midnight."""
    hours, minutes = time_value.split(":")
    return int(hours) * 60 + int(minutes)


def parse_number(value: object) -> float | None:
    """Parse a numeric value without raising.

    Args:
        value: Raw numeric candidate.

    Returns:
        Finite float, or ``None`` for empty, missing, or non-numeric input.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_integer(value: object) -> int | None:
    """Parse a count-like value, truncating fractional parts."""
    number = parse_number(value)
    if number is None:
        return None
    return int(number)


def find_column(headers: Sequence[str], candidates: Sequence[str]) -> str | None:
    """Find the header representing a semantic field.

    Candidates are tried in order; for each one, the first header that
    contains it (case-insensitive) wins.

    Args:
        headers: Source column names.
        candidates: Priority-ordered substrings for the field.

    Returns:
        Matching header name, or ``None`` when no header matches.
    """
    lowered_headers = [(header, header.lower()) for header in headers if header]
    for candidate in candidates:
        lowered_candidate = candidate.lower()
        for header, lowered_header in lowered_headers:
            if lowered_candidate in lowered_header:
                return header
    return None


def clean_text(value: object) -> str | None:
    """Return stripped text, or ``None`` for empty values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _format_clock(hour: int, minute: int) -> str | None:
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def _is_valid_date(iso_text: str) -> bool:
    try:
        datetime.strptime(iso_text, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def _parse_generic_date(text: str) -> str | None:
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass
    for date_format in _GENERIC_DATE_FORMATS:
        try:
            return datetime.strptime(text, date_format).date().isoformat()
        except ValueError:
            continue
    return None
