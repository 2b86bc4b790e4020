"""Unit tests for field-level normalization helpers."""

from __future__ import annotations

import pytest

from ingest.field_normalization import (
    find_column,
    normalize_date,
    normalize_location,
    normalize_time,
    parse_integer,
    parse_number,
    time_to_minutes,
)


def test_normalize_location_collapses_whitespace() -> None:
    """Location should be trimmed with inner whitespace collapsed."""
    assert normalize_location("  Reef   A \t") == "Reef A"


@pytest.mark.parametrize("value", [None, "", "   "])
def test_normalize_location_defaults_to_unknown(value: object) -> None:
    """Empty locations should fall back to Unknown."""
    assert normalize_location(value) == "Unknown"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-01-15", "2024-01-15"),
        ("01/15/2024", "2024-01-15"),
        ("1/5/2024", "2024-01-05"),
        ("01-15-2024", "2024-01-15"),
        ("2024-01-15T09:30:00Z", "2024-01-15"),
        ("2024/01/15", "2024-01-15"),
        ("15 Jan 2024", "2024-01-15"),
        ("January 15, 2024", "2024-01-15"),
    ],
)
def test_normalize_date_accepts_supported_formats(raw: str, expected: str) -> None:
    """Supported date formats should normalize to YYYY-MM-DD."""
    assert normalize_date(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "not a date", "13/45/2024", "2024-02-30"])
def test_normalize_date_returns_none_for_invalid_values(raw: object) -> None:
    """Unparseable dates should become None instead of raising."""
    assert normalize_date(raw) is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("09:30", "09:30"),
        ("9:30", "09:30"),
        ("09:30:59", "09:30"),
        ("2:15 PM", "14:15"),
        ("12:05 am", "00:05"),
        ("12:00 p.m.", "12:00"),
    ],
)
def test_normalize_time_accepts_supported_formats(raw: str, expected: str) -> None:
    """Supported time formats should normalize to HH:MM."""
    assert normalize_time(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "24:00", "10:60", "noon", "13:00 PM"])
def test_normalize_time_returns_none_for_invalid_values(raw: object) -> None:
    """Out-of-range or unparseable times should become None."""
    assert normalize_time(raw) is None


def test_time_to_minutes_counts_from_midnight() -> None:
    """HH:MM should convert to minutes since midnight."""
    assert time_to_minutes("10:05") == 605


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("27.5", 27.5), (" 12 ", 12.0), (3, 3.0), ("", None), ("abc", None), ("nan", None),
     ("inf", None), (None, None), (True, None)],
)
def test_parse_number_never_raises(raw: object, expected: float | None) -> None:
    """Numeric parsing should return finite floats or None."""
    assert parse_number(raw) == expected


def test_parse_integer_truncates_fractions() -> None:
    """Count-like values should truncate to integers."""
    assert parse_integer("12.9") == 12 and parse_integer("x") is None


def test_find_column_prefers_candidate_order_over_header_order() -> None:
    """Earlier candidates should win even when a later one matches first."""
    headers = ["Temp_Probe_Id", "Water_Temperature", "Date"]

    assert find_column(headers, ("temperature", "temp")) == "Water_Temperature"


def test_find_column_returns_none_when_absent() -> None:
    """Missing semantic columns should resolve to None."""
    assert find_column(["species", "count"], ("date",)) is None
