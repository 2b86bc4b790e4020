"""Unit tests for aggregate filtering."""

from __future__ import annotations

from datetime import datetime, timezone

from core.types import AggregateFilter, AggregateRecord, FishObservation
from store.aggregate_query import filter_aggregates

_NOW = datetime(2024, 1, 20, tzinfo=timezone.utc)


def _aggregate(location: str, date: str, time: str, *species: str) -> AggregateRecord:
    return AggregateRecord(
        composite_key=f"{location}_{date}_{time}",
        location=location,
        date=date,
        time=time,
        created_at=_NOW,
        last_updated=_NOW,
        fish=tuple(FishObservation(species=name) for name in species),
    )


_AGGREGATES = [
    _aggregate("Reef B", "2024-01-16", "14:00", "Sardine"),
    _aggregate("Reef A", "2024-01-15", "09:30", "Yellowfin Tuna"),
    _aggregate("Kelp Bed", "2024-01-14", "07:00"),
    _aggregate("Reef A", "2024-01-15", "08:00", "Snapper"),
]


def test_filter_without_constraints_sorts_by_date_and_time() -> None:
    """Unfiltered listings should be sorted ascending by date and time."""
    result = filter_aggregates(_AGGREGATES, AggregateFilter())

    assert [aggregate.composite_key for aggregate in result] == [
        "Kelp Bed_2024-01-14_07:00",
        "Reef A_2024-01-15_08:00",
        "Reef A_2024-01-15_09:30",
        "Reef B_2024-01-16_14:00",
    ]


def test_filter_location_is_case_insensitive_substring() -> None:
    """Location filters should match substrings ignoring case."""
    result = filter_aggregates(_AGGREGATES, AggregateFilter(location="reef a"))

    assert {aggregate.location for aggregate in result} == {"Reef A"} and len(result) == 2


def test_filter_date_range_is_inclusive() -> None:
    """Both date bounds should be inclusive."""
    result = filter_aggregates(
        _AGGREGATES, AggregateFilter(date_start="2024-01-15", date_end="2024-01-16")
    )

    assert [aggregate.date for aggregate in result] == ["2024-01-15", "2024-01-15", "2024-01-16"]


def test_filter_species_matches_fish_entries() -> None:
    """Species filters should match fish species substrings ignoring case."""
    result = filter_aggregates(_AGGREGATES, AggregateFilter(species="TUNA"))

    assert [aggregate.composite_key for aggregate in result] == ["Reef A_2024-01-15_09:30"]


def test_filter_caps_results_at_limit() -> None:
    """Limit should cap the sorted result list."""
    result = filter_aggregates(_AGGREGATES, AggregateFilter(limit=1))

    assert [aggregate.location for aggregate in result] == ["Kelp Bed"]
