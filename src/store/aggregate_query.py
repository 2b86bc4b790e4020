"""Aggregate filtering helpers.

This module applies listing constraints to stored aggregates.
It keeps filtering logic reusable across SDK listing and export flows.
"""

from __future__ import annotations

from core.types import AggregateFilter, AggregateRecord


def filter_aggregates(
    aggregates: list[AggregateRecord],
    filter_spec: AggregateFilter,
) -> list[AggregateRecord]:
    """Filter, sort, and cap aggregates.

    Args:
        aggregates: Input aggregates to filter.
        filter_spec: Filter constraints.

    Returns:
        Matching aggregates sorted by date and time, at most ``limit`` long.
    """
    location_needle = filter_spec.location.lower() if filter_spec.location else None
    species_needle = filter_spec.species.lower() if filter_spec.species else None
    filtered: list[AggregateRecord] = []
    for aggregate in aggregates:
        if location_needle and location_needle not in aggregate.location.lower():
            continue
        if filter_spec.date_start and aggregate.date < filter_spec.date_start:
            continue
        if filter_spec.date_end and aggregate.date > filter_spec.date_end:
            continue
        if species_needle:
            if not any(species_needle in (entry.species or "").lower() for entry in aggregate.fish):
                continue
        filtered.append(aggregate)
    filtered.sort(key=lambda aggregate: (aggregate.date, aggregate.time))
    return filtered[: max(filter_spec.limit, 0)]
