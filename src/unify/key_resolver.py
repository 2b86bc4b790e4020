"""Composite key resolution with fuzzy time tolerance.

This module maps a record's identity to an existing aggregate or a new
in-memory one. Tolerance is checked pairwise against stored aggregates of
the same location and date, so the first record of a cluster fixes its key.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from core.constants import DEFAULT_TIME_TOLERANCE_MINUTES
from core.logging_config import get_logger
from core.types import AggregateRecord, MatchKind
from ingest.field_normalization import normalize_location, time_to_minutes
from store.aggregate_store import AggregateStore

_LOGGER = get_logger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one record identity.

    Attributes:
        aggregate: Stored aggregate, or a fresh unpersisted one.
        is_new: True when the aggregate has not been persisted yet.
        match: How the aggregate was found.
    """

    aggregate: AggregateRecord
    is_new: bool
    match: MatchKind


def build_composite_key(location: str, date: str, time: str) -> str:
    """Build the ``location_date_time`` identity of a sampling event."""
    return f"{location}_{date}_{time}"


def within_tolerance(first_time: str, second_time: str, tolerance_minutes: int) -> bool:
    """Return whether two same-day ``HH:MM`` times are within tolerance."""
    return abs(time_to_minutes(first_time) - time_to_minutes(second_time)) <= tolerance_minutes


class KeyResolver:
    """Find-or-create resolver for sampling-event aggregates."""

    def __init__(
        self,
        store: AggregateStore,
        tolerance_minutes: int = DEFAULT_TIME_TOLERANCE_MINUTES,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._tolerance_minutes = tolerance_minutes
        self._clock = clock or _utc_now

    async def resolve(self, location: str, date: str, time: str) -> Resolution:
        """Resolve a record identity to an aggregate.

        Args:
            location: Record location, normalized here again.
            date: Canonical ``YYYY-MM-DD`` date.
            time: Canonical ``HH:MM`` time.

        Returns:
            Resolution holding the matched or newly built aggregate.
        """
        normalized_location = normalize_location(location)
        composite_key = build_composite_key(normalized_location, date, time)
        exact = await self._store.get(composite_key)
        if exact is not None:
            return Resolution(aggregate=exact, is_new=False, match="exact")
        for candidate in await self._store.find_by_location_date(normalized_location, date):
            if within_tolerance(candidate.time, time, self._tolerance_minutes):
                _LOGGER.debug(
                    "tolerance_match",
                    composite_key=candidate.composite_key,
                    record_time=time,
                    tolerance_minutes=self._tolerance_minutes,
                )
                return Resolution(aggregate=candidate, is_new=False, match="tolerance")
        timestamp = self._clock()
        return Resolution(
            aggregate=AggregateRecord(
                composite_key=composite_key,
                location=normalized_location,
                date=date,
                time=time,
                created_at=timestamp,
                last_updated=timestamp,
            ),
            is_new=True,
            match="new",
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
