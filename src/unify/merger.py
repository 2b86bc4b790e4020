"""Category-aware merging of canonical records into aggregates.

This module folds one record's payload into its aggregate and persists the
result. Fish, otolith, eDNA, and uncategorized payloads are appended; ocean
readings overwrite the latest snapshot and extend the reading history.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from core.types import (
    AggregateRecord,
    CanonicalRecord,
    DataFile,
    EdnaMatch,
    FishObservation,
    GenericPayload,
    MetadataRef,
    OceanObservation,
    OceanReading,
    OceanSnapshot,
    OtolithFeatures,
)
from ingest.field_normalization import parse_integer, parse_number
from store.aggregate_store import AggregateStore

Clock = Callable[[], datetime]

_MISSING_TEXT = "N/A"


class UnificationMerger:
    """Merge records into aggregates and persist them."""

    def __init__(self, store: AggregateStore, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or _utc_now

    async def merge(
        self,
        aggregate: AggregateRecord,
        record: CanonicalRecord,
        source_file: DataFile,
        is_new: bool,
    ) -> AggregateRecord:
        """Merge one record into an aggregate and persist it.

        Args:
            aggregate: Resolved aggregate, stored or freshly built.
            record: Canonical record to fold in.
            source_file: Registered file the record came from.
            is_new: Whether the aggregate must be inserted rather than replaced.

        Returns:
            Persisted aggregate.

        Raises:
            AggregateWriteConflict: If a new aggregate's key was created
                concurrently or the stored aggregate changed since it was read.
        """
        merged = merge_record(aggregate, record, source_file, self._clock())
        if is_new:
            await self._store.insert(merged)
        else:
            await self._store.replace(merged)
        return merged


def merge_record(
    aggregate: AggregateRecord,
    record: CanonicalRecord,
    source_file: DataFile,
    merged_at: datetime,
) -> AggregateRecord:
    """Return a new aggregate with one record folded in.

    Args:
        aggregate: Aggregate to extend.
        record: Canonical record.
        source_file: Contributing file for provenance.
        merged_at: Timestamp stamped on the merge.

    Returns:
        Updated aggregate, not persisted.
    """
    merged = replace(
        aggregate,
        metadata_refs=_with_metadata_ref(aggregate.metadata_refs, source_file),
        last_updated=merged_at,
        revision=aggregate.revision + 1,
    )
    payload = record.payload
    if isinstance(payload, FishObservation):
        entry = FishObservation(
            species=payload.species or _MISSING_TEXT,
            length_cm=parse_number(payload.length_cm),
            weight_g=parse_number(payload.weight_g),
            abundance=parse_integer(payload.abundance),
            age=parse_integer(payload.age),
            notes=payload.notes or "",
            source_file=source_file.original_name,
        )
        return replace(merged, fish=merged.fish + (entry,))
    if isinstance(payload, OceanReading):
        reading = OceanReading(
            temperature=parse_number(payload.temperature),
            salinity=parse_number(payload.salinity),
            dissolved_oxygen=parse_number(payload.dissolved_oxygen),
            pH=parse_number(payload.pH),
            depth_m=parse_number(payload.depth_m),
            turbidity=parse_number(payload.turbidity),
            notes=payload.notes or "",
        )
        observation = OceanObservation(time=record.time, reading=reading, recorded_at=merged_at)
        return replace(
            merged,
            ocean=OceanSnapshot(reading=reading, last_updated=merged_at),
            ocean_observations=merged.ocean_observations + (observation,),
        )
    if isinstance(payload, OtolithFeatures):
        entry = OtolithFeatures(
            image_file=payload.image_file or source_file.original_name,
            circularity=parse_number(payload.circularity),
            area=parse_number(payload.area),
            perimeter=parse_number(payload.perimeter),
            aspect_ratio=parse_number(payload.aspect_ratio),
            volume=parse_number(payload.volume),
            notes=payload.notes or "",
        )
        return replace(merged, otolith_features=merged.otolith_features + (entry,))
    if isinstance(payload, EdnaMatch):
        entry = EdnaMatch(
            sequence_id=payload.sequence_id or _MISSING_TEXT,
            matched_species=payload.matched_species or _MISSING_TEXT,
            notes=payload.notes or "",
        )
        return replace(merged, edna=merged.edna + (entry,))
    generic = (
        payload
        if isinstance(payload, GenericPayload)
        else GenericPayload(category=record.category)
    )
    return replace(merged, other=merged.other + (generic,))


def _with_metadata_ref(
    metadata_refs: tuple[MetadataRef, ...],
    source_file: DataFile,
) -> tuple[MetadataRef, ...]:
    if any(ref.source_file_id == source_file.file_id for ref in metadata_refs):
        return metadata_refs
    return metadata_refs + (
        MetadataRef(
            source_file_id=source_file.file_id,
            source_file_name=source_file.original_name,
            category=source_file.category,
        ),
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
