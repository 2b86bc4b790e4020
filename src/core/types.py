"""Shared typed models.

This module defines immutable data models used by ingest, unify, store,
SDK, and CLI layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Mapping, Union

from core.constants import DEFAULT_QUERY_LIMIT

FileStatus = Literal["pending", "processing", "completed", "failed"]
FileType = Literal["csv", "excel", "json", "image", "pdf", "word", "text", "archive", "other"]
MatchKind = Literal["exact", "tolerance", "new"]


@dataclass(frozen=True)
class TabularPayload:
    """Raw rows extracted from CSV, Excel, or delimited text.

    Attributes:
        headers: Column names in source order.
        rows: One mapping of header to raw string value per input row.
        error: Extraction failure message, if any.
    """

    headers: tuple[str, ...] = ()
    rows: tuple[Mapping[str, str], ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class TextPayload:
    """Raw text extracted from documents, OCR, or archives."""

    text: str = ""
    error: str | None = None


@dataclass(frozen=True)
class ItemsPayload:
    """Raw objects extracted from JSON sources."""

    items: tuple[Mapping[str, object], ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class ArtifactPayload:
    """A single artifact such as one image.

    Attributes:
        file_name: Artifact file name.
        fields: Values relayed from upstream extractors.
        error: Extraction failure message, if any.
    """

    file_name: str
    fields: Mapping[str, object] = field(default_factory=dict)
    error: str | None = None


RawPayload = Union[TabularPayload, TextPayload, ItemsPayload, ArtifactPayload]


@dataclass(frozen=True)
class FishObservation:
    """One fish individual or catch row."""

    species: str | None = None
    length_cm: float | None = None
    weight_g: float | None = None
    abundance: int | None = None
    age: int | None = None
    notes: str | None = None
    source_file: str | None = None


@dataclass(frozen=True)
class OceanReading:
    """One set of water-quality sensor values."""

    temperature: float | None = None
    salinity: float | None = None
    dissolved_oxygen: float | None = None
    pH: float | None = None
    depth_m: float | None = None
    turbidity: float | None = None
    notes: str | None = None


@dataclass(frozen=True)
class OtolithFeatures:
    """Morphometric features relayed from an upstream image extractor."""

    image_file: str | None = None
    circularity: float | None = None
    area: float | None = None
    perimeter: float | None = None
    aspect_ratio: float | None = None
    volume: float | None = None
    notes: str | None = None


@dataclass(frozen=True)
class EdnaMatch:
    """One environmental DNA sequence match."""

    sequence_id: str | None = None
    matched_species: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class GenericPayload:
    """Catch-all payload for categories without a fixed field table.

    Attributes:
        category: Category the payload was uploaded under.
        values: Verbatim column values.
    """

    category: str
    values: Mapping[str, str] = field(default_factory=dict)


CategoryPayload = Union[FishObservation, OceanReading, OtolithFeatures, EdnaMatch, GenericPayload]


@dataclass(frozen=True)
class CanonicalRecord:
    """Standardized observation ready for unification.

    Attributes:
        location: Normalized location name.
        date: Sampling date in ``YYYY-MM-DD`` form.
        time: Sampling time in ``HH:MM`` form.
        category: Upload category.
        payload: Category-specific values.
    """

    location: str
    date: str
    time: str
    category: str
    payload: CategoryPayload


@dataclass(frozen=True)
class StandardizationResult:
    """Standardizer output for one raw payload."""

    records: tuple[CanonicalRecord, ...]
    notes: tuple[str, ...]
    input_count: int
    dropped_count: int


@dataclass(frozen=True)
class MetadataRef:
    """Provenance link from an aggregate to a contributing file."""

    source_file_id: str
    source_file_name: str
    category: str


@dataclass(frozen=True)
class OceanSnapshot:
    """Latest ocean reading for an event."""

    reading: OceanReading
    last_updated: datetime


@dataclass(frozen=True)
class OceanObservation:
    """One historical ocean reading for an event.

    Attributes:
        time: ``HH:MM`` time reported by the observation itself.
        reading: Sensor values.
        recorded_at: UTC timestamp when the reading was merged.
    """

    time: str
    reading: OceanReading
    recorded_at: datetime


@dataclass(frozen=True)
class AggregateRecord:
    """Unified record for one sampling event.

    Attributes:
        composite_key: Unique ``location_date_time`` identity.
        location: Normalized location name.
        date: Event date in ``YYYY-MM-DD`` form.
        time: Event time in ``HH:MM`` form fixed by the first record.
        fish: Append-only fish observations.
        ocean: Latest ocean snapshot, if any reading was merged.
        ocean_observations: Append-only ocean reading history.
        otolith_features: Append-only otolith feature rows.
        edna: Append-only eDNA matches.
        other: Append-only payloads of uncategorized uploads.
        metadata_refs: Contributing files, unique by source file id.
        created_at: UTC creation timestamp.
        last_updated: UTC timestamp of the latest merge.
        revision: Write counter used to reject updates based on a stale read.
    """

    composite_key: str
    location: str
    date: str
    time: str
    created_at: datetime
    last_updated: datetime
    fish: tuple[FishObservation, ...] = ()
    ocean: OceanSnapshot | None = None
    ocean_observations: tuple[OceanObservation, ...] = ()
    otolith_features: tuple[OtolithFeatures, ...] = ()
    edna: tuple[EdnaMatch, ...] = ()
    other: tuple[GenericPayload, ...] = ()
    metadata_refs: tuple[MetadataRef, ...] = ()
    revision: int = 0


@dataclass(frozen=True)
class DataFile:
    """Registered upload and its processing lifecycle.

    Attributes:
        file_id: Stable file identifier.
        original_name: File name as uploaded.
        category: Upload category.
        file_path: Local path of the stored file.
        file_type: Detected raw extraction type.
        status: Processing lifecycle state.
        created_at: UTC registration timestamp.
        updated_at: UTC timestamp of the latest transition.
        error_message: Failure message for failed runs.
        notes: Standardization notes from the latest run.
        record_count: Canonical records produced by the latest run.
        unified_count: Records merged into aggregates by the latest run.
    """

    file_id: str
    original_name: str
    category: str
    file_path: str
    file_type: FileType
    status: FileStatus
    created_at: datetime
    updated_at: datetime
    error_message: str | None = None
    notes: tuple[str, ...] = ()
    record_count: int = 0
    unified_count: int = 0


@dataclass(frozen=True)
class UnificationReport:
    """Summary of one file's unification run."""

    file_id: str
    file_name: str
    category: str
    record_count: int
    created_count: int
    merged_count: int
    composite_keys: tuple[str, ...]
    notes: tuple[str, ...]

    @property
    def unified_count(self) -> int:
        """Return number of records folded into aggregates."""
        return self.created_count + self.merged_count


@dataclass(frozen=True)
class AggregateFilter:
    """Query constraints for listing and exporting aggregates.

    Attributes:
        location: Optional case-insensitive location substring.
        date_start: Optional inclusive lower date bound.
        date_end: Optional inclusive upper date bound.
        species: Optional case-insensitive fish species substring.
        limit: Maximum number of aggregates returned.
    """

    location: str | None = None
    date_start: str | None = None
    date_end: str | None = None
    species: str | None = None
    limit: int = DEFAULT_QUERY_LIMIT


@dataclass(frozen=True)
class S3ExportRequest:
    """Request payload for uploading an aggregate export.

    Attributes:
        export_format: One of ``json``, ``csv``, or ``parquet``.
        output_uri: Destination ``s3://bucket/key`` URI.
        filter_spec: Optional query constraints.
    """

    export_format: str
    output_uri: str
    filter_spec: AggregateFilter | None = None
