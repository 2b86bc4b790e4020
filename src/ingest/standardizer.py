"""Raw payload standardization.

This module converts per-format raw payloads into canonical records with
a location, date, time, and category payload. Malformed rows are dropped
and counted in notes; the batch never fails because of one row.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import datetime, timezone
import io
import json
from typing import Callable, Mapping, Sequence

from core.constants import (
    DATE_CANDIDATES,
    EDNA_CATEGORY,
    EDNA_FIELD_CANDIDATES,
    FISH_CATEGORY,
    FISH_FIELD_CANDIDATES,
    LOCATION_CANDIDATES,
    MIN_TEXT_TABLE_LINES,
    NOTES_CANDIDATES,
    OCEAN_CATEGORY,
    OCEAN_FIELD_CANDIDATES,
    OTOLITH_CATEGORY,
    OTOLITH_FIELD_CANDIDATES,
    TEXT_TABLE_DELIMITERS,
    TIME_CANDIDATES,
    UNKNOWN_LOCATION,
)
from core.logging_config import get_logger
from core.types import (
    ArtifactPayload,
    CanonicalRecord,
    CategoryPayload,
    EdnaMatch,
    FishObservation,
    GenericPayload,
    ItemsPayload,
    OceanReading,
    OtolithFeatures,
    RawPayload,
    StandardizationResult,
    TabularPayload,
    TextPayload,
)
from ingest.field_normalization import (
    clean_text,
    find_column,
    normalize_date,
    normalize_location,
    normalize_time,
    parse_integer,
    parse_number,
)

_LOGGER = get_logger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class IdentityColumns:
    """Headers discovered for the identity fields of a table."""

    location: str | None
    date: str | None
    time: str | None

    def names(self) -> set[str]:
        """Return the discovered identity header names."""
        return {name for name in (self.location, self.date, self.time) if name}


def standardize(
    payload: RawPayload,
    category: str,
    clock: Clock | None = None,
) -> StandardizationResult:
    """Standardize one raw payload into canonical records.

    Args:
        payload: Raw extraction output for one file.
        category: Upload category selecting the field table.
        clock: Optional clock for artifacts without sampling metadata.

    Returns:
        Canonical records plus processing notes and counters.
    """
    if payload.error:
        return StandardizationResult(
            records=(),
            notes=(f"Raw extraction failed: {payload.error}",),
            input_count=0,
            dropped_count=0,
        )
    if isinstance(payload, TabularPayload):
        return _standardize_rows(payload.headers, payload.rows, category)
    if isinstance(payload, ItemsPayload):
        headers, rows = _items_to_rows(payload.items)
        return _standardize_rows(headers, rows, category)
    if isinstance(payload, TextPayload):
        return _standardize_text(payload.text, category)
    return _standardize_artifact(payload, category, clock or _utc_now)


def extract_category_payload(
    row: Mapping[str, str],
    headers: Sequence[str],
    category: str,
    identity_columns: set[str] | None = None,
) -> CategoryPayload:
    """Extract the category-specific payload from one row.

    Args:
        row: Raw header-to-value mapping.
        headers: Available headers for column discovery.
        category: Upload category.
        identity_columns: Headers excluded from generic payloads.

    Returns:
        Typed payload for the category, or a generic payload.
    """
    if category == FISH_CATEGORY:
        values = _discover_values(row, headers, FISH_FIELD_CANDIDATES)
        return FishObservation(
            species=clean_text(values["species"]),
            length_cm=parse_number(values["length_cm"]),
            weight_g=parse_number(values["weight_g"]),
            abundance=parse_integer(values["abundance"]),
            age=parse_integer(values["age"]),
            notes=_notes_value(row, headers),
        )
    if category == OCEAN_CATEGORY:
        values = _discover_values(row, headers, OCEAN_FIELD_CANDIDATES)
        return OceanReading(
            temperature=parse_number(values["temperature"]),
            salinity=parse_number(values["salinity"]),
            dissolved_oxygen=parse_number(values["dissolved_oxygen"]),
            pH=parse_number(values["pH"]),
            depth_m=parse_number(values["depth_m"]),
            turbidity=parse_number(values["turbidity"]),
            notes=_notes_value(row, headers),
        )
    if category == OTOLITH_CATEGORY:
        values = _discover_values(row, headers, OTOLITH_FIELD_CANDIDATES)
        return OtolithFeatures(
            image_file=clean_text(values["image_file"]),
            circularity=parse_number(values["circularity"]),
            area=parse_number(values["area"]),
            perimeter=parse_number(values["perimeter"]),
            aspect_ratio=parse_number(values["aspect_ratio"]),
            volume=parse_number(values["volume"]),
            notes=_notes_value(row, headers),
        )
    if category == EDNA_CATEGORY:
        values = _discover_values(row, headers, EDNA_FIELD_CANDIDATES)
        return EdnaMatch(
            sequence_id=clean_text(values["sequence_id"]),
            matched_species=clean_text(values["matched_species"]),
            notes=_notes_value(row, headers),
        )
    excluded = identity_columns or set()
    copied = {
        header: row.get(header, "") for header in headers if header and header not in excluded
    }
    return GenericPayload(category=category, values=copied)


def discover_identity_columns(headers: Sequence[str]) -> IdentityColumns:
    """Locate location, date, and time columns in a header row."""
    return IdentityColumns(
        location=find_column(headers, LOCATION_CANDIDATES),
        date=find_column(headers, DATE_CANDIDATES),
        time=find_column(headers, TIME_CANDIDATES),
    )


def _standardize_rows(
    headers: Sequence[str],
    rows: Sequence[Mapping[str, str]],
    category: str,
) -> StandardizationResult:
    """Standardize header/row tables shared by tabular and JSON inputs."""
    identity = discover_identity_columns(headers)
    notes: list[str] = []
    if identity.date is None or identity.time is None:
        notes.append("Missing date or time column; rows cannot be unified")
        _LOGGER.warning(
            "identity_columns_missing",
            category=category,
            headers=list(headers),
            date_column=identity.date,
            time_column=identity.time,
        )
    records: list[CanonicalRecord] = []
    dropped_count = 0
    for row_number, row in enumerate(rows, 1):
        record = _standardize_row(row, headers, category, identity)
        if record is None:
            dropped_count += 1
            _LOGGER.debug("record_dropped", category=category, row_number=row_number)
            continue
        records.append(record)
    notes.insert(0, f"Standardized {len(records)} records from {len(rows)} input rows")
    if dropped_count:
        notes.append(f"Dropped {dropped_count} rows without a resolvable date or time")
    return StandardizationResult(
        records=tuple(records),
        notes=tuple(notes),
        input_count=len(rows),
        dropped_count=dropped_count,
    )


def _standardize_row(
    row: Mapping[str, str],
    headers: Sequence[str],
    category: str,
    identity: IdentityColumns,
) -> CanonicalRecord | None:
    date = normalize_date(row.get(identity.date)) if identity.date else None
    time = normalize_time(row.get(identity.time)) if identity.time else None
    if date is None or time is None:
        return None
    raw_location = row.get(identity.location) if identity.location else None
    return CanonicalRecord(
        location=normalize_location(raw_location),
        date=date,
        time=time,
        category=category,
        payload=extract_category_payload(row, headers, category, identity.names()),
    )


def _standardize_text(text: str, category: str) -> StandardizationResult:
    """Standardize document text when it carries a delimited table."""
    table = _parse_text_table(text)
    if table is None:
        return StandardizationResult(
            records=(),
            notes=("No tabular structure detected in extracted text",),
            input_count=0,
            dropped_count=0,
        )
    headers, rows = table
    result = _standardize_rows(headers, rows, category)
    return StandardizationResult(
        records=result.records,
        notes=result.notes + ("Parsed delimited table from extracted text",),
        input_count=result.input_count,
        dropped_count=result.dropped_count,
    )


def _standardize_artifact(
    payload: ArtifactPayload,
    category: str,
    clock: Clock,
) -> StandardizationResult:
    """Build one record for an artifact that has no sampling metadata."""
    processed_at = clock()
    headers = list(payload.fields)
    row = {key: _stringify(value) for key, value in payload.fields.items()}
    if category == OTOLITH_CATEGORY and not row.get("image_file"):
        headers.append("image_file")
        row["image_file"] = payload.file_name
    record = CanonicalRecord(
        location=UNKNOWN_LOCATION,
        date=processed_at.strftime("%Y-%m-%d"),
        time=processed_at.strftime("%H:%M"),
        category=category,
        payload=extract_category_payload(row, headers, category),
    )
    _LOGGER.warning(
        "artifact_identity_defaulted",
        file_name=payload.file_name,
        date=record.date,
        time=record.time,
    )
    return StandardizationResult(
        records=(record,),
        notes=(
            "Standardized 1 records from 1 input rows",
            "Artifact has no sampling metadata; location defaulted to "
            f"'{UNKNOWN_LOCATION}' and date/time to processing time",
        ),
        input_count=1,
        dropped_count=0,
    )


def _items_to_rows(
    items: Sequence[Mapping[str, object]],
) -> tuple[list[str], list[dict[str, str]]]:
    """Flatten JSON items into headers and string rows."""
    headers: list[str] = []
    rows: list[dict[str, str]] = []
    for item in items:
        for key in item:
            if key not in headers:
                headers.append(key)
        rows.append({key: _stringify(value) for key, value in item.items()})
    return headers, rows


def _parse_text_table(text: str) -> tuple[list[str], list[dict[str, str]]] | None:
    """Parse text as a delimited table when every line agrees on width."""
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < MIN_TEXT_TABLE_LINES:
        return None
    for delimiter in TEXT_TABLE_DELIMITERS:
        try:
            parsed_rows = list(csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter))
        except csv.Error as error:
            _LOGGER.debug("text_table_parse_failed", delimiter=delimiter, error=str(error))
            continue
        header = [cell.strip() for cell in parsed_rows[0]]
        if len(header) < 2 or any(len(row) != len(header) for row in parsed_rows[1:]):
            continue
        rows = [
            {name: cell.strip() for name, cell in zip(header, row)} for row in parsed_rows[1:]
        ]
        return header, rows
    return None


def _discover_values(
    row: Mapping[str, str],
    headers: Sequence[str],
    field_candidates: Mapping[str, Sequence[str]],
) -> dict[str, str | None]:
    values: dict[str, str | None] = {}
    for field_name, candidates in field_candidates.items():
        column = find_column(headers, candidates)
        values[field_name] = row.get(column) if column else None
    return values


def _notes_value(row: Mapping[str, str], headers: Sequence[str]) -> str | None:
    column = find_column(headers, NOTES_CANDIDATES)
    return clean_text(row.get(column)) if column else None


def _stringify(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
