"""Unit tests for aggregate export serializers."""

from __future__ import annotations

import csv
from datetime import datetime, timezone
import io
import json

import pytest

from core.errors import TidelinkExportError
from core.types import (
    AggregateRecord,
    EdnaMatch,
    FishObservation,
    MetadataRef,
    OceanObservation,
    OceanReading,
    OceanSnapshot,
)
from store.aggregate_export import EXPORT_COLUMNS, export_aggregates_bytes
from store.aggregate_payload import aggregate_from_payload

_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _rich_aggregate() -> AggregateRecord:
    reading = OceanReading(temperature=27.5, salinity=35.1)
    return AggregateRecord(
        composite_key="Reef A_2024-01-15_09:30",
        location="Reef A",
        date="2024-01-15",
        time="09:30",
        created_at=_NOW,
        last_updated=_NOW,
        fish=(
            FishObservation(species="Tuna", abundance=12),
            FishObservation(species="Tuna", abundance=3),
            FishObservation(species="Snapper"),
        ),
        ocean=OceanSnapshot(reading=reading, last_updated=_NOW),
        ocean_observations=(OceanObservation(time="09:32", reading=reading, recorded_at=_NOW),),
        edna=(EdnaMatch(sequence_id="SEQ-1", matched_species="Thunnus"),),
        metadata_refs=(
            MetadataRef("f1", "catch, morning.csv", "fish_data"),
            MetadataRef("f2", "ocean\nprobe.csv", "ocean_data"),
        ),
    )


def _empty_aggregate() -> AggregateRecord:
    return AggregateRecord(
        composite_key="Kelp Bed_2024-01-14_07:00",
        location="Kelp Bed",
        date="2024-01-14",
        time="07:00",
        created_at=_NOW,
        last_updated=_NOW,
    )


def test_csv_export_flattens_aggregate_columns() -> None:
    """CSV rows should carry counts, species list, and ocean snapshot values."""
    payload = export_aggregates_bytes([_rich_aggregate()], "csv")

    rows = list(csv.DictReader(io.StringIO(payload.decode("utf-8"))))

    row = rows[0]
    assert tuple(rows[0].keys()) == EXPORT_COLUMNS
    assert (row["fish_species_count"], row["total_fish_individuals"]) == ("2", "15")
    assert row["fish_species_list"] == "Tuna(12); Tuna(3); Snapper(N/A)"
    assert (row["ocean_temperature"], row["ocean_pH"], row["ocean_obs_count"]) == (
        "27.5",
        "N/A",
        "1",
    )
    assert (row["otolith_count"], row["eDNA_count"]) == ("0", "1")


def test_csv_export_escapes_commas_and_newlines() -> None:
    """Embedded delimiters and newlines should survive a CSV round trip."""
    payload = export_aggregates_bytes([_rich_aggregate()], "csv")

    rows = list(csv.reader(io.StringIO(payload.decode("utf-8"))))

    assert len(rows) == 2 and len(rows[1]) == len(EXPORT_COLUMNS)
    assert rows[1][-1] == "catch, morning.csv; ocean\nprobe.csv"


def test_csv_export_writes_missing_values_as_na() -> None:
    """Aggregates without payloads should render N/A placeholders."""
    payload = export_aggregates_bytes([_empty_aggregate()], "csv")

    row = next(csv.DictReader(io.StringIO(payload.decode("utf-8"))))

    assert (row["ocean_temperature"], row["fish_species_list"], row["contributing_files"]) == (
        "N/A",
        "N/A",
        "N/A",
    )


def test_json_export_round_trips_aggregates() -> None:
    """JSON export should decode back into the same aggregates."""
    aggregates = [_rich_aggregate(), _empty_aggregate()]

    document = json.loads(export_aggregates_bytes(aggregates, "json"))

    assert document["count"] == 2
    assert [aggregate_from_payload(item) for item in document["data"]] == aggregates


def test_parquet_export_writes_flattened_table() -> None:
    """Parquet export should contain one row per aggregate."""
    pyarrow_parquet = pytest.importorskip("pyarrow.parquet")
    pyarrow = pytest.importorskip("pyarrow")

    payload = export_aggregates_bytes([_rich_aggregate(), _empty_aggregate()], "parquet")
    table = pyarrow_parquet.read_table(pyarrow.BufferReader(payload))

    assert table.num_rows == 2 and tuple(table.column_names) == EXPORT_COLUMNS


def test_export_rejects_unknown_format() -> None:
    """Unsupported formats should raise an export error."""
    with pytest.raises(TidelinkExportError):
        export_aggregates_bytes([], "xml")
