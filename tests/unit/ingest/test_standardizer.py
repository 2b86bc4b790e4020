"""Unit tests for raw payload standardization."""

from __future__ import annotations

from datetime import datetime, timezone

from core.types import (
    ArtifactPayload,
    EdnaMatch,
    FishObservation,
    GenericPayload,
    ItemsPayload,
    OceanReading,
    OtolithFeatures,
    TabularPayload,
    TextPayload,
)
from ingest.standardizer import discover_identity_columns, standardize


def _table(headers: tuple[str, ...], *rows: tuple[str, ...]) -> TabularPayload:
    return TabularPayload(
        headers=headers,
        rows=tuple(dict(zip(headers, row)) for row in rows),
    )


def test_standardize_fish_rows_builds_typed_payloads() -> None:
    """Fish rows should normalize identity fields and parse numbers."""
    payload = _table(
        ("Site", "Sampling_Date", "Sampling_Time", "Species", "Length_cm", "Count"),
        (" Reef  A ", "01/15/2024", "9:30", "Tuna", "54.2", "12"),
    )

    result = standardize(payload, "fish_data")

    record = result.records[0]
    assert (record.location, record.date, record.time) == ("Reef A", "2024-01-15", "09:30")
    assert record.payload == FishObservation(species="Tuna", length_cm=54.2, abundance=12)


def test_standardize_drops_rows_without_date_or_time_and_counts_them() -> None:
    """Rows lacking a resolvable date or time should be dropped with a note."""
    payload = _table(
        ("location", "date", "time", "temperature"),
        ("Reef A", "2024-01-15", "09:30", "27.5"),
        ("Reef A", "", "09:35", "27.6"),
        ("Reef A", "2024-01-15", "later", "27.7"),
    )

    result = standardize(payload, "ocean_data")

    assert len(result.records) == 1 and result.dropped_count == 2
    assert result.notes == (
        "Standardized 1 records from 3 input rows",
        "Dropped 2 rows without a resolvable date or time",
    )
    assert isinstance(result.records[0].payload, OceanReading)


def test_standardize_reports_missing_identity_columns() -> None:
    """Tables without a time column should produce no records and a note."""
    payload = _table(("location", "date", "species"), ("Reef A", "2024-01-15", "Tuna"))

    result = standardize(payload, "fish_data")

    assert result.records == ()
    assert "Missing date or time column; rows cannot be unified" in result.notes


def test_standardize_missing_location_defaults_to_unknown() -> None:
    """Rows without a location column should use the Unknown location."""
    payload = _table(("date", "time", "seq_id"), ("2024-01-15", "10:00", "SEQ-9"))

    result = standardize(payload, "eDNA_data")

    assert result.records[0].location == "Unknown"
    assert result.records[0].payload == EdnaMatch(sequence_id="SEQ-9")


def test_standardize_unknown_category_copies_non_identity_columns() -> None:
    """Uncategorized uploads should keep every non-identity column verbatim."""
    payload = _table(
        ("location", "date", "time", "observer", "weather"),
        ("Reef A", "2024-01-15", "10:00", "Kai", "calm, sunny"),
    )

    result = standardize(payload, "survey_log")

    assert result.records[0].payload == GenericPayload(
        category="survey_log",
        values={"observer": "Kai", "weather": "calm, sunny"},
    )


def test_standardize_json_items_flattens_nested_values() -> None:
    """JSON items should standardize like rows with stringified values."""
    payload = ItemsPayload(
        items=(
            {"station": "Reef B", "date": "2024-01-16", "time": "14:00", "extra": {"k": 1}},
        )
    )

    result = standardize(payload, "other")

    record = result.records[0]
    assert record.location == "Reef B"
    assert record.payload == GenericPayload(category="other", values={"extra": '{"k": 1}'})


def test_standardize_text_with_delimited_table() -> None:
    """Extracted text holding a delimited table should yield records."""
    text = "location\tdate\ttime\tdepth\nReef C\t2024-02-01\t07:15\t12.5\n"

    result = standardize(TextPayload(text=text), "ocean_data")

    assert result.records[0].payload == OceanReading(depth_m=12.5)
    assert result.notes[-1] == "Parsed delimited table from extracted text"


def test_standardize_text_without_table_yields_note() -> None:
    """Free text should produce zero records and an explanatory note."""
    result = standardize(TextPayload(text="Field notes.\nCalm water all day."), "fish_data")

    assert result.records == ()
    assert result.notes == ("No tabular structure detected in extracted text",)


def test_standardize_text_with_runaway_quote_yields_note() -> None:
    """An unclosed quote spanning a huge field should not break standardization."""
    text = "location,date,time,notes\nReef A,2024-01-15,09:30,\"" + "x" * 200_000

    result = standardize(TextPayload(text=text), "fish_data")

    assert result.records == ()
    assert result.notes == ("No tabular structure detected in extracted text",)


def test_standardize_artifact_uses_clock_and_file_name() -> None:
    """Artifacts should default identity to Unknown and the processing time."""
    clock_value = datetime(2024, 3, 2, 8, 45, tzinfo=timezone.utc)
    payload = ArtifactPayload(
        file_name="oto_01.png",
        fields={"width": 640, "height": 480, "format": "PNG"},
    )

    result = standardize(payload, "otolith_image", clock=lambda: clock_value)

    record = result.records[0]
    assert (record.location, record.date, record.time) == ("Unknown", "2024-03-02", "08:45")
    assert record.payload == OtolithFeatures(image_file="oto_01.png")
    assert len(result.notes) == 2


def test_standardize_extraction_error_yields_note_without_records() -> None:
    """Failed raw extraction should surface as a note."""
    result = standardize(TabularPayload(error="Failed to extract a.csv: boom"), "fish_data")

    assert result.records == ()
    assert result.notes == ("Raw extraction failed: Failed to extract a.csv: boom",)


def test_discover_identity_columns_uses_candidate_lists() -> None:
    """Identity discovery should pick location, date, and time headers."""
    identity = discover_identity_columns(["Station", "Collection_Date", "Collection_Time"])

    assert identity.names() == {"Station", "Collection_Date", "Collection_Time"}
