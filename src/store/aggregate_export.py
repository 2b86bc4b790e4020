"""Aggregate export serializers.

This module renders filtered aggregates as JSON documents, flattened CSV
rows, or a Parquet table. CSV and Parquet share one flattened row shape.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any

from core.constants import EXPORT_LIST_SEPARATOR, MISSING_EXPORT_VALUE, SUPPORTED_EXPORT_FORMATS
from core.errors import TidelinkDependencyError, TidelinkExportError
from core.types import AggregateRecord
from store.aggregate_payload import aggregate_to_payload

EXPORT_COLUMNS = (
    "composite_key",
    "location",
    "date",
    "time",
    "fish_species_count",
    "total_fish_individuals",
    "fish_species_list",
    "ocean_temperature",
    "ocean_salinity",
    "ocean_dissolved_oxygen",
    "ocean_pH",
    "ocean_depth_m",
    "ocean_turbidity",
    "ocean_obs_count",
    "otolith_count",
    "eDNA_count",
    "contributing_files",
)


def export_aggregates_bytes(aggregates: list[AggregateRecord], export_format: str) -> bytes:
    """Serialize aggregates in one export format.

    Args:
        aggregates: Aggregates to export, already filtered and sorted.
        export_format: One of ``json``, ``csv``, or ``parquet``.

    Returns:
        Encoded export payload.

    Raises:
        TidelinkExportError: If the format is unsupported.
    """
    normalized_format = export_format.lower()
    if normalized_format == "json":
        return render_json(aggregates)
    if normalized_format == "csv":
        return render_csv(aggregates)
    if normalized_format == "parquet":
        return render_parquet(aggregates)
    raise TidelinkExportError(
        f"Unsupported export format '{export_format}'. "
        f"Use one of: {', '.join(SUPPORTED_EXPORT_FORMATS)}."
    )


def render_json(aggregates: list[AggregateRecord]) -> bytes:
    """Render aggregates as a ``{"count", "data"}`` JSON document."""
    document = {
        "count": len(aggregates),
        "data": [aggregate_to_payload(aggregate) for aggregate in aggregates],
    }
    return (json.dumps(document, indent=2) + "\n").encode("utf-8")


def render_csv(aggregates: list[AggregateRecord]) -> bytes:
    """Render aggregates as one quoted CSV row each."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for aggregate in aggregates:
        row = flatten_aggregate(aggregate)
        writer.writerow(_csv_cell(row[column]) for column in EXPORT_COLUMNS)
    return buffer.getvalue().encode("utf-8")


def render_parquet(aggregates: list[AggregateRecord]) -> bytes:
    """Render flattened aggregates as a Parquet file."""
    try:
        import pyarrow as pa
        import pyarrow.parquet as pq
    except ImportError as error:
        raise TidelinkDependencyError(
            "Parquet export requires pyarrow, but it is not installed. "
            "Install pyarrow to export parquet files."
        ) from error
    rows = [flatten_aggregate(aggregate) for aggregate in aggregates]
    table = pa.table({column: [row[column] for row in rows] for column in EXPORT_COLUMNS})
    sink = pa.BufferOutputStream()
    pq.write_table(table, sink)
    return sink.getvalue().to_pybytes()


def flatten_aggregate(aggregate: AggregateRecord) -> dict[str, Any]:
    """Flatten one aggregate into export columns.

    Missing values are ``None``; the CSV renderer prints them as ``N/A``.

    Args:
        aggregate: Aggregate to flatten.

    Returns:
        Mapping of export column name to value.
    """
    reading = aggregate.ocean.reading if aggregate.ocean else None
    species_names = {entry.species for entry in aggregate.fish if entry.species}
    return {
        "composite_key": aggregate.composite_key,
        "location": aggregate.location,
        "date": aggregate.date,
        "time": aggregate.time,
        "fish_species_count": len(species_names),
        "total_fish_individuals": sum(entry.abundance or 0 for entry in aggregate.fish),
        "fish_species_list": EXPORT_LIST_SEPARATOR.join(
            f"{entry.species or MISSING_EXPORT_VALUE}"
            f"({MISSING_EXPORT_VALUE if entry.abundance is None else entry.abundance})"
            for entry in aggregate.fish
        ),
        "ocean_temperature": reading.temperature if reading else None,
        "ocean_salinity": reading.salinity if reading else None,
        "ocean_dissolved_oxygen": reading.dissolved_oxygen if reading else None,
        "ocean_pH": reading.pH if reading else None,
        "ocean_depth_m": reading.depth_m if reading else None,
        "ocean_turbidity": reading.turbidity if reading else None,
        "ocean_obs_count": len(aggregate.ocean_observations),
        "otolith_count": len(aggregate.otolith_features),
        "eDNA_count": len(aggregate.edna),
        "contributing_files": EXPORT_LIST_SEPARATOR.join(
            ref.source_file_name for ref in aggregate.metadata_refs
        ),
    }


def _csv_cell(value: Any) -> Any:
    if value is None or value == "":
        return MISSING_EXPORT_VALUE
    return value
