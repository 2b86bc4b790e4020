"""Shared JSON serialization for AggregateRecord documents.

This module centralizes AggregateRecord document encoding. It is reused by
the aggregate store and the JSON export so both share one document shape.
"""

from __future__ import annotations

from dataclasses import asdict, fields
from datetime import datetime
from typing import Any, Mapping

from core.types import (
    AggregateRecord,
    EdnaMatch,
    FishObservation,
    GenericPayload,
    MetadataRef,
    OceanObservation,
    OceanReading,
    OceanSnapshot,
    OtolithFeatures,
)


def aggregate_to_payload(aggregate: AggregateRecord) -> dict[str, object]:
    """Serialize an AggregateRecord into a JSON-safe document.

    Args:
        aggregate: Aggregate record instance.

    Returns:
        Dictionary payload for JSON encoding.
    """
    return {
        "composite_key": aggregate.composite_key,
        "location": aggregate.location,
        "date": aggregate.date,
        "time": aggregate.time,
        "fish": [asdict(entry) for entry in aggregate.fish],
        "ocean": _ocean_snapshot_payload(aggregate.ocean),
        "ocean_observations": [
            {
                "time": observation.time,
                **asdict(observation.reading),
                "recorded_at": observation.recorded_at.isoformat(),
            }
            for observation in aggregate.ocean_observations
        ],
        "otolith_features": [asdict(entry) for entry in aggregate.otolith_features],
        "eDNA": [asdict(entry) for entry in aggregate.edna],
        "other": [
            {"category": entry.category, "values": dict(entry.values)} for entry in aggregate.other
        ],
        "metadata_refs": [asdict(ref) for ref in aggregate.metadata_refs],
        "created_at": aggregate.created_at.isoformat(),
        "last_updated": aggregate.last_updated.isoformat(),
        "revision": aggregate.revision,
    }


def aggregate_from_payload(payload: Mapping[str, Any]) -> AggregateRecord:
    """Deserialize a stored document into an AggregateRecord.

    Args:
        payload: Serialized aggregate document.

    Returns:
        Parsed AggregateRecord.

    Raises:
        KeyError: If identity fields are missing.
        ValueError: If timestamps are malformed.
    """
    return AggregateRecord(
        composite_key=str(payload["composite_key"]),
        location=str(payload["location"]),
        date=str(payload["date"]),
        time=str(payload["time"]),
        created_at=datetime.fromisoformat(str(payload["created_at"])),
        last_updated=datetime.fromisoformat(str(payload["last_updated"])),
        fish=tuple(_build(FishObservation, entry) for entry in payload.get("fish", [])),
        ocean=_ocean_snapshot_from_payload(payload.get("ocean")),
        ocean_observations=tuple(
            OceanObservation(
                time=str(entry["time"]),
                reading=_build(OceanReading, entry),
                recorded_at=datetime.fromisoformat(str(entry["recorded_at"])),
            )
            for entry in payload.get("ocean_observations", [])
        ),
        otolith_features=tuple(
            _build(OtolithFeatures, entry) for entry in payload.get("otolith_features", [])
        ),
        edna=tuple(_build(EdnaMatch, entry) for entry in payload.get("eDNA", [])),
        other=tuple(
            GenericPayload(
                category=str(entry["category"]),
                values={str(key): str(value) for key, value in dict(entry["values"]).items()},
            )
            for entry in payload.get("other", [])
        ),
        metadata_refs=tuple(
            MetadataRef(
                source_file_id=str(ref["source_file_id"]),
                source_file_name=str(ref["source_file_name"]),
                category=str(ref["category"]),
            )
            for ref in payload.get("metadata_refs", [])
        ),
        revision=int(payload.get("revision", 0)),
    )


def _ocean_snapshot_payload(snapshot: OceanSnapshot | None) -> dict[str, object] | None:
    if snapshot is None:
        return None
    return {**asdict(snapshot.reading), "last_updated": snapshot.last_updated.isoformat()}


def _ocean_snapshot_from_payload(payload: Any) -> OceanSnapshot | None:
    if not isinstance(payload, Mapping):
        return None
    return OceanSnapshot(
        reading=_build(OceanReading, payload),
        last_updated=datetime.fromisoformat(str(payload["last_updated"])),
    )


def _build(model: Any, payload: Mapping[str, Any]) -> Any:
    """Instantiate a flat payload dataclass from known keys only."""
    known_names = {item.name for item in fields(model)}
    return model(**{key: value for key, value in payload.items() if key in known_names})
