"""Core constants used across Tidelink modules.

This module centralizes non-domain-specific constants and the fixed
column-discovery tables used by the standardizer.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".tidelink")
AGGREGATES_DIR_NAME = "aggregates"
FILES_DIR_NAME = "files"
FILE_INDEX_FILE_NAME = "index.json"
HASH_ALGORITHM = "sha256"
KEY_DIGEST_LENGTH = 24
CLUSTER_LOCK_FILE_NAME = ".cluster.lock"
CLUSTER_LOCK_POLL_SECONDS = 0.01

DEFAULT_TIME_TOLERANCE_MINUTES = 5
DEFAULT_WORKER_COUNT = 4
DEFAULT_MAX_WRITE_RETRIES = 3
DEFAULT_QUERY_LIMIT = 1000
UNKNOWN_LOCATION = "Unknown"
MISSING_EXPORT_VALUE = "N/A"
EXPORT_LIST_SEPARATOR = "; "

FISH_CATEGORY = "fish_data"
OCEAN_CATEGORY = "ocean_data"
OTOLITH_CATEGORY = "otolith_image"
EDNA_CATEGORY = "eDNA_data"
DEFAULT_CATEGORY = "other"

MEGABYTE = 1024 * 1024
DEFAULT_MAX_FILE_SIZE_BYTES = 100 * MEGABYTE
MAX_FILE_SIZE_BYTES: dict[str, int] = {
    "image": 50 * MEGABYTE,
    "csv": 100 * MEGABYTE,
}

SUPPORTED_EXPORT_FORMATS = ("json", "csv", "parquet")

LOCATION_CANDIDATES = ("location", "site", "station", "place")
DATE_CANDIDATES = ("date", "sampling_date", "collection_date")
TIME_CANDIDATES = ("time", "sampling_time", "collection_time")
NOTES_CANDIDATES = ("notes", "comments", "remarks")

FISH_FIELD_CANDIDATES = {
    "species": ("species", "fish_species", "scientific_name"),
    "length_cm": ("length", "length_cm", "size"),
    "weight_g": ("weight", "weight_g", "mass"),
    "abundance": ("abundance", "count", "number"),
    "age": ("age", "age_years"),
}
OCEAN_FIELD_CANDIDATES = {
    "temperature": ("temperature", "temp", "water_temp"),
    "salinity": ("salinity", "sal", "ppt"),
    "dissolved_oxygen": ("dissolved_oxygen", "do", "oxygen"),
    "pH": ("ph", "acidity"),
    "depth_m": ("depth", "depth_m", "water_depth"),
    "turbidity": ("turbidity", "turb", "ntu"),
}
OTOLITH_FIELD_CANDIDATES = {
    "image_file": ("image_file", "image", "file"),
    "circularity": ("circularity",),
    "area": ("area",),
    "perimeter": ("perimeter",),
    "aspect_ratio": ("aspect_ratio", "aspect"),
    "volume": ("volume",),
}
EDNA_FIELD_CANDIDATES = {
    "sequence_id": ("sequence_id", "seq_id", "dna_id"),
    "matched_species": ("matched_species", "species_match", "identified_species"),
}

TEXT_TABLE_DELIMITERS = (",", "\t", ";")
MIN_TEXT_TABLE_LINES = 2
