"""Public SDK surface for Tidelink.

This module provides a stable import path for SDK users.
It re-exports the primary client and typed request models.
"""

from __future__ import annotations

from core.config import TidelinkConfig
from core.types import (
    AggregateFilter,
    AggregateRecord,
    CanonicalRecord,
    DataFile,
    S3ExportRequest,
    UnificationReport,
)
from ingest.raw_extraction import detect_file_type, extract_raw
from ingest.standardizer import standardize
from store.aggregate_store import JsonAggregateStore
from store.tidelink_sdk import BatchFileResult, TidelinkClient
from unify.key_resolver import KeyResolver, Resolution, build_composite_key
from unify.merger import UnificationMerger
from unify.pipeline import UnificationPipeline
from unify.worker_pool import UnificationJob, UnificationWorkerPool

__all__ = [
    "AggregateFilter",
    "AggregateRecord",
    "BatchFileResult",
    "CanonicalRecord",
    "DataFile",
    "JsonAggregateStore",
    "KeyResolver",
    "Resolution",
    "S3ExportRequest",
    "TidelinkClient",
    "TidelinkConfig",
    "UnificationJob",
    "UnificationMerger",
    "UnificationPipeline",
    "UnificationReport",
    "UnificationWorkerPool",
    "build_composite_key",
    "detect_file_type",
    "extract_raw",
    "standardize",
]
