"""Per-file unification pipeline.

This module runs raw extraction, standardization, key resolution, and
merging for one registered file while tracking its lifecycle. Resolution
and merging are serialized per ``(location, date)`` cluster, in process by an
``asyncio.Lock`` and across pipelines and processes by the store's cluster
file lock, so concurrent files never race on the same composite key.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

from core.config import TidelinkConfig
from core.errors import (
    AggregateWriteConflict,
    TidelinkIngestError,
    TidelinkUnificationError,
)
from core.logging_config import get_logger
from core.types import AggregateRecord, CanonicalRecord, DataFile, UnificationReport
from ingest.field_normalization import normalize_location
from ingest.raw_extraction import extract_raw
from ingest.standardizer import Clock, standardize
from store.aggregate_store import AggregateStore
from store.file_registry import FileRegistry
from unify.key_resolver import KeyResolver
from unify.merger import UnificationMerger

_LOGGER = get_logger(__name__)


@dataclass
class _ClusterLock:
    """In-process lock of one cluster and the number of tasks using it."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class UnificationPipeline:
    """Unify registered files into sampling-event aggregates."""

    def __init__(
        self,
        config: TidelinkConfig,
        store: AggregateStore,
        registry: FileRegistry,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._max_write_retries = config.max_write_retries
        self._resolver = KeyResolver(store, config.time_tolerance_minutes, clock=clock)
        self._merger = UnificationMerger(store, clock=clock)
        self._clock = clock
        self._cluster_locks: dict[tuple[str, str], _ClusterLock] = {}

    async def unify(self, file_id: str) -> UnificationReport:
        """Unify every record of one registered file.

        Args:
            file_id: Registered file identifier.

        Returns:
            Report with record, creation, and merge counts.

        Raises:
            TidelinkFileNotFoundError: If the file id is unknown.
            TidelinkError: If the file fails; its status is marked failed first.
        """
        source_file = await asyncio.to_thread(self._registry.load, file_id)
        await asyncio.to_thread(self._registry.transition, file_id, "processing")
        try:
            report = await self._unify_file(source_file)
        except Exception as error:
            await asyncio.to_thread(
                self._registry.transition, file_id, "failed", error_message=str(error)
            )
            _LOGGER.error(
                "unification_failed",
                file_id=file_id,
                file_name=source_file.original_name,
                error=str(error),
            )
            raise
        await asyncio.to_thread(
            self._registry.transition,
            file_id,
            "completed",
            notes=report.notes,
            record_count=report.record_count,
            unified_count=report.unified_count,
        )
        _LOGGER.info(
            "unification_completed",
            file_id=file_id,
            file_name=source_file.original_name,
            record_count=report.record_count,
            created_count=report.created_count,
            merged_count=report.merged_count,
        )
        return report

    async def _unify_file(self, source_file: DataFile) -> UnificationReport:
        payload = await asyncio.to_thread(
            extract_raw, source_file.file_path, source_file.file_type
        )
        if payload.error:
            raise TidelinkIngestError(payload.error)
        result = standardize(payload, source_file.category, clock=self._clock)
        created_count = 0
        merged_count = 0
        composite_keys: list[str] = []
        for record in result.records:
            aggregate, created = await self._unify_record(record, source_file)
            if created:
                created_count += 1
            else:
                merged_count += 1
            if aggregate.composite_key not in composite_keys:
                composite_keys.append(aggregate.composite_key)
        notes = result.notes + (
            f"Unified {created_count + merged_count} records into "
            f"{len(composite_keys)} aggregates",
        )
        return UnificationReport(
            file_id=source_file.file_id,
            file_name=source_file.original_name,
            category=source_file.category,
            record_count=len(result.records),
            created_count=created_count,
            merged_count=merged_count,
            composite_keys=tuple(composite_keys),
            notes=notes,
        )

    async def _unify_record(
        self,
        record: CanonicalRecord,
        source_file: DataFile,
    ) -> tuple[AggregateRecord, bool]:
        """Resolve and merge one record, retrying write conflicts as updates."""
        async with self._serialize_cluster(record.location, record.date):
            for attempt in range(self._max_write_retries + 1):
                resolution = await self._resolver.resolve(
                    record.location, record.date, record.time
                )
                try:
                    aggregate = await self._merger.merge(
                        resolution.aggregate, record, source_file, resolution.is_new
                    )
                except AggregateWriteConflict as error:
                    _LOGGER.warning(
                        "write_conflict_retry",
                        composite_key=error.composite_key,
                        attempt=attempt + 1,
                        max_write_retries=self._max_write_retries,
                    )
                    continue
                return aggregate, resolution.is_new
        raise TidelinkUnificationError(
            f"Failed to unify record at {record.location} {record.date} {record.time} "
            f"from {source_file.original_name}: write conflict persisted after "
            f"{self._max_write_retries} retries. Retry unification for this file."
        )

    @asynccontextmanager
    async def _serialize_cluster(self, location: str, date: str) -> AsyncIterator[None]:
        """Hold the in-process and store-wide locks of one cluster."""
        key = (normalize_location(location), date)
        entry = self._cluster_locks.setdefault(key, _ClusterLock())
        entry.users += 1
        try:
            async with entry.lock:
                async with self._store.cluster_lock(*key):
                    yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._cluster_locks[key]
