"""Aggregate document store.

This module persists one JSON document per AggregateRecord under the data
root. Document files are grouped by ``(location, date)`` so the directory
doubles as the secondary index used by tolerance lookups, and the file name
is derived from the composite key so exclusive creation enforces key
uniqueness. Every read and write runs off the event loop.

Writers of one cluster serialize through an advisory ``fcntl`` lock file in
the cluster directory, which also excludes other processes sharing the data
root. Updates carry a revision so a write based on a stale read is rejected
instead of silently dropping another writer's merge.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import hashlib
import json
import os
from pathlib import Path
from typing import Any, AsyncContextManager, AsyncIterator, Protocol
from uuid import uuid4

from core.constants import (
    AGGREGATES_DIR_NAME,
    CLUSTER_LOCK_FILE_NAME,
    CLUSTER_LOCK_POLL_SECONDS,
    HASH_ALGORITHM,
    KEY_DIGEST_LENGTH,
)
from core.errors import AggregateWriteConflict, TidelinkStoreError
from core.logging_config import get_logger
from core.types import AggregateRecord
from store.aggregate_payload import aggregate_from_payload, aggregate_to_payload

_LOGGER = get_logger(__name__)

# Composite keys end with "_YYYY-MM-DD_HH:MM".
_KEY_SUFFIX_LENGTH = 17


class AggregateStore(Protocol):
    """Query and write contract of the aggregate persistence engine."""

    async def get(self, composite_key: str) -> AggregateRecord | None:
        """Return the aggregate with an exact composite key."""

    async def find_by_location_date(self, location: str, date: str) -> list[AggregateRecord]:
        """Return aggregates sharing a location and date, oldest first."""

    async def insert(self, aggregate: AggregateRecord) -> None:
        """Create a new aggregate or raise ``AggregateWriteConflict``."""

    async def replace(self, aggregate: AggregateRecord) -> None:
        """Overwrite the stored revision preceding ``aggregate.revision``."""

    async def list_all(self) -> list[AggregateRecord]:
        """Return every stored aggregate."""

    def cluster_lock(self, location: str, date: str) -> AsyncContextManager[None]:
        """Hold the exclusive writer lock of one ``(location, date)`` cluster."""


class JsonAggregateStore:
    """Filesystem-backed aggregate store with a unique composite-key index."""

    def __init__(self, data_root: Path) -> None:
        """Initialize store directories under the data root.

        Args:
            data_root: Local root directory for Tidelink state.
        """
        self._root = data_root / AGGREGATES_DIR_NAME
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, composite_key: str) -> AggregateRecord | None:
        """Return the aggregate stored under a composite key.

        Args:
            composite_key: Exact ``location_date_time`` key.

        Returns:
            Stored aggregate, or ``None`` when absent.
        """
        return await asyncio.to_thread(self._find_key_sync, composite_key)

    async def find_by_location_date(self, location: str, date: str) -> list[AggregateRecord]:
        """Return aggregates for one location and date.

        Args:
            location: Normalized location name.
            date: Canonical ``YYYY-MM-DD`` date.

        Returns:
            Aggregates ordered by creation time.
        """
        return await asyncio.to_thread(self._read_group_sync, location, date)

    async def insert(self, aggregate: AggregateRecord) -> None:
        """Persist a new aggregate document.

        Args:
            aggregate: Aggregate with a composite key not yet stored.

        Raises:
            AggregateWriteConflict: If the composite key already exists.
            TidelinkStoreError: If the write fails.
        """
        await asyncio.to_thread(self._insert_sync, aggregate)
        _LOGGER.info(
            "aggregate_created",
            composite_key=aggregate.composite_key,
            metadata_ref_count=len(aggregate.metadata_refs),
        )

    async def replace(self, aggregate: AggregateRecord) -> None:
        """Overwrite a stored aggregate document.

        The stored document must still hold ``aggregate.revision - 1``.

        Args:
            aggregate: Updated aggregate.

        Raises:
            AggregateWriteConflict: If another writer updated the aggregate first.
            TidelinkStoreError: If the aggregate does not exist or write fails.
        """
        await asyncio.to_thread(self._replace_sync, aggregate)
        _LOGGER.info(
            "aggregate_merged",
            composite_key=aggregate.composite_key,
            metadata_ref_count=len(aggregate.metadata_refs),
        )

    async def list_all(self) -> list[AggregateRecord]:
        """Return every stored aggregate in creation order."""
        return await asyncio.to_thread(self._list_all_sync)

    @asynccontextmanager
    async def cluster_lock(self, location: str, date: str) -> AsyncIterator[None]:
        """Hold the exclusive writer lock of one ``(location, date)`` cluster.

        The lock is an advisory file lock, so it also excludes pipelines in
        other threads and processes that share the data root.

        Args:
            location: Normalized location name.
            date: Canonical ``YYYY-MM-DD`` date.

        Raises:
            TidelinkStoreError: If the platform has no ``fcntl`` file locking.
        """
        fcntl = _import_fcntl()
        group_dir = self._group_dir(location, date)
        group_dir.mkdir(parents=True, exist_ok=True)
        with (group_dir / CLUSTER_LOCK_FILE_NAME).open("a", encoding="utf-8") as handle:
            while True:
                try:
                    fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    await asyncio.sleep(CLUSTER_LOCK_POLL_SECONDS)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)

    def _find_key_sync(self, composite_key: str) -> AggregateRecord | None:
        identity = _split_composite_key(composite_key)
        if identity is None:
            return None
        document_path = self._group_dir(*identity) / _document_name(composite_key)
        if not document_path.exists():
            return None
        return _read_document(document_path)

    def _read_group_sync(self, location: str, date: str) -> list[AggregateRecord]:
        group_dir = self._group_dir(location, date)
        if not group_dir.exists():
            return []
        records = [_read_document(path) for path in sorted(group_dir.glob("*.json"))]
        return sorted(records, key=lambda record: (record.created_at, record.composite_key))

    def _insert_sync(self, aggregate: AggregateRecord) -> None:
        group_dir = self._group_dir(aggregate.location, aggregate.date)
        group_dir.mkdir(parents=True, exist_ok=True)
        document_path = group_dir / _document_name(aggregate.composite_key)
        staging_path = _write_staging_file(group_dir, aggregate_to_payload(aggregate))
        try:
            os.link(staging_path, document_path)
        except FileExistsError as error:
            raise AggregateWriteConflict(aggregate.composite_key) from error
        except OSError as error:
            raise TidelinkStoreError(
                f"Failed to persist aggregate at {document_path}: {error}. "
                "Check write permissions and available disk space."
            ) from error
        finally:
            staging_path.unlink(missing_ok=True)

    def _replace_sync(self, aggregate: AggregateRecord) -> None:
        group_dir = self._group_dir(aggregate.location, aggregate.date)
        document_path = group_dir / _document_name(aggregate.composite_key)
        if not document_path.exists():
            raise TidelinkStoreError(
                f"Cannot update aggregate '{aggregate.composite_key}': no stored document. "
                "Insert the aggregate before replacing it."
            )
        stored_revision = _read_document(document_path).revision
        if stored_revision != aggregate.revision - 1:
            _LOGGER.warning(
                "stale_aggregate_update",
                composite_key=aggregate.composite_key,
                stored_revision=stored_revision,
                base_revision=aggregate.revision - 1,
            )
            raise AggregateWriteConflict(aggregate.composite_key)
        staging_path = _write_staging_file(group_dir, aggregate_to_payload(aggregate))
        try:
            os.replace(staging_path, document_path)
        except OSError as error:
            staging_path.unlink(missing_ok=True)
            raise TidelinkStoreError(
                f"Failed to update aggregate at {document_path}: {error}. "
                "Check write permissions and available disk space."
            ) from error

    def _list_all_sync(self) -> list[AggregateRecord]:
        records = [
            _read_document(path)
            for group_dir in self._group_dirs()
            for path in sorted(group_dir.glob("*.json"))
        ]
        return sorted(records, key=lambda record: (record.created_at, record.composite_key))

    def _group_dirs(self) -> list[Path]:
        return sorted(path for path in self._root.iterdir() if path.is_dir())

    def _group_dir(self, location: str, date: str) -> Path:
        return self._root / _digest(f"{location}|{date}")


def _split_composite_key(composite_key: str) -> tuple[str, str] | None:
    """Return the ``(location, date)`` a composite key was built from."""
    if len(composite_key) <= _KEY_SUFFIX_LENGTH:
        return None
    suffix = composite_key[-_KEY_SUFFIX_LENGTH:]
    if suffix[0] != "_" or suffix[11] != "_":
        return None
    return composite_key[:-_KEY_SUFFIX_LENGTH], suffix[1:11]


def _import_fcntl() -> Any:
    try:
        import fcntl
    except ImportError as error:  # pragma: no cover - non-Unix platforms
        raise TidelinkStoreError(
            "Aggregate writes require Unix file locking (fcntl is not available). "
            "Run Tidelink on Linux or macOS."
        ) from error
    return fcntl


def _document_name(composite_key: str) -> str:
    return f"{_digest(composite_key)}.json"


def _digest(value: str) -> str:
    hasher = hashlib.new(HASH_ALGORITHM)
    hasher.update(value.encode("utf-8"))
    return hasher.hexdigest()[:KEY_DIGEST_LENGTH]


def _write_staging_file(group_dir: Path, payload: dict[str, object]) -> Path:
    """Write a document to a unique temporary file in the target directory."""
    staging_path = group_dir / f".staging-{uuid4().hex}.tmp"
    try:
        staging_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    except OSError as error:
        staging_path.unlink(missing_ok=True)
        raise TidelinkStoreError(
            f"Failed to stage aggregate document in {group_dir}: {error}. "
            "Check write permissions and available disk space."
        ) from error
    return staging_path


def _read_document(document_path: Path) -> AggregateRecord:
    """Read and validate one aggregate document."""
    try:
        payload: Any = json.loads(document_path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise TidelinkStoreError(
                f"Failed to parse aggregate document at {document_path}: "
                "expected JSON object at top level. Remove or repair the document."
            )
        return aggregate_from_payload(payload)
    except json.JSONDecodeError as error:
        raise TidelinkStoreError(
            f"Failed to parse aggregate document at {document_path}: {error.msg}. "
            "Remove or repair the document."
        ) from error
    except (KeyError, TypeError, ValueError) as error:
        raise TidelinkStoreError(
            f"Invalid aggregate document at {document_path}: {error}. "
            "Remove or repair the document."
        ) from error
