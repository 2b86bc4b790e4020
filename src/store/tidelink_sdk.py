"""Python SDK for unification workflows.

This module exposes high-level APIs for registering uploads, unifying them
into sampling-event aggregates, and listing or exporting the results.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Sequence

from core.batch_spec import BatchFileEntry, load_batch_spec
from core.config import TidelinkConfig
from core.constants import DEFAULT_CATEGORY
from core.s3_uri import parse_s3_uri
from core.types import (
    AggregateFilter,
    AggregateRecord,
    DataFile,
    S3ExportRequest,
    UnificationReport,
)
from store.aggregate_export import export_aggregates_bytes
from store.aggregate_query import filter_aggregates
from store.aggregate_store import JsonAggregateStore
from store.file_registry import FileRegistry
from store.s3_export import create_s3_client, upload_export
from unify.pipeline import UnificationPipeline
from unify.worker_pool import UnificationJob, UnificationWorkerPool


@dataclass(frozen=True)
class BatchFileResult:
    """Outcome of one file from a batch run.

    Attributes:
        entry: Batch entry that was registered.
        data_file: Registered file record after processing.
        report: Unification report when the file succeeded.
        error: Failure message when the file failed.
    """

    entry: BatchFileEntry
    data_file: DataFile
    report: UnificationReport | None = None
    error: str | None = None


class TidelinkClient:
    """Primary SDK entry point for unification workflows."""

    def __init__(self, config: TidelinkConfig | None = None) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
        """
        self._config = config or TidelinkConfig.from_env()
        self._store = JsonAggregateStore(self._config.data_root)
        self._registry = FileRegistry(self._config.data_root)

    @property
    def config(self) -> TidelinkConfig:
        """Return the runtime configuration."""
        return self._config

    def register_file(
        self,
        path: str | Path,
        category: str = DEFAULT_CATEGORY,
        original_name: str | None = None,
        mime_type: str | None = None,
    ) -> DataFile:
        """Register a local file for unification.

        Args:
            path: Local file path.
            category: Upload category.
            original_name: Optional display name.
            mime_type: Optional MIME type hint.

        Returns:
            Pending file record.
        """
        return self._registry.register(path, category, original_name, mime_type)

    def unify(self, file_id: str) -> UnificationReport:
        """Unify one registered file into aggregates.

        Args:
            file_id: Registered file identifier.

        Returns:
            Unification report.

        Raises:
            TidelinkError: If the file fails; its status is marked failed.
        """
        return asyncio.run(self._build_pipeline().unify(file_id))

    def process_files(self, file_ids: Sequence[str]) -> list[UnificationJob]:
        """Unify several files concurrently through the worker pool.

        A failing file is reported on its job and never affects the others.

        Args:
            file_ids: Registered file identifiers.

        Returns:
            Finished jobs in submission order.
        """
        return asyncio.run(self._process_files(file_ids))

    def file_status(self, file_id: str) -> DataFile:
        """Load the lifecycle record of one registered file."""
        return self._registry.load(file_id)

    def list_files(
        self,
        file_type: str | None = None,
        category: str | None = None,
    ) -> list[DataFile]:
        """List registered files in registration order, optionally filtered."""
        return self._registry.list_files(file_type=file_type, category=category)

    def list_aggregates(self, filter_spec: AggregateFilter | None = None) -> list[AggregateRecord]:
        """List aggregates matching optional constraints.

        Args:
            filter_spec: Optional query constraints.

        Returns:
            Aggregates sorted by date and time.
        """
        aggregates = asyncio.run(self._store.list_all())
        return filter_aggregates(aggregates, filter_spec or AggregateFilter())

    def get_aggregate(self, composite_key: str) -> AggregateRecord | None:
        """Load one aggregate by exact composite key."""
        return asyncio.run(self._store.get(composite_key))

    def export_aggregates(
        self,
        export_format: str = "json",
        filter_spec: AggregateFilter | None = None,
    ) -> bytes:
        """Export filtered aggregates as encoded bytes.

        Args:
            export_format: One of ``json``, ``csv``, or ``parquet``.
            filter_spec: Optional query constraints.

        Returns:
            Encoded export payload.
        """
        return export_aggregates_bytes(self.list_aggregates(filter_spec), export_format)

    def export_to_s3(self, request: S3ExportRequest) -> str:
        """Export filtered aggregates to one S3 object.

        Args:
            request: Export format, destination URI, and optional filter.

        Returns:
            Destination URI.
        """
        location = parse_s3_uri(request.output_uri)
        payload = self.export_aggregates(request.export_format, request.filter_spec)
        upload_export(
            create_s3_client(self._config), payload, location, request.export_format.lower()
        )
        return request.output_uri

    def run_batch(self, spec_file: str | Path) -> list[BatchFileResult]:
        """Register and unify every file listed in a YAML batch spec.

        Args:
            spec_file: Path to YAML batch spec.

        Returns:
            One result per listed file, in spec order.
        """
        spec = load_batch_spec(spec_file)
        client = self.with_data_root(spec.defaults.data_root) if spec.defaults.data_root else self
        data_files = [
            client.register_file(entry.path, entry.category, original_name=entry.name)
            for entry in spec.files
        ]
        jobs = client.process_files([data_file.file_id for data_file in data_files])
        return [
            BatchFileResult(
                entry=entry,
                data_file=client.file_status(job.file_id),
                report=job.report,
                error=None if job.error is None else str(job.error),
            )
            for entry, job in zip(spec.files, jobs)
        ]

    def with_data_root(self, data_root: str | Path) -> "TidelinkClient":
        """Clone the client with a different local data root.

        Args:
            data_root: New data root path.

        Returns:
            New SDK client instance.
        """
        resolved_root = Path(data_root).expanduser().resolve()
        return TidelinkClient(replace(self._config, data_root=resolved_root))

    def _build_pipeline(self) -> UnificationPipeline:
        return UnificationPipeline(self._config, self._store, self._registry)

    async def _process_files(self, file_ids: Sequence[str]) -> list[UnificationJob]:
        async with UnificationWorkerPool(
            self._build_pipeline(), self._config.worker_count
        ) as pool:
            jobs = [pool.submit(file_id) for file_id in file_ids]
        return jobs
