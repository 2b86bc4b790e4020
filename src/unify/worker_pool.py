"""Background unification worker pool.

This module runs file unification as queued background jobs consumed by a
fixed number of worker tasks. A failing file is recorded on its job and
never stops the workers or other files.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from types import TracebackType
from typing import cast

from core.constants import DEFAULT_WORKER_COUNT
from core.logging_config import get_logger
from core.types import UnificationReport
from unify.pipeline import UnificationPipeline

_LOGGER = get_logger(__name__)


@dataclass
class UnificationJob:
    """One queued unification of a registered file.

    Attributes:
        file_id: Registered file identifier.
        report: Unification report once the job succeeded.
        error: Failure captured when the job failed.
    """

    file_id: str
    report: UnificationReport | None = None
    error: BaseException | None = None
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def done(self) -> bool:
        """Return whether the job has finished."""
        return self._done.is_set()

    async def result(self) -> UnificationReport:
        """Wait for the job and return its report.

        Raises:
            TidelinkError: The failure captured while unifying the file.
        """
        await self._done.wait()
        if self.error is not None:
            raise self.error
        return cast(UnificationReport, self.report)


class UnificationWorkerPool:
    """Queue of file ids consumed by concurrent unification workers."""

    def __init__(
        self,
        pipeline: UnificationPipeline,
        worker_count: int = DEFAULT_WORKER_COUNT,
    ) -> None:
        self._pipeline = pipeline
        self._worker_count = max(1, worker_count)
        self._queue: asyncio.Queue[UnificationJob] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []

    async def __aenter__(self) -> "UnificationWorkerPool":
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_type is None:
            await self.join()
        await self.close()

    def start(self) -> None:
        """Start worker tasks on the running event loop."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index)) for index in range(self._worker_count)
        ]
        _LOGGER.debug("worker_pool_started", worker_count=self._worker_count)

    def submit(self, file_id: str) -> UnificationJob:
        """Queue one file for unification.

        Args:
            file_id: Registered file identifier.

        Returns:
            Job tracking the queued unification.
        """
        self.start()
        job = UnificationJob(file_id=file_id)
        self._queue.put_nowait(job)
        _LOGGER.info("job_submitted", file_id=file_id, queue_size=self._queue.qsize())
        return job

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        await self._queue.join()

    async def close(self) -> None:
        """Cancel worker tasks and wait for them to stop."""
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._run_job(job, index)
            finally:
                self._queue.task_done()

    async def _run_job(self, job: UnificationJob, index: int) -> None:
        try:
            job.report = await self._pipeline.unify(job.file_id)
        except asyncio.CancelledError:
            job.error = asyncio.CancelledError(f"Unification of {job.file_id} was cancelled")
            raise
        except Exception as error:
            job.error = error
            _LOGGER.error("job_failed", file_id=job.file_id, worker=index, error=str(error))
        finally:
            job._done.set()
