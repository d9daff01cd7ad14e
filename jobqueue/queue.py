"""
Queue facade.

Ties the store, claim protocol, lifecycle controller and runner
together behind the public queue operations.

Example:
    async with Queue(":memory:") as queue:
        await queue.enqueue('{"task": "process_image"}', priority=5)
        job = await queue.run_next(handle)
"""

import logging
import os
from typing import Any

from jobqueue.claim import ClaimProtocol
from jobqueue.config import Settings, get_settings
from jobqueue.constants import DEFAULT_PRIORITY, JobStatus, TransitionOutcome
from jobqueue.db.connection import Database
from jobqueue.db.repository import JobRepository
from jobqueue.lifecycle import LifecycleController
from jobqueue.observability.metrics import get_metrics
from jobqueue.runner import Processor, Runner
from jobqueue.types.job import ClaimResult, JobRecord

logger = logging.getLogger(__name__)


class QueueNotOpenError(RuntimeError):
    """Raised when an operation runs before open() or after close()."""


def default_worker_id() -> str:
    """Hostname plus PID, distinct for every process on every host."""
    return f"{os.uname().nodename}-{os.getpid()}"


class Queue:
    """
    Durable job queue backed by a single SQLite store.

    Several Queue instances (in one process or many) may share a file
    database; claims stay exclusive because they are decided by a
    conditional update in the store.
    """

    def __init__(
        self,
        database: str | None = None,
        *,
        settings: Settings | None = None,
        worker_id: str | None = None,
    ):
        """
        Create a queue for a store location.

        Args:
            database: File path or ':memory:'. Defaults to settings.database.
            settings: Optional settings override.
            worker_id: Identity embedded in claim tokens.
        """
        self._settings = settings or get_settings()
        self.database = database or self._settings.database
        self.worker_id = worker_id or self._settings.worker_id or default_worker_id()

        self._db = Database(self.database, self._settings)
        self._repo = JobRepository(self._db)
        self._claimer = ClaimProtocol(self._repo, self.worker_id, self._settings)
        self._lifecycle = LifecycleController(self._repo)
        self._runner = Runner(self._claimer, self._lifecycle, self._repo)
        self._metrics = get_metrics()

    async def open(self) -> "Queue":
        """Connect and make sure the jobs table exists."""
        await self._db.init()
        return self

    async def close(self) -> None:
        """Release the store connection."""
        await self._db.close()

    async def __aenter__(self) -> "Queue":
        return await self.open()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def repository(self) -> JobRepository:
        return self._repo

    def _ensure_open(self) -> None:
        if not self._db.is_open:
            raise QueueNotOpenError("Queue is not open. Call open() first.")

    async def enqueue(self, payload: str, priority: int = DEFAULT_PRIORITY) -> int:
        """
        Add a waiting job.

        Args:
            payload: Opaque payload, typically a JSON string.
            priority: Higher values are claimed first.

        Returns:
            The new job id.
        """
        if not isinstance(payload, str):
            raise TypeError("payload must be a string")
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise TypeError("priority must be an integer")
        self._ensure_open()

        job_id = await self._repo.insert_job(payload, priority)
        self._metrics.record_job_enqueued(priority)
        logger.info("Enqueued job", extra={"job_id": job_id, "priority": priority})
        return job_id

    async def claim(self) -> ClaimResult:
        """Claim the next job without processing it."""
        self._ensure_open()
        return await self._claimer.claim()

    async def run_next(self, process: Processor) -> JobRecord | None:
        """
        Claim the next job and run it through process.

        Returns:
            The completed or failed job, or None if nothing was claimed.
        """
        self._ensure_open()
        return await self._runner.run_next(process)

    async def complete(self, job_id: int, result: Any = None) -> TransitionOutcome:
        """Mark an active job completed."""
        self._ensure_open()
        return await self._lifecycle.complete(job_id, result)

    async def fail(self, job_id: int, error: str | None = None) -> TransitionOutcome:
        """Mark an active job failed."""
        self._ensure_open()
        return await self._lifecycle.fail(job_id, error)

    async def retry(self, job_id: int, delay_ms: int = 0) -> TransitionOutcome:
        """
        Requeue a failed job.

        Args:
            job_id: The failed job.
            delay_ms: Milliseconds before it becomes claimable; only whole
                seconds count.

        Returns:
            APPLIED, or STALE (no change) if the job was not failed.
        """
        self._ensure_open()
        return await self._lifecycle.retry(job_id, delay_ms)

    async def get_job(self, job_id: int) -> JobRecord | None:
        self._ensure_open()
        return await self._repo.get_job(job_id)

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[JobRecord], int]:
        self._ensure_open()
        return await self._repo.list_jobs(status=status, limit=limit, offset=offset)

    async def stats(self) -> dict[str, int]:
        """Job counts for every status."""
        self._ensure_open()
        return await self._repo.get_job_stats()

    async def queue_depth(self) -> int:
        """Number of jobs eligible for a claim right now."""
        self._ensure_open()
        depth = await self._repo.get_queue_depth()
        self._metrics.update_queue_depth(depth)
        return depth
