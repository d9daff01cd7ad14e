"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from jobqueue.constants import ClaimStatus, JobStatus


@dataclass(frozen=True)
class JobRecord:
    """
    Detached snapshot of a row in the jobs table.

    Returned by every read and by run_next. It is never written back,
    so holding on to one cannot overwrite newer state.
    """

    id: int
    payload: str
    status: JobStatus
    priority: int
    created_at: datetime
    updated_at: datetime
    retry_count: int
    available_at: datetime
    locked_by: str | None = None
    result: str | None = None
    error: str | None = None

    @classmethod
    def from_model(cls, job: Any) -> "JobRecord":
        """Build a snapshot from a Job model instance or result row."""
        return cls(
            id=job.id,
            payload=job.payload,
            status=JobStatus(job.status),
            priority=job.priority,
            created_at=job.created_at,
            updated_at=job.updated_at,
            retry_count=job.retry_count,
            available_at=job.available_at,
            locked_by=job.locked_by,
            result=job.result,
            error=job.error,
        )

    def evolve(self, **changes: Any) -> "JobRecord":
        """Copy of this snapshot with some fields replaced."""
        return replace(self, **changes)

    @property
    def is_locked(self) -> bool:
        return self.locked_by is not None


@dataclass(frozen=True)
class ClaimResult:
    """
    Outcome of the claim protocol.

    CLAIMED carries the job; EMPTY means nothing was eligible; CONTENDED
    means every candidate seen was taken by another worker before the
    retry budget ran out.
    """

    status: ClaimStatus
    job: JobRecord | None = None
    attempts: int = 0

    @property
    def claimed(self) -> bool:
        return self.status == ClaimStatus.CLAIMED


class JobPayload(BaseModel):
    """
    Payload structure understood by the bundled worker.
    The queue itself treats payloads as opaque strings.
    """

    job_type: str
    data: dict[str, Any] = {}
    metadata: dict[str, Any] | None = None


@dataclass
class JobContext:
    """
    Context passed to worker handlers during execution.
    """

    job_id: int
    job_type: str
    data: dict[str, Any]
    retry_count: int
    lock_token: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_retry(self) -> bool:
        """Check if this job has been retried before."""
        return self.retry_count > 0
