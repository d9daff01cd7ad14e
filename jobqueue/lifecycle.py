"""
Lifecycle controller.

Owns the job state machine. Every transition is a guarded conditional
update: when the guard no longer holds (the job moved on, or was never
in the expected state) nothing is written and the outcome is STALE.
"""

import json
import logging
from datetime import timedelta
from typing import Any

from jobqueue.constants import JobStatus, TransitionOutcome
from jobqueue.db.models import utcnow
from jobqueue.db.repository import JobRepository
from jobqueue.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

# The only edges the queue itself takes. DELAYED, PAUSED, STALLED and
# REMOVED are left for external collaborators.
TRANSITIONS: frozenset[tuple[JobStatus, JobStatus]] = frozenset(
    {
        (JobStatus.WAITING, JobStatus.ACTIVE),
        (JobStatus.ACTIVE, JobStatus.COMPLETED),
        (JobStatus.ACTIVE, JobStatus.FAILED),
        (JobStatus.FAILED, JobStatus.WAITING),
    }
)


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Check whether the queue performs the current -> target edge."""
    return (JobStatus(current), JobStatus(target)) in TRANSITIONS


def encode_result(result: Any) -> str | None:
    """
    Encode a callback return value for the result column.

    Strings are stored verbatim, None as NULL, anything else as JSON.
    """
    if result is None:
        return None
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


def delay_to_seconds(delay_ms: int) -> int:
    """Whole seconds in a millisecond delay, rounded down."""
    if delay_ms < 0:
        raise ValueError("delay must be >= 0 milliseconds")
    return int(delay_ms) // 1000


class LifecycleController:
    """
    Applies completion, failure and retry transitions.
    """

    def __init__(self, repository: JobRepository):
        self._repo = repository
        self._metrics = get_metrics()

    def _outcome(self, applied: bool, transition: str, job_id: int) -> TransitionOutcome:
        if applied:
            return TransitionOutcome.APPLIED
        self._metrics.record_stale_transition(transition)
        logger.warning(
            "Stale transition ignored",
            extra={"job_id": job_id, "transition": transition},
        )
        return TransitionOutcome.STALE

    async def complete(
        self,
        job_id: int,
        result: Any = None,
        lock_token: str | None = None,
    ) -> TransitionOutcome:
        """
        Transition ACTIVE -> COMPLETED.

        Args:
            job_id: The job id.
            result: Callback result; encoded with encode_result.
            lock_token: Optional claim token the job must still hold.

        Returns:
            APPLIED, or STALE if the job was not active (or held by
            another token).
        """
        applied = await self._repo.complete_job(job_id, encode_result(result), lock_token)
        if applied:
            self._metrics.record_job_resolved(JobStatus.COMPLETED.value)
            logger.info("Job completed", extra={"job_id": job_id})
        return self._outcome(applied, "complete", job_id)

    async def fail(
        self,
        job_id: int,
        error: str | None = None,
        lock_token: str | None = None,
    ) -> TransitionOutcome:
        """
        Transition ACTIVE -> FAILED.

        Args:
            job_id: The job id.
            error: Error message; empty messages are stored as NULL.
            lock_token: Optional claim token the job must still hold.

        Returns:
            APPLIED, or STALE if the job was not active.
        """
        applied = await self._repo.fail_job(job_id, error or None, lock_token)
        if applied:
            self._metrics.record_job_resolved(JobStatus.FAILED.value)
            logger.warning("Job failed", extra={"job_id": job_id, "error": error})
        return self._outcome(applied, "fail", job_id)

    async def retry(self, job_id: int, delay_ms: int = 0) -> TransitionOutcome:
        """
        Transition FAILED -> WAITING.

        Clears the error, bumps retry_count and defers eligibility by
        the delay, truncated to whole seconds. A job that is not failed
        is left untouched.

        Args:
            job_id: The job id.
            delay_ms: Delay before the job is claimable again.

        Returns:
            APPLIED, or STALE if the job was not failed.
        """
        seconds = delay_to_seconds(delay_ms)
        available_at = utcnow() + timedelta(seconds=seconds)
        applied = await self._repo.retry_job(job_id, available_at)
        if applied:
            logger.info(
                "Job queued for retry",
                extra={"job_id": job_id, "delay_seconds": seconds},
            )
            return TransitionOutcome.APPLIED
        # Retrying a job that is not failed is an expected no-op
        logger.debug("Retry ignored, job not failed", extra={"job_id": job_id})
        return TransitionOutcome.STALE
