"""
Execution runner.

Claims one job, hands it to a caller-supplied callback and records the
outcome. Callback errors end up on the job row, never in the caller.
"""

import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

from jobqueue.claim import ClaimProtocol
from jobqueue.constants import SPAN_EXECUTE_JOB, JobStatus, TransitionOutcome
from jobqueue.db.repository import JobRepository
from jobqueue.lifecycle import LifecycleController, encode_result
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import get_tracer
from jobqueue.types.job import JobRecord

logger = logging.getLogger(__name__)

# Callbacks may be plain functions or coroutine functions
Processor = Callable[[JobRecord], Any]


def error_message(exc: BaseException) -> str:
    """Human-readable message for a callback error."""
    message = str(exc)
    if message:
        return message
    return exc.__class__.__name__


class Runner:
    """
    Runs the claim -> process -> resolve sequence for one job.
    """

    def __init__(
        self,
        claimer: ClaimProtocol,
        lifecycle: LifecycleController,
        repository: JobRepository,
    ):
        self._claimer = claimer
        self._lifecycle = lifecycle
        self._repo = repository
        self._metrics = get_metrics()

    async def run_next(self, process: Processor) -> JobRecord | None:
        """
        Process the next available job.

        Args:
            process: Callback receiving the claimed job. Its return value
                becomes the job result; an exception fails the job.

        Returns:
            Snapshot of the resolved job, or None if no job was claimed.
        """
        claim = await self._claimer.claim()
        if not claim.claimed:
            return None

        job = claim.job
        lock_token = job.locked_by
        start_time = time.monotonic()

        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", job.id)
            span.set_attribute("retry_count", job.retry_count)

            try:
                value = process(job)
                if inspect.isawaitable(value):
                    value = await value
            except Exception as e:
                message = error_message(e)
                logger.info(
                    "Job callback raised",
                    extra={"job_id": job.id, "error": message},
                )
                span.record_exception(e)
                outcome = await self._lifecycle.fail(job.id, message, lock_token)
                resolved = job.evolve(status=JobStatus.FAILED, locked_by=None, error=message)
            else:
                outcome = await self._lifecycle.complete(job.id, value, lock_token)
                resolved = job.evolve(
                    status=JobStatus.COMPLETED,
                    locked_by=None,
                    result=encode_result(value),
                )

        duration = time.monotonic() - start_time

        if outcome == TransitionOutcome.STALE:
            # The claim was taken away while the callback ran
            logger.warning(
                "Job changed while processing, keeping stored state",
                extra={"job_id": job.id, "worker_id": self._claimer.worker_id},
            )
            return await self._repo.get_job(job.id)

        self._metrics.record_job_duration(resolved.status.value, duration)
        return resolved
