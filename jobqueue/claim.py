"""
Claim protocol.

Selects the best eligible job and claims it with a conditional update.
No lock is held between the read and the write: if another worker
claims the candidate first, the update touches zero rows and the
selection is repeated, after a short jittered pause, until the retry
budget is spent.
"""

import asyncio
import logging
import random
import time
import uuid

from jobqueue.config import Settings, get_settings
from jobqueue.constants import (
    LOCK_TOKEN_SUFFIX_LENGTH,
    SPAN_CLAIM_JOB,
    ClaimStatus,
    JobStatus,
)
from jobqueue.db.models import utcnow
from jobqueue.db.repository import JobRepository
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import get_tracer
from jobqueue.types.job import ClaimResult

logger = logging.getLogger(__name__)


def generate_lock_token(worker_id: str) -> str:
    """
    Build a claim token unique across workers.

    The token only has to differ from every other live token so the
    conditional update can tell claims apart. It carries no ordering.
    """
    suffix = uuid.uuid4().hex[:LOCK_TOKEN_SUFFIX_LENGTH]
    return f"{worker_id}-{int(time.time() * 1000)}-{suffix}"


class ClaimProtocol:
    """
    Competes for jobs on behalf of one worker identity.
    """

    def __init__(
        self,
        repository: JobRepository,
        worker_id: str,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self._repo = repository
        self.worker_id = worker_id
        self.max_attempts = max(1, settings.claim_max_attempts)
        self.backoff_base = settings.claim_backoff_base_seconds
        self.backoff_max = settings.claim_backoff_max_seconds
        self._metrics = get_metrics()

    def backoff_delay(self, attempt: int) -> float:
        """Full-jitter exponential delay before the next selection."""
        ceiling = min(self.backoff_max, self.backoff_base * (2 ** attempt))
        return random.uniform(0, ceiling)

    async def claim(self) -> ClaimResult:
        """
        Claim the next eligible job.

        Returns:
            ClaimResult with CLAIMED and the job, EMPTY when nothing is
            eligible, or CONTENDED when every attempt lost its race.
        """
        with get_tracer().start_as_current_span(SPAN_CLAIM_JOB) as span:
            span.set_attribute("worker_id", self.worker_id)

            for attempt in range(1, self.max_attempts + 1):
                candidate = await self._repo.select_candidate()
                if candidate is None:
                    span.set_attribute("claim_status", ClaimStatus.EMPTY.value)
                    return ClaimResult(status=ClaimStatus.EMPTY, attempts=attempt)

                token = generate_lock_token(self.worker_id)
                now = utcnow()
                if await self._repo.claim_job(candidate.id, token, now):
                    self._metrics.record_job_claimed(self.worker_id)
                    span.set_attribute("job_id", candidate.id)
                    span.set_attribute("claim_status", ClaimStatus.CLAIMED.value)
                    logger.info(
                        "Claimed job",
                        extra={
                            "job_id": candidate.id,
                            "worker_id": self.worker_id,
                            "attempt": attempt,
                        },
                    )
                    job = candidate.evolve(
                        status=JobStatus.ACTIVE,
                        locked_by=token,
                        updated_at=now,
                    )
                    return ClaimResult(status=ClaimStatus.CLAIMED, job=job, attempts=attempt)

                self._metrics.record_claim_conflict(self.worker_id)
                logger.debug(
                    "Lost claim race",
                    extra={
                        "job_id": candidate.id,
                        "worker_id": self.worker_id,
                        "attempt": attempt,
                    },
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.backoff_delay(attempt))

            logger.warning(
                f"Claim gave up after {self.max_attempts} contended attempts",
                extra={"worker_id": self.worker_id},
            )
            span.set_attribute("claim_status", ClaimStatus.CONTENDED.value)
            return ClaimResult(status=ClaimStatus.CONTENDED, attempts=self.max_attempts)
