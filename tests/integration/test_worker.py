"""
Integration tests for worker and sweeper functionality.
"""

import asyncio
import json
from datetime import timedelta

from sqlalchemy import update

from jobqueue.config import Settings
from jobqueue.constants import JobStatus, TransitionOutcome
from jobqueue.db import Job, utcnow
from jobqueue.queue import Queue
from jobqueue.sweeper import Sweeper
from jobqueue.worker import Worker


def payload(job_type: str, **data) -> str:
    return json.dumps({"job_type": job_type, "data": data})


class TestWorkerIntegration:
    """Integration tests for worker job processing."""

    async def test_full_job_lifecycle_success(self, queue: Queue, test_settings: Settings):
        """Test enqueue -> claim -> handler -> completed."""
        job_id = await queue.enqueue(payload("echo", message="test"))
        worker = Worker(queue, settings=test_settings)

        assert await worker.run_once() is True

        job = await queue.get_job(job_id)
        assert job.status == JobStatus.COMPLETED
        assert json.loads(job.result) == {"echo": {"message": "test"}}
        assert worker.processed == 1

    async def test_failing_handler_then_retry(self, queue: Queue, test_settings: Settings):
        """Test that a failed job is requeued by retry and run again."""
        job_id = await queue.enqueue(payload("failing_job"))
        worker = Worker(queue, settings=test_settings)

        await worker.run_once()
        failed = await queue.get_job(job_id)
        assert failed.status == JobStatus.FAILED
        assert failed.error == "Intentional failure after 0 retries"

        assert await queue.retry(job_id) == TransitionOutcome.APPLIED
        await worker.run_once()

        failed_again = await queue.get_job(job_id)
        assert failed_again.status == JobStatus.FAILED
        assert failed_again.error == "Intentional failure after 1 retries"
        assert failed_again.retry_count == 1

    async def test_unknown_job_type_fails_job(self, queue: Queue, test_settings: Settings):
        job_id = await queue.enqueue(payload("does_not_exist"))
        worker = Worker(queue, settings=test_settings)

        await worker.run_once()

        job = await queue.get_job(job_id)
        assert job.status == JobStatus.FAILED
        assert "No handler registered" in job.error

    async def test_run_once_on_empty_queue(self, queue: Queue, test_settings: Settings):
        worker = Worker(queue, settings=test_settings)

        assert await worker.run_once() is False
        assert worker.processed == 0

    async def test_worker_drains_queue_concurrently(
        self,
        queue: Queue,
        test_settings: Settings,
    ):
        """Test a multi-slot worker processing every job exactly once."""
        job_ids = [
            await queue.enqueue(payload("sleep", duration_seconds=0.01)) for _ in range(8)
        ]
        worker = Worker(queue, concurrency=4, settings=test_settings)

        task = asyncio.create_task(worker.start())
        for _ in range(200):
            if worker.processed == len(job_ids):
                break
            await asyncio.sleep(0.01)
        await worker.stop()
        await asyncio.wait_for(task, timeout=5)

        assert worker.processed == len(job_ids)
        stats = await queue.stats()
        assert stats["completed"] == len(job_ids)
        assert stats["active"] == 0


class TestSweeperIntegration:
    """Integration tests for reclaiming orphaned claims."""

    async def test_sweeper_reclaims_orphaned_claim(
        self,
        queue: Queue,
        test_settings: Settings,
    ):
        """Test that a claim abandoned past the threshold is requeued."""
        job_id = await queue.enqueue(payload("echo"))
        claim = await queue.claim()
        assert claim.job.id == job_id

        sweeper = Sweeper(queue.repository, stall_threshold_seconds=60, settings=test_settings)
        assert await sweeper.run_once() == 0

        async with queue.repository.db.session() as session:
            await session.execute(
                update(Job)
                .where(Job.id == job_id)
                .values(updated_at=utcnow() - timedelta(minutes=5))
            )

        assert await sweeper.run_once() == 1

        job = await queue.get_job(job_id)
        assert job.status == JobStatus.WAITING
        assert job.locked_by is None

        # The old claim can no longer resolve the job
        assert await queue.complete(job_id, "late") == TransitionOutcome.STALE

        worker = Worker(queue, settings=test_settings)
        assert await worker.run_once() is True
        assert (await queue.get_job(job_id)).status == JobStatus.COMPLETED
