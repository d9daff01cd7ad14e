"""
Worker process for executing jobs.

The worker repeatedly asks the queue for the next job and runs it
through the handler registry. The queue does no scheduling of its own;
this loop is just one more caller of run_next.
"""

import asyncio
import logging
import signal

from jobqueue.config import Settings, get_settings
from jobqueue.observability.logging import bind_context, setup_logging
from jobqueue.observability.tracing import setup_tracing
from jobqueue.queue import Queue
from jobqueue.runner import Processor
from jobqueue.worker.handlers import execute_job

logger = logging.getLogger(__name__)


class Worker:
    """
    Job worker that polls for and executes jobs.

    Features:
    - Up to `concurrency` run_next calls in flight, all competing
      through the same claim protocol
    - Backs off for poll_interval when the queue is empty
    - Graceful shutdown on SIGTERM/SIGINT
    """

    def __init__(
        self,
        queue: Queue,
        processor: Processor = execute_job,
        concurrency: int | None = None,
        poll_interval: float | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue: An opened queue.
            processor: run_next callback. Defaults to handler dispatch.
            concurrency: Number of concurrent job slots.
            poll_interval: Seconds between polls when the queue is empty.
        """
        settings = settings or get_settings()

        self.queue = queue
        self.processor = processor
        self.concurrency = max(1, concurrency or settings.worker_concurrency)
        self.poll_interval = poll_interval or settings.worker_poll_interval_seconds

        self._running = False
        self._processed = 0

    @property
    def processed(self) -> int:
        """Number of jobs this worker has resolved."""
        return self._processed

    async def start(self) -> None:
        """Run job slots until stop() is called."""
        logger.info(
            "Worker starting",
            extra={"worker_id": self.queue.worker_id, "concurrency": self.concurrency}
        )
        self._running = True

        slots = [asyncio.create_task(self._slot(i)) for i in range(self.concurrency)]
        await asyncio.gather(*slots)

        logger.info(
            "Worker stopped",
            extra={"worker_id": self.queue.worker_id, "processed": self._processed}
        )

    async def stop(self) -> None:
        """Stop the worker after in-flight jobs finish."""
        logger.info("Worker stopping", extra={"worker_id": self.queue.worker_id})
        self._running = False

    async def run_once(self) -> bool:
        """
        Process at most one job.

        Returns:
            True if a job was claimed and resolved.
        """
        job = await self.queue.run_next(self.processor)
        if job is None:
            return False

        self._processed += 1
        logger.info(
            "Job processed",
            extra={"job_id": job.id, "status": job.status.value}
        )
        return True

    async def _slot(self, slot: int) -> None:
        while self._running:
            try:
                if not await self.run_once():
                    await asyncio.sleep(self.poll_interval)
            except Exception as e:
                # Store faults surface here; keep polling
                logger.exception(
                    f"Error in worker loop: {e}",
                    extra={"worker_id": self.queue.worker_id, "slot": slot}
                )
                await asyncio.sleep(self.poll_interval)


async def run_async() -> None:
    """Run the worker asynchronously."""
    setup_logging()
    setup_tracing()

    settings = get_settings()
    queue = Queue(settings.database, settings=settings)
    await queue.open()
    bind_context(worker_id=queue.worker_id)

    worker = Worker(queue, settings=settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        await queue.close()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
