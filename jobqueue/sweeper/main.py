"""
Sweeper for recovering orphaned claims.

A worker that dies after claiming a job leaves it active forever; the
queue itself has no lease. The sweeper is an opt-in process that finds
active jobs untouched for longer than a threshold and puts them back in
the waiting set. retry_count is not changed.
"""

import asyncio
import logging
import signal
from datetime import timedelta

from jobqueue.config import Settings, get_settings
from jobqueue.db.models import utcnow
from jobqueue.db.repository import JobRepository
from jobqueue.observability.logging import setup_logging
from jobqueue.observability.metrics import get_metrics
from jobqueue.queue import Queue

logger = logging.getLogger(__name__)


class Sweeper:
    """
    Reclaims stalled active jobs.

    Runs periodically to:
    1. Find jobs in ACTIVE status whose updated_at is older than the threshold
    2. Return them to WAITING with the lock cleared
    3. Record metrics for monitoring
    """

    def __init__(
        self,
        repository: JobRepository,
        stall_threshold_seconds: int | None = None,
        interval_seconds: int | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the sweeper.

        Args:
            repository: Repository of the store to sweep.
            stall_threshold_seconds: Age after which an active job is reclaimed.
            interval_seconds: Seconds between sweeps.
        """
        settings = settings or get_settings()
        self._repo = repository
        self.stall_threshold = stall_threshold_seconds or settings.sweeper_stall_threshold_seconds
        self.interval = interval_seconds or settings.sweeper_interval_seconds
        self._running = False
        self._metrics = get_metrics()

    async def start(self) -> None:
        """Start the sweeper loop."""
        logger.info(
            f"Sweeper starting with interval {self.interval}s",
            extra={"stall_threshold_seconds": self.stall_threshold}
        )
        self._running = True

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Error in sweeper loop: {e}")

            await asyncio.sleep(self.interval)

        logger.info("Sweeper stopped")

    async def stop(self) -> None:
        """Stop the sweeper."""
        logger.info("Sweeper stopping")
        self._running = False

    async def run_once(self) -> int:
        """
        Sweep once (for testing or cron-style execution).

        Returns:
            Number of jobs reclaimed.
        """
        cutoff = utcnow() - timedelta(seconds=self.stall_threshold)
        count = await self._repo.reclaim_stalled(cutoff)

        if count > 0:
            self._metrics.record_jobs_reclaimed(count)
            logger.warning(f"Reclaimed {count} orphaned claims")

        return count


async def run_async() -> None:
    """Run the sweeper asynchronously."""
    setup_logging()

    settings = get_settings()
    queue = Queue(settings.database, settings=settings)
    await queue.open()

    sweeper = Sweeper(queue.repository, settings=settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(sweeper.stop())
        )

    try:
        await sweeper.start()
    finally:
        await queue.close()


def run() -> None:
    """Run the sweeper."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
