"""
Job repository for database operations.
Implements the data access patterns the claim protocol and lifecycle
controller are built on.
"""

import logging
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import and_, func, select, update
from sqlalchemy.sql.elements import ColumnElement

from jobqueue.constants import DEFAULT_PRIORITY, JobStatus
from jobqueue.db.connection import Database
from jobqueue.db.models import Job, utcnow
from jobqueue.types.job import JobRecord

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Repository for job database operations.

    Implements:
    - Insert with defaults
    - Candidate selection ordered by priority then age
    - Single-row conditional updates used as compare-and-swap
    - Reads and statistics

    Every method runs in its own short, committed session. Store
    errors propagate untouched.
    """

    def __init__(self, database: Database):
        """
        Initialize the repository.

        Args:
            database: The opened database for the store location.
        """
        self._db = database

    @property
    def db(self) -> Database:
        return self._db

    async def insert_job(
        self,
        payload: str,
        priority: int = DEFAULT_PRIORITY,
        available_at: datetime | None = None,
    ) -> int:
        """
        Insert a new waiting job.

        Args:
            payload: The opaque job payload.
            priority: Job priority, higher is served first.
            available_at: Earliest claim time. Defaults to now.

        Returns:
            The id of the new job.
        """
        now = utcnow()
        job = Job(
            payload=payload,
            status=JobStatus.WAITING,
            priority=priority,
            created_at=now,
            updated_at=now,
            retry_count=0,
            available_at=available_at or now,
        )

        async with self._db.session() as session:
            session.add(job)
            await session.flush()
            job_id = job.id

        logger.debug("Inserted job", extra={"job_id": job_id, "priority": priority})
        return job_id

    async def get_job(self, job_id: int) -> JobRecord | None:
        """
        Get a job by ID.

        Args:
            job_id: The job id.

        Returns:
            A snapshot of the job or None if not found.
        """
        stmt = select(Job).where(Job.id == job_id)
        async with self._db.session() as session:
            result = await session.execute(stmt)
            job = result.scalar_one_or_none()
            return JobRecord.from_model(job) if job is not None else None

    async def select_candidate(self, now: datetime | None = None) -> JobRecord | None:
        """
        Read the next eligible job without claiming it.

        Eligible means waiting, unlocked and available. Ordering is
        priority descending, then oldest first; id breaks exact ties.

        Args:
            now: Reference time for the availability check.

        Returns:
            The best candidate or None.
        """
        now = now or utcnow()
        stmt = (
            select(Job)
            .where(
                and_(
                    Job.status == JobStatus.WAITING,
                    Job.locked_by.is_(None),
                    Job.available_at <= now,
                )
            )
            .order_by(Job.priority.desc(), Job.created_at.asc(), Job.id.asc())
            .limit(1)
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            job = result.scalar_one_or_none()
            return JobRecord.from_model(job) if job is not None else None

    async def _conditional_update(
        self,
        job_id: int,
        guards: Sequence[ColumnElement[bool]],
        values: dict[str, Any],
    ) -> int:
        """
        Update one row only if the guard predicates hold at write time.

        Returns:
            Number of rows affected (0 or 1).
        """
        stmt = (
            update(Job)
            .where(and_(Job.id == job_id, *guards))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return result.rowcount

    async def claim_job(self, job_id: int, lock_token: str, now: datetime) -> bool:
        """
        Atomically move a waiting, unlocked job to active.

        Args:
            job_id: The candidate job id.
            lock_token: Claim token to record in locked_by.
            now: Timestamp for updated_at.

        Returns:
            True if this call won the claim.
        """
        affected = await self._conditional_update(
            job_id,
            [Job.locked_by.is_(None), Job.status == JobStatus.WAITING],
            {"status": JobStatus.ACTIVE, "locked_by": lock_token, "updated_at": now},
        )
        return affected == 1

    async def complete_job(
        self,
        job_id: int,
        result: str | None,
        lock_token: str | None = None,
    ) -> bool:
        """
        Move an active job to completed and release its lock.

        Args:
            job_id: The job id.
            result: Encoded result, or None.
            lock_token: When given, the job must still hold this token.

        Returns:
            True if the transition was applied.
        """
        guards = [Job.status == JobStatus.ACTIVE]
        if lock_token is not None:
            guards.append(Job.locked_by == lock_token)
        affected = await self._conditional_update(
            job_id,
            guards,
            {
                "status": JobStatus.COMPLETED,
                "locked_by": None,
                "result": result,
                "updated_at": utcnow(),
            },
        )
        return affected == 1

    async def fail_job(
        self,
        job_id: int,
        error: str | None,
        lock_token: str | None = None,
    ) -> bool:
        """
        Move an active job to failed and release its lock.

        Args:
            job_id: The job id.
            error: Error message, or None.
            lock_token: When given, the job must still hold this token.

        Returns:
            True if the transition was applied.
        """
        guards = [Job.status == JobStatus.ACTIVE]
        if lock_token is not None:
            guards.append(Job.locked_by == lock_token)
        affected = await self._conditional_update(
            job_id,
            guards,
            {
                "status": JobStatus.FAILED,
                "locked_by": None,
                "error": error,
                "updated_at": utcnow(),
            },
        )
        return affected == 1

    async def retry_job(self, job_id: int, available_at: datetime) -> bool:
        """
        Put a failed job back in the waiting set.

        Args:
            job_id: The job id.
            available_at: Earliest time the job may be claimed again.

        Returns:
            True if the job was failed and has been requeued.
        """
        affected = await self._conditional_update(
            job_id,
            [Job.status == JobStatus.FAILED],
            {
                "status": JobStatus.WAITING,
                "locked_by": None,
                "error": None,
                "retry_count": func.coalesce(Job.retry_count, 0) + 1,
                "available_at": available_at,
                "updated_at": utcnow(),
            },
        )
        return affected == 1

    async def reclaim_stalled(self, cutoff: datetime) -> int:
        """
        Return active jobs untouched since cutoff to the waiting set.

        Used by the sweeper to recover claims whose worker went away.

        Args:
            cutoff: Jobs with updated_at before this are reclaimed.

        Returns:
            Number of reclaimed jobs.
        """
        now = utcnow()
        stmt = (
            update(Job)
            .where(
                and_(
                    Job.status == JobStatus.ACTIVE,
                    Job.updated_at < cutoff,
                )
            )
            .values(
                status=JobStatus.WAITING,
                locked_by=None,
                available_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            count = result.rowcount

        if count > 0:
            logger.info(f"Reclaimed {count} stalled jobs")

        return count

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[JobRecord], int]:
        """
        List jobs with optional status filtering.

        Args:
            status: Optional status filter.
            limit: Maximum number of jobs to return.
            offset: Offset for pagination.

        Returns:
            Tuple of (jobs, total_count).
        """
        count_stmt = select(func.count()).select_from(Job)
        stmt = select(Job).order_by(Job.created_at.desc(), Job.id.desc())
        if status is not None:
            count_stmt = count_stmt.where(Job.status == status)
            stmt = stmt.where(Job.status == status)
        stmt = stmt.limit(limit).offset(offset)

        async with self._db.session() as session:
            count_result = await session.execute(count_stmt)
            total = count_result.scalar() or 0

            result = await session.execute(stmt)
            jobs = [JobRecord.from_model(job) for job in result.scalars().all()]

        return jobs, total

    async def get_queue_depth(self, now: datetime | None = None) -> int:
        """
        Get the number of jobs currently eligible for a claim.

        Returns:
            Number of waiting, available jobs.
        """
        now = now or utcnow()
        stmt = select(func.count()).select_from(Job).where(
            and_(
                Job.status == JobStatus.WAITING,
                Job.locked_by.is_(None),
                Job.available_at <= now,
            )
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def get_job_stats(self) -> dict[str, int]:
        """
        Get job counts by status.

        Returns:
            Dictionary of status -> count, with every status present.
        """
        stmt = select(Job.status, func.count()).group_by(Job.status)
        async with self._db.session() as session:
            result = await session.execute(stmt)
            counts = {JobStatus(status).value: count for status, count in result.all()}

        return {status.value: counts.get(status.value, 0) for status in JobStatus}
