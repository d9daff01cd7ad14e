"""
SQLAlchemy database models.
Defines the jobs table.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from jobqueue.constants import DEFAULT_PRIORITY, JobStatus


def utcnow() -> datetime:
    """Naive UTC timestamp as stored in the jobs table."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Job(Base):
    """
    Job model representing a unit of work in the queue.

    This table is the only shared state between workers. Claims are
    made with a conditional UPDATE on locked_by, so every lifecycle
    transition goes through a guarded single-row write.

    Key constraints:
    - status is restricted to the JobStatus domain by a CHECK constraint
    - locked_by is non-null exactly while status is 'active'
    - retry_count only grows, one step per retry
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    # Opaque work unit, encoding is up to the producer
    payload: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    # Status and priority
    status: Mapped[JobStatus] = mapped_column(
        Enum(
            JobStatus,
            name="job_status",
            native_enum=False,
            create_constraint=True,
            length=10,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=JobStatus.WAITING,
    )
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_PRIORITY,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )

    # Claim token of the worker holding the job
    locked_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Resolution
    result: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Retry tracking
    retry_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    available_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        # Candidate selection: status filter, then priority/age ordering
        Index("ix_jobs_claim", "status", "priority", "created_at"),
        Index("ix_jobs_status_updated", "status", "updated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"Job(id={self.id}, status={self.status}, "
            f"priority={self.priority}, retry_count={self.retry_count})"
        )
