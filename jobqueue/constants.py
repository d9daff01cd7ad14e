"""
Application constants.
Centralized location for all constant values used across the queue.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions performed by the queue:
    - WAITING -> ACTIVE (claimed by a worker)
    - ACTIVE -> COMPLETED (callback returned)
    - ACTIVE -> FAILED (callback raised)
    - FAILED -> WAITING (explicit retry)

    DELAYED, PAUSED, STALLED and REMOVED are part of the stored domain
    but nothing in the core moves a job into or out of them.
    """

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DELAYED = "delayed"
    PAUSED = "paused"
    STALLED = "stalled"
    REMOVED = "removed"


class ClaimStatus(StrEnum):
    """Outcome of a single claim attempt."""

    CLAIMED = "claimed"
    EMPTY = "empty"
    CONTENDED = "contended"


class TransitionOutcome(StrEnum):
    """Outcome of a guarded lifecycle transition."""

    APPLIED = "applied"
    STALE = "stale"


MEMORY_DATABASE = ":memory:"

# Default values
DEFAULT_PRIORITY = 0
LOCK_TOKEN_SUFFIX_LENGTH = 9

# Metrics names
METRIC_QUEUE_DEPTH = "job_queue_depth"
METRIC_JOBS_ENQUEUED = "jobs_enqueued_total"
METRIC_JOBS_CLAIMED = "jobs_claimed_total"
METRIC_CLAIM_CONFLICTS = "claim_conflicts_total"
METRIC_JOBS_RESOLVED = "jobs_resolved_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_STALE_TRANSITIONS = "stale_transitions_total"
METRIC_JOBS_RECLAIMED = "jobs_reclaimed_total"

# Trace span names
SPAN_CLAIM_JOB = "claim_job"
SPAN_EXECUTE_JOB = "execute_job"
