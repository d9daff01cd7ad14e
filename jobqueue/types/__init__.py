"""
Type definitions for the job queue.
"""

from jobqueue.types.job import (
    ClaimResult,
    JobContext,
    JobPayload,
    JobRecord,
)

__all__ = [
    "ClaimResult",
    "JobContext",
    "JobPayload",
    "JobRecord",
]
