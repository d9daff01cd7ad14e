"""
Durable SQLite Job Queue

Producers enqueue opaque payloads with a priority; concurrent workers
claim them with a compare-and-swap update, run them, and record the
result or error. Failed jobs can be retried after a delay.
"""

__version__ = "1.0.0"

from jobqueue.constants import ClaimStatus, JobStatus, TransitionOutcome  # noqa: E402
from jobqueue.queue import Queue, QueueNotOpenError  # noqa: E402
from jobqueue.types.job import ClaimResult, JobRecord  # noqa: E402

__all__ = [
    "Queue",
    "QueueNotOpenError",
    "JobRecord",
    "ClaimResult",
    "JobStatus",
    "ClaimStatus",
    "TransitionOutcome",
]
