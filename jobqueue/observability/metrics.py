"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from jobqueue.constants import (
    METRIC_CLAIM_CONFLICTS,
    METRIC_JOB_DURATION,
    METRIC_JOBS_CLAIMED,
    METRIC_JOBS_ENQUEUED,
    METRIC_JOBS_RECLAIMED,
    METRIC_JOBS_RESOLVED,
    METRIC_QUEUE_DEPTH,
    METRIC_STALE_TRANSITIONS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Queue depth
    - Enqueues, claims and lost claim races
    - Job resolutions and execution duration
    - Stale transitions and sweeper reclaims
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of jobs eligible for a claim",
            registry=self._registry,
        )

        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of jobs enqueued",
            ["priority"],
            registry=self._registry,
        )

        self.jobs_claimed = Counter(
            METRIC_JOBS_CLAIMED,
            "Total number of successful claims",
            ["worker_id"],
            registry=self._registry,
        )

        # Conditional updates that matched no row
        self.claim_conflicts = Counter(
            METRIC_CLAIM_CONFLICTS,
            "Total number of claims lost to another worker",
            ["worker_id"],
            registry=self._registry,
        )

        self.jobs_resolved = Counter(
            METRIC_JOBS_RESOLVED,
            "Total number of jobs completed or failed",
            ["status"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["status"],
            buckets=(0.01, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        self.stale_transitions = Counter(
            METRIC_STALE_TRANSITIONS,
            "Total number of transitions whose guard no longer held",
            ["transition"],
            registry=self._registry,
        )

        self.jobs_reclaimed = Counter(
            METRIC_JOBS_RECLAIMED,
            "Total number of stalled claims returned to the queue",
            registry=self._registry,
        )

    def record_job_enqueued(self, priority: int) -> None:
        """Record a job submission."""
        self.jobs_enqueued.labels(priority=str(priority)).inc()

    def record_job_claimed(self, worker_id: str) -> None:
        """Record a won claim."""
        self.jobs_claimed.labels(worker_id=worker_id).inc()

    def record_claim_conflict(self, worker_id: str) -> None:
        """Record a lost claim race."""
        self.claim_conflicts.labels(worker_id=worker_id).inc()

    def record_job_resolved(self, status: str) -> None:
        """Record a completion or failure."""
        self.jobs_resolved.labels(status=status).inc()

    def record_job_duration(self, status: str, duration_seconds: float) -> None:
        """Record how long a callback ran."""
        self.job_duration.labels(status=status).observe(duration_seconds)

    def record_stale_transition(self, transition: str) -> None:
        self.stale_transitions.labels(transition=transition).inc()

    def record_jobs_reclaimed(self, count: int) -> None:
        self.jobs_reclaimed.inc(count)

    def update_queue_depth(self, depth: int) -> None:
        """Update the eligible queue depth."""
        self.queue_depth.set(depth)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics(registry: CollectorRegistry | None = None) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        registry: Optional registry, used only when the collector is created.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector(registry)
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
