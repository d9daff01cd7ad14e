"""
Unit tests for logging, metrics and tracing setup.
"""

import json
import logging

import pytest
import structlog
from prometheus_client import CollectorRegistry

from jobqueue.config import Settings
from jobqueue.observability import (
    MetricsCollector,
    bind_context,
    clear_context,
    get_metrics,
    get_tracer,
    setup_logging,
)


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    @pytest.fixture
    def collector(self) -> MetricsCollector:
        return MetricsCollector(registry=CollectorRegistry())

    def test_records_claims_and_conflicts(self, collector: MetricsCollector):
        collector.record_job_claimed("worker-1")
        collector.record_claim_conflict("worker-1")
        collector.record_claim_conflict("worker-1")

        assert collector.jobs_claimed.labels(worker_id="worker-1")._value.get() == 1
        assert collector.claim_conflicts.labels(worker_id="worker-1")._value.get() == 2

    def test_exposition(self, collector: MetricsCollector):
        collector.record_job_enqueued(5)
        collector.record_job_resolved("completed")
        collector.record_job_duration("completed", 0.2)
        collector.update_queue_depth(3)

        output = collector.get_metrics().decode()

        assert 'jobs_enqueued_total{priority="5"} 1.0' in output
        assert 'jobs_resolved_total{status="completed"} 1.0' in output
        assert "job_queue_depth 3.0" in output
        assert collector.get_content_type().startswith("text/plain")

    def test_global_collector_is_shared(self):
        assert get_metrics() is get_metrics()


class TestLogging:
    """Tests for structured logging setup."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)
        clear_context()
        structlog.reset_defaults()

    def test_json_output_includes_extra_and_context(self, capsys: pytest.CaptureFixture[str]):
        setup_logging(Settings(log_format="json", log_level="INFO"))
        bind_context(worker_id="worker-9")

        logging.getLogger("jobqueue.test").info("Claimed job", extra={"job_id": 7})

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Claimed job"
        assert record["job_id"] == 7
        assert record["worker_id"] == "worker-9"
        assert record["level"] == "info"

    def test_log_level_is_applied(self):
        setup_logging(Settings(log_format="console", log_level="warning"))

        assert logging.getLogger().level == logging.WARNING


def test_tracer_available_without_setup():
    with get_tracer().start_as_current_span("test_span") as span:
        span.set_attribute("job_id", 1)
