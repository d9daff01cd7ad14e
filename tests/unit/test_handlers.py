"""
Unit tests for job handlers.
"""

import json
from datetime import datetime

import pytest

from jobqueue.constants import JobStatus
from jobqueue.types.job import JobContext, JobRecord
from jobqueue.worker.handlers import (
    InvalidPayloadError,
    UnknownJobTypeError,
    build_context,
    execute_job,
    get_handler,
    handle_echo,
    handle_failing_job,
    list_handlers,
)


def make_job(payload: str, retry_count: int = 0) -> JobRecord:
    now = datetime(2024, 1, 1, 12, 0, 0)
    return JobRecord(
        id=1,
        payload=payload,
        status=JobStatus.ACTIVE,
        priority=0,
        created_at=now,
        updated_at=now,
        retry_count=retry_count,
        available_at=now,
        locked_by="test-worker-1-abc",
    )


class TestJobHandlers:
    """Tests for job handlers."""

    @pytest.fixture
    def job_context(self) -> JobContext:
        """Create a test job context."""
        return JobContext(
            job_id=1,
            job_type="echo",
            data={"message": "test"},
            retry_count=0,
            lock_token="test-worker-1-abc",
        )

    def test_list_handlers(self):
        """Test listing registered handlers."""
        handlers = list_handlers()

        assert "echo" in handlers
        assert "sleep" in handlers
        assert "failing_job" in handlers

    def test_get_handler_exists(self):
        """Test getting an existing handler."""
        handler = get_handler("echo")
        assert handler is not None
        assert handler == handle_echo

    def test_get_handler_not_exists(self):
        """Test getting a non-existent handler."""
        assert get_handler("nonexistent") is None

    async def test_echo_handler(self, job_context: JobContext):
        """Test the echo handler."""
        result = await handle_echo(job_context)

        assert result == {"echo": {"message": "test"}}

    async def test_failing_handler(self, job_context: JobContext):
        """Test the failing job handler."""
        with pytest.raises(RuntimeError, match="Intentional failure"):
            await handle_failing_job(job_context)

    async def test_execute_job_with_valid_type(self):
        """Test execute_job with a valid job type."""
        job = make_job(json.dumps({"job_type": "echo", "data": {"n": 1}}))

        result = await execute_job(job)

        assert result == {"echo": {"n": 1}}

    async def test_execute_job_with_invalid_type(self):
        """Test execute_job with an unregistered job type."""
        job = make_job(json.dumps({"job_type": "nonexistent_handler"}))

        with pytest.raises(UnknownJobTypeError, match="No handler registered"):
            await execute_job(job)

    async def test_execute_job_with_malformed_payload(self):
        with pytest.raises(InvalidPayloadError):
            await execute_job(make_job("not json"))


class TestJobContext:
    """Tests for JobContext."""

    def test_build_context(self):
        job = make_job(
            json.dumps({"job_type": "sleep", "data": {"duration_seconds": 0}}),
            retry_count=2,
        )

        context = build_context(job)

        assert context.job_id == 1
        assert context.job_type == "sleep"
        assert context.data == {"duration_seconds": 0}
        assert context.lock_token == "test-worker-1-abc"
        assert context.metadata == {}
        assert context.is_retry is True

    def test_first_attempt_is_not_retry(self):
        context = build_context(make_job(json.dumps({"job_type": "echo"})))

        assert context.is_retry is False
