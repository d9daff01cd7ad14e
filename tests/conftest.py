"""
Pytest configuration and shared fixtures.
"""

import json
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from jobqueue.config import Settings
from jobqueue.db import Database, JobRepository
from jobqueue.queue import Queue


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        database=":memory:",
        log_level="DEBUG",
        log_format="console",
        claim_max_attempts=50,
        claim_backoff_base_seconds=0.001,
        claim_backoff_max_seconds=0.01,
        worker_poll_interval_seconds=0.01,
        sweeper_interval_seconds=1,
        sweeper_stall_threshold_seconds=60,
    )


@pytest_asyncio.fixture
async def queue(test_settings: Settings) -> AsyncGenerator[Queue]:
    """An opened in-memory queue."""
    async with Queue(":memory:", settings=test_settings, worker_id="test-worker") as q:
        yield q


@pytest_asyncio.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database]:
    """An initialized in-memory database."""
    db = Database(":memory:", test_settings)
    await db.init()
    yield db
    await db.close()


@pytest.fixture
def repo(database: Database) -> JobRepository:
    """Create a repository instance."""
    return JobRepository(database)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Path for a file-backed store."""
    return str(tmp_path / "test_queue.db")


@pytest.fixture
def sample_job_payload() -> str:
    """Create a sample job payload."""
    return json.dumps({"job_type": "echo", "data": {"message": "Hello, World!"}})
