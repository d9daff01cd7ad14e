"""
Unit tests for the claim protocol.
"""

import asyncio

import pytest

from jobqueue.claim import ClaimProtocol, generate_lock_token
from jobqueue.config import Settings
from jobqueue.constants import ClaimStatus, JobStatus
from jobqueue.db import JobRepository


class TestLockToken:
    """Tests for claim token generation."""

    def test_token_embeds_worker_id(self):
        assert generate_lock_token("worker-7").startswith("worker-7-")

    def test_tokens_are_unique(self):
        tokens = {generate_lock_token("w") for _ in range(1000)}
        assert len(tokens) == 1000


class TestClaimProtocol:
    """Tests for ClaimProtocol."""

    @pytest.fixture
    def claimer(self, repo: JobRepository, test_settings: Settings) -> ClaimProtocol:
        return ClaimProtocol(repo, "test-worker", test_settings)

    async def test_claim_empty(self, claimer: ClaimProtocol):
        result = await claimer.claim()

        assert result.status == ClaimStatus.EMPTY
        assert result.job is None
        assert result.claimed is False

    async def test_claim_success(self, claimer: ClaimProtocol, repo: JobRepository):
        job_id = await repo.insert_job("payload")

        result = await claimer.claim()

        assert result.claimed is True
        assert result.attempts == 1
        assert result.job.id == job_id
        assert result.job.status == JobStatus.ACTIVE
        assert result.job.locked_by.startswith("test-worker-")

        stored = await repo.get_job(job_id)
        assert stored.status == JobStatus.ACTIVE
        assert stored.locked_by == result.job.locked_by

    async def test_lost_race_moves_to_next_candidate(
        self,
        claimer: ClaimProtocol,
        repo: JobRepository,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """Test that a lost conditional update re-selects."""
        first = await repo.insert_job("first", priority=2)
        second = await repo.insert_job("second", priority=1)

        original_claim = repo.claim_job
        raced = False

        async def racing_claim(job_id, lock_token, now):
            nonlocal raced
            if not raced:
                # Another worker takes the candidate between select and update
                raced = True
                await original_claim(job_id, "other-worker-token", now)
            return await original_claim(job_id, lock_token, now)

        monkeypatch.setattr(repo, "claim_job", racing_claim)

        result = await claimer.claim()

        assert result.claimed is True
        assert result.attempts == 2
        assert result.job.id == second
        assert (await repo.get_job(first)).locked_by == "other-worker-token"

    async def test_claim_gives_up_when_contended(
        self,
        repo: JobRepository,
        test_settings: Settings,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """Test that the retry budget bounds the claim loop."""
        settings = test_settings.model_copy(update={"claim_max_attempts": 3})
        claimer = ClaimProtocol(repo, "test-worker", settings)
        await repo.insert_job("payload")

        async def always_lose(job_id, lock_token, now):
            return False

        monkeypatch.setattr(repo, "claim_job", always_lose)

        result = await claimer.claim()

        assert result.status == ClaimStatus.CONTENDED
        assert result.attempts == 3
        assert result.job is None

    def test_backoff_is_bounded(self, claimer: ClaimProtocol):
        for attempt in range(1, 20):
            delay = claimer.backoff_delay(attempt)
            assert 0 <= delay <= claimer.backoff_max

    async def test_concurrent_claims_are_exclusive(
        self,
        repo: JobRepository,
        test_settings: Settings,
    ):
        """Test that N claimers over M jobs never share a job."""
        job_ids = {await repo.insert_job(f"job-{i}") for i in range(5)}
        claimers = [
            ClaimProtocol(repo, f"worker-{i}", test_settings) for i in range(8)
        ]

        results = await asyncio.gather(*(c.claim() for c in claimers))

        claimed = [r.job.id for r in results if r.claimed]
        assert len(claimed) == len(set(claimed))
        assert set(claimed) == job_ids
        assert sum(1 for r in results if r.status == ClaimStatus.EMPTY) == 3
