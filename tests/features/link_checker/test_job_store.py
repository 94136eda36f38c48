from datetime import datetime, timezone

import pytest

from app.features.link_checker.exceptions import (
    InvalidModeError,
    InvalidURLError,
    JobNotFoundError,
    JobPersistenceError,
)
from app.features.link_checker.schemas.link_checker import CheckMode, JobStatus, LinkCheckJob
from app.features.link_checker.services.link_checker_service import LinkCheckerService, generate_job_id


def _job(job_id="job_1_abc") -> LinkCheckJob:
    now = datetime.now(timezone.utc)
    return LinkCheckJob(job_id=job_id, url="https://example.com/", mode=CheckMode.single, created_at=now, updated_at=now)


class TestJobStore:
    @pytest.mark.asyncio
    async def test_round_trip_with_ttl(self, job_store, fake_redis):
        await job_store.set_with_ttl(_job())

        assert "linkchecker:job_1_abc" in fake_redis.data
        assert 0 < await fake_redis.ttl("linkchecker:job_1_abc") <= 3600
        stored = await job_store.get("job_1_abc")
        assert stored.status == JobStatus.queued

    @pytest.mark.asyncio
    async def test_missing_and_corrupt_documents(self, job_store, fake_redis):
        assert await job_store.get("nope") is None

        await fake_redis.set("linkchecker:bad", "{not json")
        assert await job_store.get("bad") is None

    @pytest.mark.asyncio
    async def test_redis_errors_are_wrapped(self, job_store, fake_redis):
        fake_redis.fail = True
        with pytest.raises(JobPersistenceError):
            await job_store.get("job_1_abc")
        with pytest.raises(JobPersistenceError):
            await job_store.set_with_ttl(_job())


class TestLinkCheckerService:
    def test_job_ids_are_unique(self):
        ids = {generate_job_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(job_id.startswith("job_") for job_id in ids)

    @pytest.mark.asyncio
    async def test_submit_queues_normalized_job(self, job_store):
        job, response = await LinkCheckerService(job_store).submit("example.com", "crawl")

        assert job.url == "https://example.com"
        assert job.mode == CheckMode.crawl
        assert response.status == JobStatus.queued
        assert (await job_store.get(job.job_id)).status == JobStatus.queued

    @pytest.mark.asyncio
    async def test_submit_rejects_before_writing(self, job_store, fake_redis):
        service = LinkCheckerService(job_store)
        with pytest.raises(InvalidURLError):
            await service.submit("http://192.168.0.10/")
        with pytest.raises(InvalidModeError):
            await service.submit("https://example.com", "everything")
        assert fake_redis.writes == []

    @pytest.mark.asyncio
    async def test_poll_unknown_job(self, job_store):
        with pytest.raises(JobNotFoundError):
            await LinkCheckerService(job_store).poll("job_0_missing")
