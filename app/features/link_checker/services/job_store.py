from typing import Optional

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.features.link_checker.exceptions import JobPersistenceError
from app.features.link_checker.schemas.link_checker import LinkCheckJob
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

KEY_PREFIX = "linkchecker"


class JobStore:
    """Job documents in Redis, each expiring `ttl` seconds after its last write."""

    def __init__(self, redis: Redis, *, ttl: int = settings.LINK_CHECKER_JOB_TTL):
        self.redis = redis
        self.ttl = ttl

    @staticmethod
    def key(job_id: str) -> str:
        return f"{KEY_PREFIX}:{job_id}"

    async def get(self, job_id: str) -> Optional[LinkCheckJob]:
        try:
            raw = await self.redis.get(self.key(job_id))
        except RedisError as e:
            logger.error(f"Redis GET error for job {job_id}: {e}")
            raise JobPersistenceError(str(e)) from e

        if raw is None:
            return None

        try:
            return LinkCheckJob.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Corrupt job document for {job_id}: {e}")
            return None

    async def set_with_ttl(self, job: LinkCheckJob) -> None:
        try:
            await self.redis.set(self.key(job.job_id), job.model_dump_json(), ex=self.ttl)
        except RedisError as e:
            logger.error(f"Redis SET error for job {job.job_id}: {e}")
            raise JobPersistenceError(str(e)) from e
