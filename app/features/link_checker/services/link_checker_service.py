import secrets
import time
from datetime import datetime, timezone
from typing import Optional, Tuple

from app.features.link_checker.exceptions import InvalidModeError, InvalidURLError, JobNotFoundError
from app.features.link_checker.schemas.link_checker import (
    CheckMode,
    JobStatus,
    LinkCheckJob,
    LinkCheckOptions,
    LinkCheckStartResponse,
)
from app.features.link_checker.services.job_store import JobStore
from app.platform.logger import get_logger
from app.platform.utils.url_validator import validate_url

logger = get_logger(__name__)


def generate_job_id() -> str:
    return f"job_{int(time.time() * 1000)}_{secrets.token_hex(8)}"


class LinkCheckerService:
    """Submission and polling of link check jobs."""

    def __init__(self, store: JobStore):
        self.store = store

    async def submit(
        self,
        url: str,
        mode: str = CheckMode.single.value,
        options: Optional[LinkCheckOptions] = None,
    ) -> Tuple[LinkCheckJob, LinkCheckStartResponse]:
        """
        Validate the target and create a queued job document.

        Nothing is written when validation fails. The caller schedules
        JobProcessor.process with the returned job.

        Raises:
            InvalidURLError: URL rejected by the validator
            InvalidModeError: mode is not "single" or "crawl"
            JobPersistenceError: the job could not be stored
        """
        is_valid, normalized_url, error_message = validate_url(url)
        if not is_valid:
            raise InvalidURLError(error_message)

        try:
            check_mode = CheckMode(mode)
        except ValueError:
            raise InvalidModeError('Invalid mode. Use "single" or "crawl"')

        now = datetime.now(timezone.utc)
        job = LinkCheckJob(
            job_id=generate_job_id(),
            status=JobStatus.queued,
            url=normalized_url,
            mode=check_mode,
            options=options or LinkCheckOptions(),
            created_at=now,
            updated_at=now,
        )
        await self.store.set_with_ttl(job)
        logger.info(f"[{job.job_id}] Queued {check_mode.value} link check for {normalized_url}")

        return job, LinkCheckStartResponse(
            job_id=job.job_id,
            status=JobStatus.queued,
            message=f"Job created successfully. Poll /api/v1/link-checker/job/{job.job_id} for progress.",
        )

    async def poll(self, job_id: str) -> LinkCheckJob:
        job = await self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job
