import secrets
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.features.link_checker.exceptions import (
    JobNotFoundError,
    JobPersistenceError,
    SubmissionValidationError,
)
from app.features.link_checker.schemas.link_checker import LinkCheckStartRequest, LinkType
from app.features.link_checker.services.job_processor import JobProcessor
from app.features.link_checker.services.job_store import JobStore
from app.features.link_checker.services.link_checker_service import LinkCheckerService
from app.platform.cache.redis import get_redis
from app.platform.config import settings
from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)


def verify_worker_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False)),
):
    """Shared-token gate, active only when LINK_CHECKER_WORKER_TOKEN is configured."""
    expected = settings.LINK_CHECKER_WORKER_TOKEN
    if not expected:
        return
    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing worker token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_job_store() -> JobStore:
    return JobStore(get_redis())


def get_link_checker_service(store: JobStore = Depends(get_job_store)) -> LinkCheckerService:
    return LinkCheckerService(store)


def get_job_processor(store: JobStore = Depends(get_job_store)) -> JobProcessor:
    return JobProcessor(store)


router = APIRouter(
    prefix="/link-checker",
    tags=["link-checker"],
    dependencies=[Depends(verify_worker_token)],
)


@router.post("/start")
async def start_link_check(
    payload: LinkCheckStartRequest,
    background_tasks: BackgroundTasks,
    service: LinkCheckerService = Depends(get_link_checker_service),
    processor: JobProcessor = Depends(get_job_processor),
):
    """
    Queue a link check job and return its id immediately.
    The job runs after the response is sent; poll /link-checker/job/{job_id}.
    """
    try:
        job, response = await service.submit(payload.url, payload.mode, payload.options)
    except SubmissionValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except JobPersistenceError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job store unavailable, please try again later",
        )

    background_tasks.add_task(processor.process, job.job_id, job.url, job.mode, job.options)

    return api_response(
        data=response,
        message=response.message,
        status_code=status.HTTP_200_OK,
    )


@router.get("/job/{job_id}")
async def get_link_check_job(
    job_id: str,
    service: LinkCheckerService = Depends(get_link_checker_service),
):
    try:
        job = await service.poll(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found or expired")
    except JobPersistenceError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job store unavailable, please try again later",
        )

    return api_response(data=job, message=f"Job {job.status.value}")


@router.get("/info")
async def link_checker_info():
    info = {
        "service": "Broken Link Checker",
        "version": "2.0.0",
        "description": "Check broken links on web pages with single page or full website crawling",
        "features": [
            "Single page link checking",
            "Full website crawling (breadth-first)",
            f"Comprehensive link type detection ({len(LinkType)} types)",
            "Always checked: hyperlinks, favicons, canonical URLs, iframes, RSS/Atom feeds, PWA manifests",
            "Optional media: images, srcset images, video sources, audio sources (with check_images)",
            "Optional resources: stylesheets, scripts, preload, prefetch, dns-prefetch, preconnect (with check_css_js)",
            "External links only option",
            "Redirect chain tracking",
            "Response time metrics",
            "Bot protection and JavaScript rendering detection",
            "Concurrent link checking",
            "Background job processing with real-time progress",
        ],
        "limits": {
            "max_depth": settings.LINK_CHECKER_MAX_DEPTH,
            "max_pages": settings.LINK_CHECKER_MAX_PAGES,
            "max_links": settings.LINK_CHECKER_MAX_LINKS,
            "max_concurrency": settings.LINK_CHECKER_MAX_CONCURRENCY,
            "timeout": f"{settings.LINK_CHECKER_TIMEOUT:g}s",
            "max_content_size": f"{settings.LINK_CHECKER_MAX_CONTENT_SIZE / 1024 / 1024:g}MB",
            "job_ttl": f"{settings.LINK_CHECKER_JOB_TTL // 60}min",
        },
        "usage": {
            "start_job": {
                "endpoint": "POST /api/v1/link-checker/start",
                "body": {
                    "url": "string (required) - URL to check",
                    "mode": 'string (optional) - "single" or "crawl" (default: "single")',
                    "options": {
                        "check_images": "boolean (optional) - Check image and media links",
                        "check_css_js": "boolean (optional) - Check CSS and JS files",
                        "external_only": "boolean (optional) - Check only external links",
                    },
                },
            },
            "poll_job": {
                "endpoint": "GET /api/v1/link-checker/job/{job_id}",
                "statuses": ["queued", "processing", "completed", "failed"],
            },
        },
    }
    return api_response(data=info, message="Link checker service information")
