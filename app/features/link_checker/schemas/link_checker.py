"""
Link Checker Schemas

Request/response models for the link checker API, plus the job document
that is persisted in Redis and returned to pollers.
"""
import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class JobStatus(str, enum.Enum):
    """Link check job state machine"""
    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class CheckMode(str, enum.Enum):
    single = "single"
    crawl = "crawl"


class LinkType(str, enum.Enum):
    hyperlink = "hyperlink"
    favicon = "favicon"
    canonical = "canonical"
    iframe = "iframe"
    feed = "feed"
    manifest = "manifest"
    image = "image"
    image_srcset = "image-srcset"
    video = "video"
    audio = "audio"
    stylesheet = "stylesheet"
    script = "script"
    preload = "preload"
    prefetch = "prefetch"
    dns_prefetch = "dns-prefetch"
    preconnect = "preconnect"


TERMINAL_STATUSES = {JobStatus.completed, JobStatus.failed}


# ============================================================================
# Links
# ============================================================================

class LinkCheckOptions(BaseModel):
    check_images: bool = False
    check_css_js: bool = False
    external_only: bool = False


class LinkCandidate(BaseModel):
    """A URL discovered in page markup, tagged with the role it played."""
    url: str
    type: LinkType
    source: str


class RedirectHop(BaseModel):
    from_url: str
    to_url: str
    status: int


class CheckedLink(LinkCandidate):
    status: int
    status_text: str = ""
    response_time_ms: int = 0
    redirect_chain: Optional[List[RedirectHop]] = None
    final_url: Optional[str] = None
    checked: bool = True
    error: Optional[str] = None


# ============================================================================
# Page fetching and protection detection
# ============================================================================

class FetchResult(BaseModel):
    success: bool
    html: Optional[str] = None
    status: Optional[int] = None
    error: Optional[str] = None
    timed_out: bool = False


class ProtectionSignal(BaseModel):
    detected: bool = False
    cloudflare: bool = False
    recaptcha: bool = False
    js_required: bool = False
    empty_body: bool = False
    details: List[str] = Field(default_factory=list)


class ProtectionWarning(BaseModel):
    detected: bool = True
    type: List[str] = Field(default_factory=list)
    message: str
    details: List[str] = Field(default_factory=list)
    affected_pages: Optional[int] = None


# ============================================================================
# Jobs
# ============================================================================

class JobProgress(BaseModel):
    checked: int = 0
    crawled_pages: int = 0


class JobStats(BaseModel):
    total: int = 0
    working: int = 0
    broken: int = 0
    redirects: int = 0


class FailedPage(BaseModel):
    url: str
    error: Optional[str] = None


class LinkCheckJob(BaseModel):
    """Job document stored under linkchecker:<job_id>."""
    job_id: str
    status: JobStatus = JobStatus.queued
    url: str
    mode: CheckMode
    options: LinkCheckOptions = Field(default_factory=LinkCheckOptions)
    progress: JobProgress = Field(default_factory=JobProgress)
    results: List[CheckedLink] = Field(default_factory=list)
    stats: Optional[JobStats] = None
    crawled_pages: List[str] = Field(default_factory=list)
    failed_pages: List[FailedPage] = Field(default_factory=list)
    protection_warning: Optional[ProtectionWarning] = None
    truncated: bool = False
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


# ============================================================================
# API
# ============================================================================

class LinkCheckStartRequest(BaseModel):
    """Request to start a link check job."""
    url: str
    mode: str = CheckMode.single.value
    options: LinkCheckOptions = Field(default_factory=LinkCheckOptions)

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://example.com",
                "mode": "crawl",
                "options": {"check_images": True, "check_css_js": False, "external_only": False},
            }
        }


class LinkCheckStartResponse(BaseModel):
    job_id: str
    status: JobStatus
    message: str
