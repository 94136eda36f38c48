import asyncio
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

import httpx

from app.features.link_checker.exceptions import JobPersistenceError
from app.features.link_checker.schemas.link_checker import (
    TERMINAL_STATUSES,
    CheckedLink,
    CheckMode,
    JobProgress,
    JobStats,
    JobStatus,
    LinkCandidate,
    LinkCheckOptions,
    ProtectionWarning,
)
from app.features.link_checker.services.bot_detection import (
    build_crawl_warning,
    build_page_warning,
    detect_bot_protection,
    needs_warning,
)
from app.features.link_checker.services.concurrency import ConcurrencyLimiter
from app.features.link_checker.services.crawler import CrawlOrchestrator
from app.features.link_checker.services.http_client import build_http_client
from app.features.link_checker.services.job_store import JobStore
from app.features.link_checker.services.link_extractor import extract_links
from app.features.link_checker.services.link_status import LinkStatusChecker
from app.features.link_checker.services.page_fetcher import PageFetcher
from app.features.link_checker.utils.urls import is_same_domain
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

SINGLE_PROGRESS_EVERY = 5
CRAWL_PROGRESS_EVERY = 10


def _is_redirect(link: CheckedLink) -> bool:
    # A followed redirect that lands on a 2xx still counts as a redirect
    if 300 <= link.status < 400:
        return True
    return bool(link.redirect_chain) and 200 <= link.status < 300


def calculate_stats(results: List[CheckedLink]) -> JobStats:
    redirects = sum(1 for link in results if _is_redirect(link))
    working = sum(1 for link in results if 200 <= link.status < 300 and not link.redirect_chain)
    return JobStats(
        total=len(results),
        working=working,
        redirects=redirects,
        # 4xx/5xx, transport failures (0) and anything else unexpected
        broken=len(results) - working - redirects,
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobProcessor:
    """
    Drives one link check job from queued to a terminal status.

    The job document in the store is only ever written by the processor that
    owns it. Progress is saved while links are being checked so pollers see
    results grow; persistence failures are logged and never stop the job.
    """

    def __init__(
        self,
        store: JobStore,
        *,
        client_factory: Callable[[], httpx.AsyncClient] = build_http_client,
        max_concurrency: int = settings.LINK_CHECKER_MAX_CONCURRENCY,
        max_pages: int = settings.LINK_CHECKER_MAX_PAGES,
        max_depth: int = settings.LINK_CHECKER_MAX_DEPTH,
        max_links: int = settings.LINK_CHECKER_MAX_LINKS,
        timeout: float = settings.LINK_CHECKER_TIMEOUT,
        max_content_size: int = settings.LINK_CHECKER_MAX_CONTENT_SIZE,
    ):
        self.store = store
        self.client_factory = client_factory
        self.max_concurrency = max_concurrency
        self.max_pages = max_pages
        self.max_depth = max_depth
        self.max_links = max_links
        self.timeout = timeout
        self.max_content_size = max_content_size

    async def process(self, job_id: str, url: str, mode: CheckMode, options: LinkCheckOptions) -> None:
        logger.info(f"[{job_id}] Starting {mode.value} link check for {url}")
        try:
            await self._update(job_id, status=JobStatus.processing)

            async with self.client_factory() as client:
                fetcher = PageFetcher(client, timeout=self.timeout, max_content_size=self.max_content_size)
                checker = LinkStatusChecker(client, timeout=self.timeout)

                if mode == CheckMode.crawl:
                    await self._process_crawl(job_id, url, options, fetcher, checker)
                else:
                    await self._process_single(job_id, url, options, fetcher, checker)

        except Exception as e:
            logger.exception(f"[{job_id}] Link checker job error: {e}")
            await self._update(
                job_id,
                status=JobStatus.failed,
                error=str(e) or e.__class__.__name__,
                completed_at=_now(),
            )

    async def _process_single(
        self,
        job_id: str,
        url: str,
        options: LinkCheckOptions,
        fetcher: PageFetcher,
        checker: LinkStatusChecker,
    ) -> None:
        page = await fetcher.fetch(url)
        if not page.success:
            logger.info(f"[{job_id}] Failed to fetch {url}: {page.error}")
            await self._update(
                job_id,
                status=JobStatus.failed,
                error=f"Failed to fetch URL: {page.error}",
                completed_at=_now(),
            )
            return

        links = extract_links(page.html, url, options)
        signal = detect_bot_protection(page.html)

        protection_warning: Optional[ProtectionWarning] = None
        if needs_warning(len(links), signal):
            protection_warning = build_page_warning(len(page.html), len(links), signal)

        to_check, truncated = self._select_links(links, url, options)
        results = await self._check_links(
            job_id, to_check, checker, every=SINGLE_PROGRESS_EVERY, crawled_pages=1
        )

        await self._update(
            job_id,
            status=JobStatus.completed,
            progress=JobProgress(checked=len(results), crawled_pages=1),
            results=results,
            stats=calculate_stats(results),
            crawled_pages=[url],
            protection_warning=protection_warning,
            truncated=truncated,
            completed_at=_now(),
        )
        logger.info(f"[{job_id}] Completed: {len(results)} links checked")

    async def _process_crawl(
        self,
        job_id: str,
        url: str,
        options: LinkCheckOptions,
        fetcher: PageFetcher,
        checker: LinkStatusChecker,
    ) -> None:
        async def on_page(crawled_count: int) -> None:
            await self._update(job_id, progress=JobProgress(checked=0, crawled_pages=crawled_count))

        crawler = CrawlOrchestrator(
            fetcher,
            options,
            max_pages=self.max_pages,
            max_depth=self.max_depth,
            on_page=on_page,
        )
        crawl = await crawler.crawl(url)

        protection_warning = None
        if crawl.protected_pages:
            protection_warning = build_crawl_warning(crawl.protected_pages)

        crawled_count = len(crawl.crawled_pages)
        to_check, truncated = self._select_links(list(crawl.discovered.values()), url, options)
        results = await self._check_links(
            job_id, to_check, checker, every=CRAWL_PROGRESS_EVERY, crawled_pages=crawled_count
        )

        await self._update(
            job_id,
            status=JobStatus.completed,
            progress=JobProgress(checked=len(results), crawled_pages=crawled_count),
            results=results,
            stats=calculate_stats(results),
            crawled_pages=crawl.crawled_pages,
            failed_pages=crawl.failed_pages,
            protection_warning=protection_warning,
            truncated=truncated,
            completed_at=_now(),
        )
        logger.info(
            f"[{job_id}] Completed: {crawled_count} pages crawled, {len(results)} links checked"
        )

    def _select_links(
        self, links: List[LinkCandidate], target_url: str, options: LinkCheckOptions
    ) -> Tuple[List[LinkCandidate], bool]:
        """Apply external_only, keep the first candidate per URL and cap the batch."""
        if options.external_only:
            links = [link for link in links if not is_same_domain(target_url, link.url)]

        unique = {}
        for link in links:
            unique.setdefault(link.url, link)
        selected = list(unique.values())

        truncated = len(selected) > self.max_links
        return selected[: self.max_links], truncated

    async def _check_links(
        self,
        job_id: str,
        links: List[LinkCandidate],
        checker: LinkStatusChecker,
        *,
        every: int,
        crawled_pages: int,
    ) -> List[CheckedLink]:
        """Check every link under the concurrency cap, saving progress every `every` results."""
        results: List[CheckedLink] = []
        persist_lock = asyncio.Lock()
        limiter = ConcurrencyLimiter(self.max_concurrency)

        async def record(result: CheckedLink) -> None:
            results.append(result)
            if len(results) % every != 0:
                return
            # Writes are serialized and snapshot under the lock so saved results never shrink
            async with persist_lock:
                snapshot = list(results)
                await self._update(
                    job_id,
                    progress=JobProgress(checked=len(snapshot), crawled_pages=crawled_pages),
                    results=snapshot,
                    stats=calculate_stats(snapshot),
                )

        await limiter.map(checker.check, links, on_result=record)
        return results

    async def _update(self, job_id: str, **changes) -> bool:
        """Read-modify-write of the job document. Best effort: never raises."""
        try:
            job = await self.store.get(job_id)
            if job is None:
                logger.warning(f"[{job_id}] Job document missing or expired, update skipped")
                return False
            if job.status in TERMINAL_STATUSES:
                logger.warning(f"[{job_id}] Job already {job.status.value}, update skipped")
                return False

            changes["updated_at"] = _now()
            await self.store.set_with_ttl(job.model_copy(update=changes))
            return True
        except JobPersistenceError as e:
            logger.error(f"[{job_id}] Error updating job progress: {e}")
            return False
