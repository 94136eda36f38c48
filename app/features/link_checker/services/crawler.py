from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Deque, Dict, List, Optional, Set, Tuple

from app.features.link_checker.schemas.link_checker import (
    FailedPage,
    LinkCandidate,
    LinkCheckOptions,
    LinkType,
)
from app.features.link_checker.services.bot_detection import (
    ProtectedPage,
    detect_bot_protection,
    needs_warning,
)
from app.features.link_checker.services.link_extractor import extract_links
from app.features.link_checker.services.page_fetcher import PageFetcher
from app.features.link_checker.utils.urls import hostname_of
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

PageCallback = Callable[[int], Awaitable[None]]


@dataclass
class CrawlResult:
    crawled_pages: List[str] = field(default_factory=list)
    failed_pages: List[FailedPage] = field(default_factory=list)
    discovered: Dict[str, LinkCandidate] = field(default_factory=dict)
    protected_pages: List[ProtectedPage] = field(default_factory=list)
    frontier_peak: int = 1


class CrawlOrchestrator:
    """
    Breadth-first crawl of every same-host page reachable from a start URL.

    Iterative, with an explicit visited set and FIFO frontier. Stops when the
    frontier is empty or `max_pages` pages (failed ones included) have been
    crawled. Links are only collected here; checking happens afterwards.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        options: Optional[LinkCheckOptions] = None,
        *,
        max_pages: int = settings.LINK_CHECKER_MAX_PAGES,
        max_depth: int = settings.LINK_CHECKER_MAX_DEPTH,
        on_page: Optional[PageCallback] = None,
    ):
        self.fetcher = fetcher
        self.options = options or LinkCheckOptions()
        self.max_pages = max_pages
        self.max_depth = max_depth
        self.on_page = on_page

    async def crawl(self, start_url: str) -> CrawlResult:
        result = CrawlResult()
        visited: Set[str] = set()
        # Everything ever put on the frontier, so shared navigation links queue once
        queued: Set[str] = {start_url}
        frontier: Deque[Tuple[str, int]] = deque([(start_url, 0)])
        start_host = hostname_of(start_url)

        while frontier and len(result.crawled_pages) < self.max_pages:
            url, depth = frontier.popleft()
            if url in visited:
                continue
            visited.add(url)

            page = await self.fetcher.fetch(url)
            result.crawled_pages.append(url)

            if not page.success:
                logger.info(f"Crawl: failed to fetch {url}: {page.error}")
                result.failed_pages.append(FailedPage(url=url, error=page.error))
            else:
                links = extract_links(page.html, url, self.options)
                signal = detect_bot_protection(page.html)
                if needs_warning(len(links), signal):
                    result.protected_pages.append(ProtectedPage(url=url, link_count=len(links), signal=signal))

                for link in links:
                    result.discovered.setdefault(link.url, link)

                if depth < self.max_depth:
                    for link in links:
                        if (
                            link.type == LinkType.hyperlink
                            and hostname_of(link.url) == start_host
                            and link.url not in queued
                        ):
                            queued.add(link.url)
                            frontier.append((link.url, depth + 1))
                    result.frontier_peak = max(result.frontier_peak, len(frontier))

            if self.on_page is not None:
                await self.on_page(len(result.crawled_pages))

        logger.info(
            f"Crawl of {start_url} finished: {len(result.crawled_pages)} pages, "
            f"{len(result.discovered)} unique links"
        )
        return result
