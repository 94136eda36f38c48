import httpx

from app.platform.config import settings

# Browser-like headers reduce false blocking by anti-automation layers
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "max-age=0",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
}

PAGE_HEADERS = {
    "User-Agent": settings.LINK_CHECKER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def build_http_client() -> httpx.AsyncClient:
    """
    Shared client for one job. Redirects are never followed automatically;
    callers opt in per request.
    """
    limits = httpx.Limits(
        max_connections=settings.LINK_CHECKER_MAX_CONCURRENCY,
        max_keepalive_connections=settings.LINK_CHECKER_MAX_CONCURRENCY,
    )
    return httpx.AsyncClient(
        follow_redirects=False,
        limits=limits,
        timeout=settings.LINK_CHECKER_TIMEOUT,
    )
