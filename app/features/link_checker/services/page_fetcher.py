import asyncio
from typing import Optional

import httpx

from app.features.link_checker.exceptions import FetchError
from app.features.link_checker.schemas.link_checker import FetchResult
from app.features.link_checker.services.http_client import PAGE_HEADERS
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml")


class PageFetcher:
    """
    Retrieves a single page's HTML.

    Only HTML/XHTML responses are accepted and bodies are capped at
    `max_content_size` bytes, checked against Content-Length and again while
    streaming. Every outcome comes back as a FetchResult.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout: float = settings.LINK_CHECKER_TIMEOUT,
        max_content_size: int = settings.LINK_CHECKER_MAX_CONTENT_SIZE,
    ):
        self.client = client
        self.timeout = timeout
        self.max_content_size = max_content_size

    async def fetch(self, url: str, timeout: Optional[float] = None) -> FetchResult:
        timeout = timeout or self.timeout
        try:
            html, status_code = await asyncio.wait_for(self._read_html(url), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return FetchResult(success=False, error="Request timeout", timed_out=True)
        except FetchError as e:
            return FetchResult(success=False, error=str(e), timed_out=e.timed_out)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return FetchResult(success=False, error=str(e) or e.__class__.__name__)
        except Exception as e:
            logger.warning(f"Unexpected error fetching {url}: {e}")
            return FetchResult(success=False, error=f"Unexpected error: {e}")

        return FetchResult(success=True, html=html, status=status_code)

    async def _read_html(self, url: str):
        async with self.client.stream(
            "GET", url, headers=PAGE_HEADERS, follow_redirects=True
        ) as response:
            content_type = response.headers.get("content-type", "").lower()
            if not any(kind in content_type for kind in HTML_CONTENT_TYPES):
                raise FetchError("Not an HTML page")

            content_length = response.headers.get("content-length")
            if content_length and content_length.isdigit() and int(content_length) > self.max_content_size:
                raise FetchError("Content too large")

            body = bytearray()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) > self.max_content_size:
                    raise FetchError("Content too large")

            encoding = response.charset_encoding or "utf-8"
            try:
                html = body.decode(encoding, errors="replace")
            except LookupError:
                html = body.decode("utf-8", errors="replace")

            logger.debug(f"Fetched {url} ({response.status_code}, {len(body)} bytes)")
            return html, response.status_code
