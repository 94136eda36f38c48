import asyncio
import time
from typing import List, Optional

import httpx

from app.features.link_checker.schemas.link_checker import CheckedLink, LinkCandidate, RedirectHop
from app.features.link_checker.services.http_client import BROWSER_HEADERS
from app.features.link_checker.utils.urls import resolve_url
from app.platform.config import settings

REDIRECT_STATUSES = {301, 302, 303, 307, 308}
# HEAD is commonly refused with these; a GET usually gets a real answer
FALLBACK_TO_GET_STATUSES = {400, 403, 405}
MAX_REDIRECTS = 5


class LinkStatusChecker:
    """
    Verifies a single candidate link.

    Uses HEAD first and retries once with GET on 400/403/405. Redirects are
    followed by hand (at most MAX_REDIRECTS hops) so the chain can be
    reported. Never raises: transport failures become status 0, timeouts
    become status 408.
    """

    def __init__(self, client: httpx.AsyncClient, *, timeout: float = settings.LINK_CHECKER_TIMEOUT):
        self.client = client
        self.timeout = timeout

    async def check(self, candidate: LinkCandidate, timeout: Optional[float] = None) -> CheckedLink:
        timeout = timeout or self.timeout
        start = time.perf_counter()
        redirect_chain: List[RedirectHop] = []
        current_url = candidate.url

        try:
            response = await self._probe(current_url, timeout)

            while response.status_code in REDIRECT_STATUSES and len(redirect_chain) < MAX_REDIRECTS:
                location = response.headers.get("location")
                next_url = resolve_url(current_url, location) if location else None
                if not next_url:
                    break

                redirect_chain.append(
                    RedirectHop(from_url=current_url, to_url=next_url, status=response.status_code)
                )
                current_url = next_url
                response = await self._probe(current_url, timeout)

        except (asyncio.TimeoutError, httpx.TimeoutException):
            return CheckedLink(
                **candidate.model_dump(),
                status=408,
                status_text="Request Timeout",
                response_time_ms=self._elapsed_ms(start),
                error="Timeout",
            )
        except Exception as e:
            message = str(e) or e.__class__.__name__
            return CheckedLink(
                **candidate.model_dump(),
                status=0,
                status_text=message,
                response_time_ms=self._elapsed_ms(start),
                error=message,
            )

        return CheckedLink(
            **candidate.model_dump(),
            status=response.status_code,
            status_text=response.reason_phrase,
            response_time_ms=self._elapsed_ms(start),
            redirect_chain=redirect_chain or None,
            final_url=current_url if current_url != candidate.url else None,
        )

    async def _probe(self, url: str, timeout: float) -> httpx.Response:
        response = await asyncio.wait_for(self._request("HEAD", url), timeout=timeout)
        if response.status_code in FALLBACK_TO_GET_STATUSES:
            response = await asyncio.wait_for(self._request("GET", url), timeout=timeout)
        return response

    async def _request(self, method: str, url: str) -> httpx.Response:
        # Only the status line and headers matter; the body is never read
        async with self.client.stream(method, url, headers=BROWSER_HEADERS, follow_redirects=False) as response:
            return response

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)
