"""
Test configuration and fixtures for the Link Checker API.

Outbound HTTP is served by httpx.MockTransport and Redis is replaced by an
in-memory double, so no network or Redis server is needed.
"""

import os
import time
from typing import Dict, Generator, List, Optional, Tuple

import httpx
import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

load_dotenv()

# Test clients connect from 127.0.0.1; keep them out of the rate limiter
os.environ["WHITELIST_IPS"] = '["127.0.0.1", "testclient"]'
os.environ["FORCE_IN_MEMORY_RATE_LIMITER"] = "true"
os.environ.pop("LINK_CHECKER_WORKER_TOKEN", None)


class FakeRedis:
    """The subset of redis.asyncio.Redis used by the app, with TTL support."""

    def __init__(self):
        self.data: Dict[str, Tuple[str, Optional[float]]] = {}
        self.fail = False
        self.writes: List[Tuple[str, str]] = []

    def _check(self):
        if self.fail:
            raise RedisConnectionError("Connection refused")

    def _live(self, key):
        item = self.data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and time.monotonic() >= expires_at:
            del self.data[key]
            return None
        return value

    async def get(self, key):
        self._check()
        return self._live(key)

    async def set(self, key, value, ex=None):
        self._check()
        expires_at = time.monotonic() + ex if ex else None
        self.data[key] = (value, expires_at)
        self.writes.append((key, value))
        return True

    async def incr(self, key):
        self._check()
        value = int(self._live(key) or 0) + 1
        _, expires_at = self.data.get(key, (None, None))
        self.data[key] = (str(value), expires_at)
        return value

    async def expire(self, key, seconds):
        self._check()
        value = self._live(key)
        if value is None:
            return False
        self.data[key] = (value, time.monotonic() + seconds)
        return True

    async def ttl(self, key):
        item = self.data.get(key)
        if item is None:
            return -2
        _, expires_at = item
        return -1 if expires_at is None else int(expires_at - time.monotonic())

    def expire_all(self):
        """Simulate the retention window passing for every key."""
        self.data.clear()


def _route_key(url) -> str:
    url = httpx.URL(str(url))
    key = f"{url.scheme}://{url.host}"
    if url.port:
        key += f":{url.port}"
    key += url.path or "/"
    if url.query:
        key += "?" + url.query.decode()
    return key


class MockSite:
    """Canned responses for outbound requests, keyed by URL."""

    HTML = "text/html; charset=utf-8"

    def __init__(self):
        self.routes = {}
        self.requests: List[httpx.Request] = []

    def add(self, url, status=200, headers=None, body=b"", methods=None):
        self.routes[_route_key(url)] = {
            "status": status,
            "headers": headers or {},
            "body": body,
            "methods": methods,
        }
        return self

    def page(self, url, html, status=200, content_type=HTML):
        return self.add(url, status=status, headers={"content-type": content_type}, body=html.encode())

    def redirect(self, url, location, status=301):
        return self.add(url, status=status, headers={"location": location})

    def timeout(self, url):
        self.routes[_route_key(url)] = {"timeout": True}
        return self

    def requested(self, url, method=None) -> List[httpx.Request]:
        key = _route_key(url)
        return [
            r for r in self.requests
            if _route_key(r.url) == key and (method is None or r.method == method)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(_route_key(request.url))
        if route is None:
            return httpx.Response(404, headers={"content-type": self.HTML}, content=b"<html>Not found</html>")
        if route.get("timeout"):
            raise httpx.ReadTimeout("timed out", request=request)
        if route["methods"] and request.method not in route["methods"]:
            return httpx.Response(405)
        body = b"" if request.method == "HEAD" else route["body"]
        return httpx.Response(route["status"], headers=route["headers"], content=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), follow_redirects=False)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def job_store(fake_redis):
    from app.features.link_checker.services.job_store import JobStore

    return JobStore(fake_redis, ttl=3600)


@pytest.fixture
def site():
    return MockSite()


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture
def client(test_app, job_store, site) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    Job storage and outbound HTTP are swapped for the in-memory doubles.
    """
    from app.features.link_checker.routes.link_checker import get_job_processor, get_job_store
    from app.features.link_checker.services.job_processor import JobProcessor

    test_app.dependency_overrides[get_job_store] = lambda: job_store
    test_app.dependency_overrides[get_job_processor] = lambda: JobProcessor(
        job_store, client_factory=site.client, timeout=5
    )
    with TestClient(test_app) as test_client:
        yield test_client
    test_app.dependency_overrides.clear()
