"""
Verdant Backend: Middleware Tests
=================================

What we test:
    ✅ Rate limit keys on X-User-ID, falling back to the client IP
    ✅ Each caller key has its own budget; the limit answers 429 + Retry-After
    ✅ Excluded paths are never limited
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from verdant.middleware.rate_limit import RateLimitMiddleware


def _request(headers=None, client=("203.0.113.7", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/plants",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.fixture
def limited_client():
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, max_requests=2, window_seconds=60)

    @app.get("/api/plants")
    async def plants():
        return []

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestCallerKey:
    def test_user_header(self):
        assert RateLimitMiddleware.caller_key(_request({"X-User-ID": "user-1"})) == "user:user-1"

    def test_ip_fallback(self):
        assert RateLimitMiddleware.caller_key(_request()) == "ip:203.0.113.7"

    def test_no_client(self):
        assert RateLimitMiddleware.caller_key(_request(client=None)) == "ip:unknown"


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_limit_per_caller(self, limited_client):
        async with limited_client as client:
            for _ in range(2):
                assert (await client.get("/api/plants", headers={"X-User-ID": "a"})).status_code == 200

            blocked = await client.get("/api/plants", headers={"X-User-ID": "a"})
            other = await client.get("/api/plants", headers={"X-User-ID": "b"})

        assert blocked.status_code == 429
        assert blocked.json()["error"] == "rate_limit_exceeded"
        assert int(blocked.headers["Retry-After"]) >= 1
        assert other.status_code == 200

    @pytest.mark.asyncio
    async def test_anonymous_callers_share_ip_budget(self, limited_client):
        async with limited_client as client:
            statuses = [(await client.get("/api/plants")).status_code for _ in range(3)]
        assert statuses == [200, 200, 429]

    @pytest.mark.asyncio
    async def test_health_is_excluded(self, limited_client):
        async with limited_client as client:
            statuses = [(await client.get("/health")).status_code for _ in range(4)]
        assert statuses == [200] * 4
