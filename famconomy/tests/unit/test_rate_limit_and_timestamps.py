"""
Unit Tests for the rate limiter and request timestamp handling

Tests:
- Clients drop out of the limiter once their window is empty
- Requests over the limit get 429 with Retry-After
- Aware request datetimes are stored as naive UTC
"""

from collections import deque
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI, status
from httpx import ASGITransport, AsyncClient

from famconomy.api.middleware.rate_limit import RateLimitMiddleware
from famconomy.api.schemas import CalendarEventUpdate, TaskCreate, naive_utc


# ============================================================================
# Rate limiting
# ============================================================================

class TestRateLimitEviction:

    def test_idle_clients_are_evicted(self):
        limiter = RateLimitMiddleware(app=None, max_requests=5, window_seconds=10)
        limiter.requests["10.0.0.1"] = deque([0.0, 1.0])
        limiter.requests["10.0.0.2"] = deque([95.0])

        limiter.evict_idle(100.0)

        assert list(limiter.requests) == ["10.0.0.2"]
        assert limiter._last_sweep == 100.0

    def test_prune_keeps_recent_timestamps(self):
        limiter = RateLimitMiddleware(app=None, max_requests=5, window_seconds=10)
        limiter.requests["10.0.0.1"] = deque([80.0, 92.0, 99.0])

        limiter._prune("10.0.0.1", 100.0)

        assert list(limiter.requests["10.0.0.1"]) == [92.0, 99.0]

    def test_prune_ignores_unknown_client(self):
        limiter = RateLimitMiddleware(app=None, window_seconds=10)

        limiter._prune("10.0.0.9", 100.0)

        assert "10.0.0.9" not in limiter.requests


class TestRateLimitResponses:

    def _app(self, **options):
        application = FastAPI()
        application.add_middleware(RateLimitMiddleware, **options)

        @application.get("/ping")
        async def ping():
            return {"ok": True}

        @application.get("/health")
        async def health():
            return {"status": "healthy"}

        return application

    @pytest.mark.asyncio
    async def test_limit_returns_429(self):
        transport = ASGITransport(app=self._app(max_requests=2, window_seconds=60))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            first = await client.get("/ping")
            second = await client.get("/ping")
            third = await client.get("/ping")

        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert second.status_code == status.HTTP_200_OK
        assert third.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert third.json()["error"] == "rate_limit_exceeded"
        assert int(third.headers["Retry-After"]) <= 61

    @pytest.mark.asyncio
    async def test_health_is_exempt(self):
        transport = ASGITransport(app=self._app(max_requests=1, window_seconds=60))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            responses = [await client.get("/health") for _ in range(3)]

        assert [r.status_code for r in responses] == [status.HTTP_200_OK] * 3


# ============================================================================
# Request timestamps
# ============================================================================

class TestNaiveUtc:

    def test_aware_value_is_converted(self):
        value = datetime(2026, 1, 1, 11, 0, tzinfo=timezone(timedelta(hours=2)))

        assert naive_utc(value) == datetime(2026, 1, 1, 9, 0)

    def test_naive_value_is_unchanged(self):
        value = datetime(2026, 1, 1, 9, 0)

        assert naive_utc(value) is value
        assert naive_utc(None) is None

    def test_schemas_normalize_zulu_timestamps(self):
        update = CalendarEventUpdate.model_validate({"startTime": "2026-01-01T09:00:00Z"})
        task = TaskCreate.model_validate({"familyId": 1, "title": "Bins", "dueDate": "2026-01-01T20:00:00-05:00"})

        assert update.start_time == datetime(2026, 1, 1, 9, 0)
        assert update.start_time.tzinfo is None
        assert task.due_date == datetime(2026, 1, 2, 1, 0)
