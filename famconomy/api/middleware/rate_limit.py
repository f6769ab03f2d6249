"""Rate limiting middleware using an in-memory sliding window per client IP."""

import time
from collections import defaultdict, deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

EXEMPT_PATHS = frozenset({"/", "/health", "/ready"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests by IP address."""

    def __init__(self, app, max_requests: int = 10000, window_seconds: int = 3600, enabled: bool = True):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self.requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = time.monotonic()

    def _prune(self, client_ip: str, current_time: float) -> None:
        """Drop timestamps that left the window, and the client once none remain."""
        history = self.requests.get(client_ip)
        if history is None:
            return
        while history and current_time - history[0] >= self.window_seconds:
            history.popleft()
        if not history:
            del self.requests[client_ip]

    def evict_idle(self, current_time: float) -> None:
        """Forget every client with no request inside the window."""
        for client_ip in list(self.requests):
            self._prune(client_ip, current_time)
        self._last_sweep = current_time

    async def dispatch(self, request: Request, call_next):
        if not self.enabled or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"

        current_time = time.monotonic()
        if current_time - self._last_sweep >= self.window_seconds:
            self.evict_idle(current_time)
        else:
            self._prune(client_ip, current_time)

        history = self.requests[client_ip]
        if len(history) >= self.max_requests:
            retry_after = int(self.window_seconds - (current_time - history[0])) + 1
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": (
                        f"Rate limit exceeded. Maximum {self.max_requests} requests "
                        f"per {self.window_seconds} seconds."
                    ),
                },
                headers={"Retry-After": str(retry_after)},
            )

        history.append(current_time)
        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.max_requests - len(history)))
        return response
