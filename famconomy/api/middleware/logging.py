"""Request logging middleware: one structured line per request."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("famconomy.api.requests")


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Log method, path, status and duration for every request.

    Also carries the request id, the authenticated user (set by the auth
    dependency) and the unverified identity hints.
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"{request.method} {request.url.path} failed after {duration_ms:.2f}ms",
                extra=self._context(request, 500, duration_ms),
                exc_info=True,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        context = self._context(request, response.status_code, duration_ms)
        message = f"{request.method} {request.url.path} {response.status_code} {duration_ms:.2f}ms"

        if response.status_code >= 500:
            logger.error(message, extra=context)
        elif response.status_code >= 400:
            logger.warning(message, extra=context)
        else:
            logger.info(message, extra=context)

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response

    @staticmethod
    def _context(request: Request, status_code: int, duration_ms: float) -> dict:
        state = request.state
        return {
            "request_id": getattr(state, "request_id", None),
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
            "user_id": getattr(state, "user_id", None),
            "tenant_hint": getattr(state, "tenant_hint", None),
            "user_hint": getattr(state, "user_hint", None),
            "client_ip": request.client.host if request.client else None,
        }
