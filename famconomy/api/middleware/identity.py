"""
Identity hints.

Clients may send ``x-tenant-id``/``x-user-id`` headers (or ``tenantId``/
``userId`` query parameters). They are copied onto ``request.state`` so the
request log can show them. They never authenticate anything; identity comes
from the JWT only.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


class IdentityHintMiddleware(BaseHTTPMiddleware):
    """Record unverified tenant and user hints for logging."""

    async def dispatch(self, request: Request, call_next):
        request.state.tenant_hint = (
            request.headers.get("x-tenant-id") or request.query_params.get("tenantId")
        )
        request.state.user_hint = (
            request.headers.get("x-user-id") or request.query_params.get("userId")
        )
        return await call_next(request)
