"""
API error types and their JSON envelopes.

Two shapes reach clients:
- ``{"error": "..."}`` for guard and plain validation failures (HTTPException)
- ``{"code": "...", "message": "...", "error": "..."}`` for domain errors that
  carry a fixed string code, e.g. the Family Controls surface
"""

import logging
from typing import Any, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Error with a stable client-facing code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        error: Optional[str] = None,
        user_friendly_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.error = error or message
        self.user_friendly_message = user_friendly_message

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "error": self.error,
        }
        if self.user_friendly_message:
            body["userFriendlyMessage"] = self.user_friendly_message
        return body


def validation_error(message: str) -> ApiError:
    """400 VAL_001 for missing or malformed input."""
    return ApiError(status.HTTP_400_BAD_REQUEST, "VAL_001", message)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render ApiError with its code envelope."""
    if exc.status_code >= 500:
        logger.error(
            f"{exc.code}: {exc.message}",
            extra={"code": exc.code, "path": request.url.path},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPException details as ``{"error": detail}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )
