"""
FamConomy API client (httpx) with retry for idempotent requests.

GET, HEAD and OPTIONS are retried on network errors and 5xx responses with
exponential backoff and a little jitter. Other methods, and 401/403
responses, are never retried.
"""

import asyncio
import logging
import random
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
NON_RETRYABLE_STATUS = frozenset({401, 403})


def retry_delay(attempt: int, base_delay: float = 0.3, max_delay: float = 5.0) -> float:
    """Seconds to wait before retry number ``attempt`` (1-based)."""
    return min(max_delay, base_delay * 2 ** (attempt - 1)) + random.random() * 0.1


def should_retry(method: str, response: Optional[httpx.Response], error: Optional[Exception]) -> bool:
    if method.upper() not in RETRYABLE_METHODS:
        return False
    if error is not None:
        return isinstance(error, httpx.TransportError)
    if response is None or response.status_code in NON_RETRYABLE_STATUS:
        return False
    return response.status_code >= 500


class ApiClient:
    """
    Async client for the REST API.

    Usage:
        async with ApiClient("https://api.famconomy.com", token=token) as client:
            response = await client.get("/family")
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        max_retries: int = 3,
        base_delay: float = 0.3,
        max_delay: float = 5.0,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, url: str, no_retry: bool = False, **kwargs: Any) -> httpx.Response:
        """
        Send a request, retrying when allowed.

        Args:
            method: HTTP method
            url: Path relative to the base URL
            no_retry: Send exactly once
            **kwargs: Passed to ``httpx.AsyncClient.request``

        Returns:
            httpx.Response: The last response received

        Raises:
            httpx.TransportError: When every attempt failed at the network level
        """
        attempt = 0
        while True:
            response: Optional[httpx.Response] = None
            error: Optional[Exception] = None
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                error = e

            if no_retry or attempt >= self.max_retries or not should_retry(method, response, error):
                if error is not None:
                    raise error
                return response

            attempt += 1
            delay = retry_delay(attempt, self.base_delay, self.max_delay)
            logger.warning(
                f"{method.upper()} {url} failed, retry {attempt}/{self.max_retries} in {delay:.2f}s",
                extra={"status_code": response.status_code if response is not None else None},
            )
            await asyncio.sleep(delay)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)
