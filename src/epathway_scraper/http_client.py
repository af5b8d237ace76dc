"""Cookie-preserving HTTP client for the ePathway portal."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import httpx

from .config import HttpConfig
from .logging_config import get_logger
from .models import RunStats

logger = get_logger("http_client")


class HTTPClient:
    """One ``httpx.AsyncClient`` shared by every request of a run.

    The portal keeps its session server-side, so the cookie jar must survive
    from the first GET to the last detail-page POST. Redirects are followed.
    Failed requests raise; they are only retried when ``max_retries`` is set.
    """

    def __init__(
        self,
        config: Optional[HttpConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or HttpConfig({})
        self.timeout = httpx.Timeout(self.config.timeout_seconds)
        self.headers = {"User-Agent": self.config.user_agent}
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers=self.headers,
            transport=transport,
        )

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    async def __aenter__(self) -> "HTTPClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        stats: Optional[RunStats] = None,
    ) -> httpx.Response:
        return await self.request("GET", url, params=params, stats=stats)

    async def post(
        self,
        url: str,
        *,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        stats: Optional[RunStats] = None,
    ) -> httpx.Response:
        return await self.request("POST", url, params=params, data=data, stats=stats)

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        stats: Optional[RunStats] = None,
    ) -> httpx.Response:
        for attempt in range(self.config.max_retries + 1):
            if stats:
                stats.http_requests += 1
            try:
                response = await self._client.request(method, url, params=params, data=data)
                response.raise_for_status()
                return response

            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if self._should_retry_status(status_code) and attempt < self.config.max_retries:
                    delay = self._calculate_retry_delay(attempt + 1)
                    if stats:
                        stats.retry_attempts += 1
                    logger.warning(
                        "Request %s %s failed with status %s. Retrying in %.2fs (attempt %s/%s)",
                        method,
                        url,
                        status_code,
                        delay,
                        attempt + 1,
                        self.config.max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue

                logger.error("Request %s %s failed with status %s: %s", method, url, status_code, exc)
                raise

            except httpx.RequestError as exc:
                if attempt < self.config.max_retries:
                    delay = self._calculate_retry_delay(attempt + 1)
                    if stats:
                        stats.retry_attempts += 1
                    logger.warning(
                        "Request %s %s failed (%s). Retrying in %.2fs (attempt %s/%s)",
                        method,
                        url,
                        exc,
                        delay,
                        attempt + 1,
                        self.config.max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue

                logger.error("Request %s %s failed after %s attempts: %s", method, url, attempt + 1, exc)
                raise

        raise RuntimeError(f"Request {method} {url} failed after retries")

    def _should_retry_status(self, status_code: int) -> bool:
        if status_code >= 500:
            return True
        return status_code in {408, 429}

    def _calculate_retry_delay(self, retry_number: int) -> float:
        delay = self.config.retry_base_delay * (
            self.config.retry_exponential_base ** (retry_number - 1)
        )
        return min(delay, self.config.retry_max_delay)
