"""
sources/fetcher.py — Raw payload retrieval with timeout and retry.

The Fetcher is the only component that talks to calendar websites. It
returns the response body as text or raises NetworkError; it never parses
or writes anything.

Retry policy:
  - timeouts and transport failures (connection reset, DNS, read errors)
    and 5xx responses are transient → retried with exponential backoff
  - 4xx responses are permanent → raised immediately

Usage:
    fetcher = Fetcher(timeout=30.0, max_attempts=3)
    html = await fetcher.fetch("https://tradingeconomics.com/calendar")
"""

from __future__ import annotations

import httpx
import structlog

from macrocal_shared.config import settings
from macrocal_pipeline.errors import NetworkError
from macrocal_pipeline.utils.retry import with_retry

log = structlog.get_logger(__name__)

DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, NetworkError) and exc.transient


class Fetcher:
    """Async HTTP GET with a stable User-Agent, timeout and bounded retries."""

    def __init__(
        self,
        *,
        timeout: float | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
        user_agent: str | None = None,
    ) -> None:
        self._timeout = timeout if timeout is not None else settings.fetch_timeout_s
        self._max_attempts = max_attempts or settings.fetch_max_attempts
        self._base_delay = base_delay if base_delay is not None else settings.fetch_base_delay_s
        self._max_delay = max_delay if max_delay is not None else settings.fetch_max_delay_s
        self._headers = {
            "User-Agent": user_agent or settings.http_user_agent,
            "Accept": DEFAULT_ACCEPT,
            "Accept-Language": "en-US,en;q=0.5",
        }

    async def fetch(self, url: str, *, headers: dict[str, str] | None = None) -> str:
        """
        GET *url* and return the body text.

        Raises:
            NetworkError: after retries are exhausted, or immediately on 4xx.
        """
        request_headers = {**self._headers, **(headers or {})}

        @with_retry(
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            max_delay=self._max_delay,
            retry_on=NetworkError,
            retry_if=_is_transient,
        )
        async def _get() -> str:
            return await self._get_once(url, request_headers)

        return await _get()

    async def _get_once(self, url: str, headers: dict[str, str]) -> str:
        log.debug("fetch_attempt", url=url)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers=headers,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as exc:
            raise NetworkError(url, f"timeout: {exc}", transient=True) from exc
        except httpx.TransportError as exc:
            raise NetworkError(url, f"transport failure: {exc}", transient=True) from exc

        if response.status_code >= 500:
            raise NetworkError(
                url,
                f"server error {response.status_code}",
                status_code=response.status_code,
                transient=True,
            )
        if response.status_code >= 400:
            raise NetworkError(
                url,
                f"client error {response.status_code}",
                status_code=response.status_code,
            )

        log.info("fetch_complete", url=url, status=response.status_code, bytes=len(response.content))
        return response.text
