"""Retrying async HTTP client for the upstream price API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from price_collector.core.config import SourceConfig
from price_collector.core.exceptions import FetchError, RetriesExhaustedError

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]

_API_KEY_HEADER = "x-cg-demo-api-key"


class ResilientClient:
    """GET-only HTTP client with exponential backoff.

    Retry policy (per call, ``max_retries`` attempts in total):
    - HTTP 429: wait ``base_delay * 2**attempt`` and try again, the final
      attempt included. Never raised to the caller as such.
    - Other non-2xx status or transport error: the attempt fails. If it was
      not the last attempt, wait ``base_delay * 2**attempt`` and retry;
      otherwise raise RetriesExhaustedError immediately, chained to the
      attempt's error.

    No jitter. Nothing is retained between calls.

    Use via ``async with ResilientClient(config) as client:``.
    """

    def __init__(self, config: SourceConfig, sleep: SleepFunc = asyncio.sleep) -> None:
        headers = {"User-Agent": config.user_agent, "Accept": "application/json"}
        if config.api_key:
            headers[_API_KEY_HEADER] = config.api_key
        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(config.request_timeout),
            follow_redirects=True,
        )
        self._max_retries = config.max_retries
        self._base_delay = config.base_delay_ms / 1000.0
        self._sleep = sleep

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client. Called automatically by __aexit__."""
        await self._client.aclose()

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based attempt."""
        return self._base_delay * 2**attempt

    async def fetch(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        """GET ``url`` and return the first successful response.

        Raises:
            RetriesExhaustedError: the final attempt failed, or every
                attempt was rate-limited.
        """
        attempts = self._max_retries

        for attempt in range(attempts):
            delay = self.backoff_delay(attempt)
            is_last = attempt == attempts - 1
            try:
                response = await self._client.get(url, params=params)

                if response.status_code == 429:
                    logger.warning(
                        "Rate limit hit on %s, waiting %.1fs (attempt %d/%d)",
                        url, delay, attempt + 1, attempts,
                    )
                    await self._sleep(delay)
                    continue

                if not response.is_success:
                    raise FetchError(
                        f"HTTP {response.status_code} from {url}",
                        context={"url": url, "status_code": response.status_code},
                    )

                return response

            except (FetchError, httpx.TransportError) as e:
                if is_last:
                    raise RetriesExhaustedError(
                        f"Request failed after {attempts} attempts: {e}",
                        context={
                            "url": url,
                            "attempts": attempts,
                            "status_code": getattr(e, "context", {}).get("status_code"),
                        },
                    ) from e
                logger.warning(
                    "Request to %s failed (%s), retrying in %.1fs (%d/%d)",
                    url, e, delay, attempt + 1, attempts,
                )
                await self._sleep(delay)

        raise RetriesExhaustedError(
            f"Max retries reached: {url}",
            context={"url": url, "attempts": attempts},
        )
