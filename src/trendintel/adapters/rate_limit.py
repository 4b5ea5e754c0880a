"""Simple per-host rate limiting for async adapters."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from urllib.parse import urlparse

import structlog

from trendintel.config import settings

logger = structlog.get_logger()


class RateLimiter:
    def __init__(
        self,
        min_interval_seconds: float | None = None,
        *,
        now_fn: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if min_interval_seconds is None:
            min_interval_seconds = settings.feed_min_interval_seconds
        self.min_interval_seconds = min_interval_seconds
        self._last_request: dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._now = now_fn
        self._sleep = sleep_fn

    async def wait(self, url: str) -> None:
        host = urlparse(url).netloc or url
        async with self._lock:
            last = self._last_request.get(host)
            if last is not None:
                remaining = self.min_interval_seconds - (self._now() - last)
                if remaining > 0:
                    logger.info("Rate limiting feed fetch", host=host, sleep_seconds=round(remaining, 2))
                    await self._sleep(remaining)
            self._last_request[host] = self._now()
