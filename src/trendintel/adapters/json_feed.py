"""JSON feed adapter: reads raw signal payloads from an HTTP endpoint."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, stop_after_delay, wait_exponential

from trendintel.adapters.rate_limit import RateLimiter
from trendintel.config import settings
from trendintel.errors import AdapterError, ValidationInputError
from trendintel.ingest.signals import RawSignal

logger = structlog.get_logger()

USER_AGENT = "TrendIntel/0.1 (+signal aggregation)"
RETRYABLE_STATUS = {408, 425, 429, 500, 502, 503, 504}


def _should_retry(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TimeoutException):
        return False
    if isinstance(exc, httpx.RequestError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return False


def parse_feed(source_name: str, data: Any) -> tuple[list[RawSignal], int]:
    """Turn a decoded feed body into signals; returns (signals, rejected)."""
    items = data.get("signals", []) if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise AdapterError(f"{source_name} feed must be a list or contain a 'signals' list")

    signals: list[RawSignal] = []
    rejected = 0
    for item in items:
        try:
            signals.append(RawSignal.from_payload(item, source_name=source_name))
        except ValidationInputError as exc:
            rejected += 1
            logger.warning("Rejected malformed feed item", source=source_name, error=str(exc))
    return signals, rejected


class JsonFeedAdapter:
    def __init__(
        self,
        source_name: str,
        url: str,
        *,
        rate_limiter: RateLimiter | None = None,
        retry_attempts: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise AdapterError(f"Missing feed url for {source_name}")
        self._source_name = source_name
        self.url = url
        self._rate_limiter = rate_limiter or RateLimiter()
        self._retry_attempts = retry_attempts or settings.http_retry_attempts
        self._transport = transport

    @property
    def source_name(self) -> str:
        return self._source_name

    async def scan(self, deadline: float) -> list[RawSignal]:
        loop = asyncio.get_running_loop()
        await self._rate_limiter.wait(self.url)
        remaining = deadline - loop.time()
        if remaining <= 0:
            return []

        try:
            data = await self._fetch_json(remaining)
        except httpx.TimeoutException:
            logger.warning("Feed fetch hit the deadline", source=self._source_name, url=self.url)
            return []
        except httpx.HTTPError as exc:
            raise AdapterError(f"{self._source_name} fetch failed: {exc}") from exc

        signals, rejected = parse_feed(self._source_name, data)
        logger.info("Fetched feed", source=self._source_name, signals=len(signals), rejected=rejected)
        return signals

    async def _fetch_json(self, budget_seconds: float) -> Any:
        async with httpx.AsyncClient(
            timeout=budget_seconds,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=self._transport,
        ) as client:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._retry_attempts) | stop_after_delay(budget_seconds),
                wait=wait_exponential(min=0.5, max=10),
                retry=retry_if_exception(_should_retry),
                reraise=True,
            ):
                with attempt:
                    response = await client.get(self.url)
                    response.raise_for_status()
        try:
            return response.json()
        except ValueError as exc:
            raise AdapterError(f"{self._source_name} returned invalid JSON: {exc}") from exc
