"""Concurrent fan-out over source adapters."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

import structlog

from trendintel.adapters.base import AdapterResult, AdapterStatus, SourceAdapter
from trendintel.errors import AdapterError, AdapterTimeoutError
from trendintel.ingest.signals import RawSignal

logger = structlog.get_logger()


def _own_signals(adapter: SourceAdapter, returned: list[object]) -> tuple[list[RawSignal], int]:
    kept = [s for s in returned if isinstance(s, RawSignal) and s.source_name == adapter.source_name]
    return kept, len(returned) - len(kept)


async def run_adapter(adapter: SourceAdapter, deadline: float) -> AdapterResult:
    """Run one adapter against a deadline and fold every outcome into a result."""
    loop = asyncio.get_running_loop()
    start = time.monotonic()
    timeout = max(0.0, deadline - loop.time())
    name = adapter.source_name

    def elapsed_ms() -> int:
        return int((time.monotonic() - start) * 1000)

    try:
        try:
            signals = await asyncio.wait_for(adapter.scan(deadline), timeout=timeout)
        except TimeoutError as exc:
            raise AdapterTimeoutError(name, timeout) from exc
        signals, dropped = _own_signals(adapter, list(signals))
    except AdapterTimeoutError as exc:
        logger.warning("Adapter timed out", source=name, timeout_seconds=round(timeout, 2))
        return AdapterResult(
            source_name=name,
            status=AdapterStatus.TIMEOUT,
            message=str(exc),
            error_code="timeout",
            duration_ms=elapsed_ms(),
        )
    except AdapterError as exc:
        logger.warning("Adapter failed", source=name, error=str(exc))
        return AdapterResult(
            source_name=name,
            status=AdapterStatus.ERROR,
            message=str(exc),
            error_code="adapter_error",
            duration_ms=elapsed_ms(),
        )
    except Exception as exc:
        logger.exception("Adapter exception", source=name)
        return AdapterResult(
            source_name=name,
            status=AdapterStatus.ERROR,
            message=str(exc),
            error_code="adapter_exception",
            duration_ms=elapsed_ms(),
        )

    if dropped:
        logger.warning("Dropped signals not tagged with the adapter source", source=name, dropped=dropped)

    return AdapterResult(
        source_name=name,
        status=AdapterStatus.SUCCESS if signals else AdapterStatus.EMPTY,
        signals=signals,
        message=f"{len(signals)} signals",
        duration_ms=elapsed_ms(),
    )


async def gather_signals(adapters: Sequence[SourceAdapter], timeout_seconds: float) -> list[AdapterResult]:
    """Scatter scans to every adapter and gather whatever completes in time.

    One adapter failing or timing out never affects the others; results come
    back in adapter order.
    """
    if not adapters:
        return []
    deadline = asyncio.get_running_loop().time() + timeout_seconds
    results = await asyncio.gather(*(run_adapter(adapter, deadline) for adapter in adapters))

    logger.info(
        "Adapter scan complete",
        adapters=len(results),
        succeeded=sum(1 for r in results if r.status == AdapterStatus.SUCCESS),
        timed_out=sum(1 for r in results if r.status == AdapterStatus.TIMEOUT),
        failed=sum(1 for r in results if r.status == AdapterStatus.ERROR),
        signals=sum(len(r.signals) for r in results),
    )
    return list(results)
