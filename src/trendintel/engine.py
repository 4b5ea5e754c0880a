"""Signal engine: wires ingestion, validation, lifecycle and retention together."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import structlog

from trendintel.adapters.base import AdapterResult, SourceAdapter
from trendintel.adapters.gather import gather_signals
from trendintel.adapters.json_feed import JsonFeedAdapter
from trendintel.adapters.rate_limit import RateLimiter
from trendintel.adapters.static import YamlFileAdapter
from trendintel.config import settings
from trendintel.entities import Asset, PendingAsset
from trendintel.errors import DuplicateSymbolError, RetentionRejectedError, ValidationInputError
from trendintel.ingest.candidates import derive_candidate, merge_candidates
from trendintel.ingest.dedupe import dedupe_candidates
from trendintel.ingest.quality import QualityFilter
from trendintel.ingest.signals import RawSignal
from trendintel.ingest.window import SignalWindow, utc_now
from trendintel.lifecycle import ApprovalOverrides, AssetLifecycleManager
from trendintel.retention import RetentionEngine, SweepResult
from trendintel.sources import FeedConfig, SourceTable, load_sources_file
from trendintel.store.base import AssetStore
from trendintel.validation import CrossSourceValidator, ValidatedSignal

logger = structlog.get_logger()


@dataclass(frozen=True)
class IngestResult:
    added: int = 0
    skipped: int = 0
    auto_rejected: int = 0
    filtered: int = 0
    invalid: int = 0


@dataclass(frozen=True)
class ScanReport:
    adapters: list[AdapterResult] = field(default_factory=list)
    ingest: IngestResult = field(default_factory=IngestResult)


def adapters_from_config(feeds: Iterable[FeedConfig], rate_limiter: RateLimiter | None = None) -> list[SourceAdapter]:
    """Build one adapter per configured feed; HTTP feeds share a rate limiter."""
    rate_limiter = rate_limiter or RateLimiter()
    adapters: list[SourceAdapter] = []
    for feed in feeds:
        if feed.url:
            adapters.append(JsonFeedAdapter(feed.source, feed.url, rate_limiter=rate_limiter))
        elif feed.path:
            adapters.append(YamlFileAdapter(feed.source, feed.path))
    return adapters


class SignalEngine:
    """In-process facade over the whole pipeline.

    One re-entrant lock guards every read-mutate-write against the store; it
    is never held while adapters are awaited.
    """

    def __init__(
        self,
        store: AssetStore,
        table: SourceTable | None = None,
        adapters: Sequence[SourceAdapter] = (),
        *,
        window: SignalWindow | None = None,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.table = table or SourceTable()
        self.adapters = list(adapters)
        self.lock = threading.RLock()
        self.window = window or SignalWindow(now_fn=now_fn)
        self.quality = QualityFilter(self.table)
        self.validator = CrossSourceValidator(self.window, self.table, now_fn=now_fn)
        self.retention = RetentionEngine()
        self.lifecycle = AssetLifecycleManager(store, self.retention, lock=self.lock, now_fn=now_fn)

    @classmethod
    def from_settings(cls) -> SignalEngine:
        """Build a started engine backed by the configured database and feeds."""
        from trendintel.store.sql import SqlAssetStore

        sources = load_sources_file(settings.sources_path)
        engine = cls(
            SqlAssetStore(),
            SourceTable.from_file(sources),
            adapters_from_config(sources.feeds),
            window=SignalWindow(
                max_age=timedelta(days=settings.signal_window_days),
                max_size=settings.signal_window_max_size,
            ),
        )
        engine.start()
        return engine

    def start(self) -> SweepResult:
        """Run the start-up retention sweep."""
        return self.sweep()

    # Ingestion -------------------------------------------------------------

    def parse_signals(self, raw_signals: Iterable[RawSignal | Mapping[str, Any]]) -> tuple[list[RawSignal], int]:
        signals: list[RawSignal] = []
        invalid = 0
        for raw in raw_signals:
            if isinstance(raw, RawSignal):
                signals.append(raw)
                continue
            try:
                signals.append(RawSignal.from_payload(raw))
            except ValidationInputError as exc:
                invalid += 1
                logger.warning("Rejected malformed signal", error=str(exc))
        return signals, invalid

    def ingest(self, raw_signals: Iterable[RawSignal | Mapping[str, Any]]) -> IngestResult:
        """Run one batch through filter, dedupe and the pending lifecycle.

        Malformed payloads, filtered candidates, duplicates and auto-rejections
        are counted, never raised.
        """
        self.sweep()

        signals, invalid = self.parse_signals(raw_signals)
        self.window.add_many(signals)

        candidates = [derive_candidate(signal, self.table) for signal in signals]
        accepted = [c for c in candidates if self.quality.accept(c)]
        filtered = len(candidates) - len(accepted)

        added = skipped = auto_rejected = 0
        for candidate in merge_candidates(dedupe_candidates(accepted)):
            try:
                self.lifecycle.add_pending(candidate)
                added += 1
            except DuplicateSymbolError:
                skipped += 1
            except RetentionRejectedError:
                auto_rejected += 1

        result = IngestResult(
            added=added,
            skipped=skipped,
            auto_rejected=auto_rejected,
            filtered=filtered,
            invalid=invalid,
        )
        logger.info("Ingested signal batch", signals=len(signals), **vars(result))
        return result

    async def scan(self, timeout_seconds: float | None = None) -> list[AdapterResult]:
        if timeout_seconds is None:
            timeout_seconds = settings.adapter_timeout_seconds
        return await gather_signals(self.adapters, timeout_seconds)

    async def collect(self, timeout_seconds: float | None = None) -> list[AdapterResult]:
        """Scan adapters into the signal window only, without touching the store."""
        results = await self.scan(timeout_seconds)
        self.window.add_many(signal for result in results for signal in result.signals)
        return results

    async def scan_and_ingest(self, timeout_seconds: float | None = None) -> ScanReport:
        results = await self.scan(timeout_seconds)
        signals = [signal for result in results for signal in result.signals]
        return ScanReport(adapters=results, ingest=self.ingest(signals))

    # Validation ------------------------------------------------------------

    def validate(self, symbol: str) -> ValidatedSignal | None:
        return self.validator.validate(symbol)

    def validate_all(self) -> list[ValidatedSignal]:
        return self.validator.validate_all()

    # Lifecycle -------------------------------------------------------------

    def list_pending(self) -> list[PendingAsset]:
        return self.lifecycle.list_pending()

    def list_assets(self) -> list[Asset]:
        return self.lifecycle.list_assets()

    def approve(self, pending_id: str, overrides: ApprovalOverrides | None = None) -> Asset:
        return self.lifecycle.approve(pending_id, overrides)

    def reject(self, pending_id: str) -> PendingAsset:
        return self.lifecycle.reject(pending_id)

    def unread_alerts(self) -> list[Asset]:
        return self.lifecycle.unread_alerts()

    def mark_alert_read(self, asset_id: str) -> Asset:
        return self.lifecycle.mark_alert_read(asset_id)

    # Retention -------------------------------------------------------------

    def sweep(self) -> SweepResult:
        with self.lock:
            return self.retention.sweep(self.store)

    def status(self) -> dict[str, Any]:
        with self.lock:
            retention = self.retention.stats(self.store)
            pending = len(self.lifecycle.list_pending())
            assets = len(self.lifecycle.list_assets())
            alerts = len(self.lifecycle.unread_alerts())
        return {
            "adapters": [adapter.source_name for adapter in self.adapters],
            "pending": pending,
            "assets": assets,
            "unread_alerts": alerts,
            "retention": retention,
            "window": self.window.stats(),
        }

    # Scheduling ------------------------------------------------------------

    async def _every(self, interval_seconds: float, stop_event: asyncio.Event, job: Callable[[], Awaitable[Any]]) -> int:
        runs = 0
        while not stop_event.is_set():
            await job()
            runs += 1
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except TimeoutError:
                continue
        return runs

    async def run_sweep_loop(self, interval_seconds: float, stop_event: asyncio.Event) -> int:
        """Sweep every interval until stop_event is set; returns the number of sweeps."""

        async def job() -> None:
            self.sweep()

        return await self._every(interval_seconds, stop_event, job)

    async def run_scan_loop(
        self,
        interval_seconds: float,
        stop_event: asyncio.Event,
        timeout_seconds: float | None = None,
    ) -> int:
        """Scan and ingest every interval; each ingest sweeps first."""

        async def job() -> None:
            await self.scan_and_ingest(timeout_seconds)

        return await self._every(interval_seconds, stop_event, job)
