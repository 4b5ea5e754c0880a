"""Rolling window of recent raw signals."""

from __future__ import annotations

import threading
from collections import Counter, deque
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import structlog

from trendintel.ingest.signals import RawSignal, normalize_symbol

logger = structlog.get_logger()

HIGH_CONFIDENCE = 75.0


def utc_now() -> datetime:
    return datetime.now(UTC)


class SignalWindow:
    """Time- and size-bounded buffer of raw signals.

    Signals older than max_age are dropped on every insert and read; once
    max_size is reached the oldest inserted signal is evicted.
    """

    def __init__(
        self,
        max_age: timedelta = timedelta(days=7),
        max_size: int = 10_000,
        *,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        self.max_age = max_age
        self._signals: deque[RawSignal] = deque(maxlen=max_size)
        self._lock = threading.Lock()
        self._now = now_fn

    def __len__(self) -> int:
        with self._lock:
            self._expire(self._now() - self.max_age)
            return len(self._signals)

    def add(self, signal: RawSignal) -> bool:
        return self.add_many([signal]) == 1

    def add_many(self, signals: Iterable[RawSignal]) -> int:
        """Insert signals, skipping expired ones.

        Future-dated signals are stored as observed now so they still age out
        of the window.
        """
        now = self._now()
        cutoff = now - self.max_age
        added = 0
        with self._lock:
            for signal in signals:
                if signal.observed_at <= cutoff:
                    continue
                if signal.observed_at > now:
                    logger.warning(
                        "Clamped future-dated signal",
                        source=signal.source_name,
                        symbol=signal.symbol,
                        observed_at=signal.observed_at.isoformat(),
                    )
                    signal = replace(signal, observed_at=now)
                self._signals.append(signal)
                added += 1
            self._expire(cutoff)
        return added

    def for_symbol(self, symbol: str) -> list[RawSignal]:
        wanted = normalize_symbol(symbol)
        with self._lock:
            self._expire(self._now() - self.max_age)
            return [s for s in self._signals if s.symbol == wanted]

    def symbols(self) -> list[str]:
        with self._lock:
            self._expire(self._now() - self.max_age)
            return sorted({s.symbol for s in self._signals})

    def snapshot(self) -> list[RawSignal]:
        with self._lock:
            self._expire(self._now() - self.max_age)
            return list(self._signals)

    def prune(self, max_age: timedelta | None = None) -> int:
        """Drop signals older than max_age (defaults to the window age)."""
        cutoff = self._now() - (max_age if max_age is not None else self.max_age)
        with self._lock:
            removed = self._expire(cutoff)
        logger.info("Pruned raw signals", removed=removed, cutoff=cutoff.isoformat())
        return removed

    def stats(self) -> dict[str, object]:
        signals = self.snapshot()
        distribution = Counter(s.source_name for s in signals)
        average = sum(s.confidence for s in signals) / len(signals) if signals else 0.0
        return {
            "total_signals": len(signals),
            "unique_symbols": len({s.symbol for s in signals}),
            "source_distribution": dict(sorted(distribution.items())),
            "average_confidence": average,
            "high_confidence_count": sum(1 for s in signals if s.confidence >= HIGH_CONFIDENCE),
        }

    def _expire(self, cutoff: datetime) -> int:
        # Signals are not guaranteed to arrive in timestamp order.
        before = len(self._signals)
        if any(s.observed_at <= cutoff for s in self._signals):
            kept = [s for s in self._signals if s.observed_at > cutoff]
            self._signals.clear()
            self._signals.extend(kept)
        return before - len(self._signals)
