"""Cross-source signal validation.

For a symbol, every raw signal in the rolling window contributes to a
reliability- and time-weighted confidence:

    source_weight = base_weight * reliability * confidence / 100
    time_weight   = exp(-age_hours * time_decay / 24)
    confidence    = sum(conf * sw * tw) / sum(sw * tw)

On top of that the validator derives alignment flags, conflict descriptions,
a risk level and a recommendation. Results are read-only views; validating
never mutates the window.
"""

from __future__ import annotations

import math
import threading
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

import structlog

from trendintel.ingest.candidates import metadata_flag
from trendintel.ingest.signals import AssetKind, RawSignal, normalize_symbol
from trendintel.ingest.window import SignalWindow, utc_now
from trendintel.sources import SourceKind, SourceTable

logger = structlog.get_logger()

SENTIMENT_VARIANCE_LIMIT = 0.25
TEMPORAL_SPREAD_LIMIT = timedelta(hours=48)
BULLISH_SENTIMENT = 0.6
BEARISH_SENTIMENT = 0.4
CONFLICT_CONFIDENCE = 70.0
SOCIAL_FUNDAMENTAL_GAP = 0.4
HISTORY_DEPTH = 10

FUNDAMENTAL_KINDS = {SourceKind.FILINGS, SourceKind.MARKET_DATA}

CONFLICT_OPPOSED_SENTIMENT = "High-confidence bullish and bearish signals detected"
CONFLICT_SOCIAL_VS_FUNDAMENTAL = "Social sentiment conflicts with fundamental signals"


class RiskLevel(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class SignalRecommendation(Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    WATCH = "WATCH"
    AVOID = "AVOID"


@dataclass(frozen=True)
class ValidationFlags:
    multiple_sources_confirm: bool
    sentiment_alignment: bool
    temporal_alignment: bool
    insider_activity: bool
    volume_confirmation: bool
    technical_confirmation: bool


@dataclass(frozen=True)
class ValidatedSignal:
    symbol: str
    asset_kind: AssetKind
    overall_confidence: float
    sources: tuple[RawSignal, ...]
    flags: ValidationFlags
    risk_level: RiskLevel
    recommendation: SignalRecommendation
    conflicting_signals: tuple[str, ...]
    summary: str
    validated_at: datetime

    @property
    def source_names(self) -> list[str]:
        return sorted({s.source_name for s in self.sources})

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicting_signals)


def _mean(values: Sequence[float]) -> float:
    return math.fsum(values) / len(values)


def sentiment_aligned(signals: Sequence[RawSignal]) -> bool:
    if len(signals) < 2:
        return True
    avg = _mean([s.sentiment for s in signals])
    variance = _mean([(s.sentiment - avg) ** 2 for s in signals])
    return variance < SENTIMENT_VARIANCE_LIMIT


def temporally_aligned(signals: Sequence[RawSignal]) -> bool:
    if len(signals) < 2:
        return True
    timestamps = [s.observed_at for s in signals]
    return max(timestamps) - min(timestamps) <= TEMPORAL_SPREAD_LIMIT


def sentiment_bucket(average: float) -> str:
    if average > BULLISH_SENTIMENT:
        return "bullish"
    if average < BEARISH_SENTIMENT:
        return "bearish"
    return "neutral"


class CrossSourceValidator:
    def __init__(
        self,
        window: SignalWindow,
        table: SourceTable,
        *,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        self._window = window
        self._table = table
        self._now = now_fn
        self._history: dict[str, deque[ValidatedSignal]] = {}
        self._history_lock = threading.Lock()

    def time_weight(self, signal: RawSignal, now: datetime) -> float:
        age_hours = max(0.0, (now - signal.observed_at).total_seconds() / 3600)
        return math.exp(-age_hours * self._table.time_decay(signal.source_name) / 24)

    def weighted_confidence(self, signals: Sequence[RawSignal], now: datetime) -> float:
        weighted: list[float] = []
        weights: list[float] = []
        for signal in signals:
            weight = self._table.source_weight(signal.source_name, signal.confidence) * self.time_weight(signal, now)
            weighted.append(signal.confidence * weight)
            weights.append(weight)
        total_weight = math.fsum(weights)
        if total_weight <= 0:
            return 0.0
        return math.fsum(weighted) / total_weight

    def detect_conflicts(self, signals: Sequence[RawSignal]) -> list[str]:
        conflicts: list[str] = []

        bullish = [s for s in signals if s.sentiment > BULLISH_SENTIMENT and s.confidence > CONFLICT_CONFIDENCE]
        bearish = [s for s in signals if s.sentiment < BEARISH_SENTIMENT and s.confidence > CONFLICT_CONFIDENCE]
        if bullish and bearish:
            conflicts.append(CONFLICT_OPPOSED_SENTIMENT)

        social = [s.sentiment for s in signals if self._table.kind_of(s.source_name) == SourceKind.SOCIAL]
        fundamental = [s.sentiment for s in signals if self._table.kind_of(s.source_name) in FUNDAMENTAL_KINDS]
        if social and fundamental and abs(_mean(social) - _mean(fundamental)) > SOCIAL_FUNDAMENTAL_GAP:
            conflicts.append(CONFLICT_SOCIAL_VS_FUNDAMENTAL)

        return conflicts

    @staticmethod
    def risk_level(confidence: float, source_count: int, conflicts: Sequence[str]) -> RiskLevel:
        if conflicts:
            return RiskLevel.HIGH
        if source_count <= 1:
            return RiskLevel.HIGH
        if confidence < 60:
            return RiskLevel.HIGH
        if confidence > 80 and source_count >= 3:
            return RiskLevel.LOW
        return RiskLevel.MEDIUM

    @staticmethod
    def recommendation(confidence: float, risk: RiskLevel, aligned: bool) -> SignalRecommendation:
        if risk == RiskLevel.HIGH:
            return SignalRecommendation.AVOID
        if not aligned:
            return SignalRecommendation.WATCH
        if confidence >= 85 and risk == RiskLevel.LOW:
            return SignalRecommendation.STRONG_BUY
        if confidence >= 70:
            return SignalRecommendation.BUY
        return SignalRecommendation.WATCH

    @staticmethod
    def summarize(symbol: str, confidence: float, signals: Sequence[RawSignal], flags: ValidationFlags) -> str:
        names = sorted({s.source_name for s in signals})
        plural = "s" if len(names) != 1 else ""
        parts = [f"{symbol}: {confidence:.0f}% confidence signal from {len(names)} source{plural} ({', '.join(names)})."]
        if flags.multiple_sources_confirm:
            parts.append("Multiple sources confirm signal.")
        parts.append("Sentiment aligned across sources." if flags.sentiment_alignment else "Mixed sentiment signals.")
        if flags.insider_activity:
            parts.append("Insider trading activity detected.")
        if flags.temporal_alignment:
            parts.append("Recent coordinated activity.")
        parts.append(f"Overall {sentiment_bucket(_mean([s.sentiment for s in signals]))} sentiment.")
        return " ".join(parts)

    def evaluate(self, symbol: str, signals: Sequence[RawSignal], now: datetime | None = None) -> ValidatedSignal:
        """Build a ValidatedSignal from an explicit, non-empty signal set."""
        if not signals:
            raise ValueError("evaluate() needs at least one signal")
        now = now or self._now()
        ordered = tuple(sorted(signals, key=lambda s: (s.observed_at, s.source_name, s.confidence, s.sentiment)))
        kinds = {self._table.kind_of(s.source_name) for s in ordered}
        source_count = len({s.source_name for s in ordered})
        volume_spike = any(metadata_flag(s.metadata.get("volume_spike")) for s in ordered)

        confidence = self.weighted_confidence(ordered, now)
        flags = ValidationFlags(
            multiple_sources_confirm=source_count >= 2,
            sentiment_alignment=sentiment_aligned(ordered),
            temporal_alignment=temporally_aligned(ordered),
            insider_activity=SourceKind.FILINGS in kinds,
            volume_confirmation=volume_spike or SourceKind.VOLUME in kinds,
            technical_confirmation=SourceKind.TECHNICAL in kinds,
        )
        conflicts = self.detect_conflicts(ordered)
        risk = self.risk_level(confidence, source_count, conflicts)

        return ValidatedSignal(
            symbol=symbol,
            asset_kind=ordered[-1].asset_kind,
            overall_confidence=confidence,
            sources=ordered,
            flags=flags,
            risk_level=risk,
            recommendation=self.recommendation(confidence, risk, flags.sentiment_alignment),
            conflicting_signals=tuple(conflicts),
            summary=self.summarize(symbol, confidence, ordered, flags),
            validated_at=now,
        )

    def validate(self, symbol: str) -> ValidatedSignal | None:
        symbol = normalize_symbol(symbol)
        signals = self._window.for_symbol(symbol)
        if not signals:
            return None

        result = self.evaluate(symbol, signals)
        with self._history_lock:
            self._history.setdefault(symbol, deque(maxlen=HISTORY_DEPTH)).appendleft(result)

        logger.info(
            "Validated signal",
            symbol=symbol,
            confidence=round(result.overall_confidence, 1),
            risk=result.risk_level.value,
            recommendation=result.recommendation.value,
        )
        return result

    def validate_all(self) -> list[ValidatedSignal]:
        results = [v for v in (self.validate(symbol) for symbol in self._window.symbols()) if v is not None]
        results.sort(key=lambda v: (-v.overall_confidence, v.symbol))
        return results

    def high_confidence(self, min_confidence: float = 75.0) -> list[ValidatedSignal]:
        return [
            v
            for v in self.validate_all()
            if v.overall_confidence >= min_confidence and v.risk_level != RiskLevel.HIGH
        ]

    def history(self, symbol: str) -> list[ValidatedSignal]:
        with self._history_lock:
            return list(self._history.get(normalize_symbol(symbol), ()))

    def stats(self) -> dict[str, object]:
        """Summarise the most recent validation of every symbol seen so far."""
        with self._history_lock:
            latest = [entries[0] for entries in self._history.values() if entries]

        by_risk = {level.value: 0 for level in RiskLevel}
        by_recommendation = {rec.value: 0 for rec in SignalRecommendation}
        for result in latest:
            by_risk[result.risk_level.value] += 1
            by_recommendation[result.recommendation.value] += 1

        return {
            "symbols_validated": len(latest),
            "average_confidence": round(_mean([r.overall_confidence for r in latest]), 1) if latest else 0.0,
            "by_risk": by_risk,
            "by_recommendation": by_recommendation,
        }
