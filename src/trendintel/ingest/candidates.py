"""Derive scored candidates from raw signals."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from trendintel.ingest.signals import AssetKind, RawSignal
from trendintel.scoring import clamp_scores
from trendintel.sources import SourceKind, SourceTable


@dataclass(frozen=True)
class CandidateSignal:
    source_name: str
    symbol: str
    asset_kind: AssetKind
    confidence: float
    sentiment: float
    observed_at: datetime
    meme_score: int = 0
    political_score: int = 0
    earnings_score: int = 0
    unusual_volume: bool = False
    is_political_trade: bool = False
    is_earnings_based: bool = False
    summary: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)
    sources: frozenset[str] = frozenset()

    @property
    def all_sources(self) -> frozenset[str]:
        return self.sources | {self.source_name}

    @property
    def mentions(self) -> int:
        return int(_number(self.metadata.get("mentions")))


def _number(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


_BOOL = TypeAdapter(bool)


def metadata_flag(value: Any, default: bool = False) -> bool:
    """Read a feed flag; quoted values such as "false" or "0" parse as booleans."""
    if value is None:
        return default
    try:
        return _BOOL.validate_python(value)
    except ValidationError:
        return default


def social_meme_score(mentions: float, sentiment: float, avg_score: float) -> int:
    score = 0
    if mentions > 100:
        score += 3
    elif mentions > 50:
        score += 2
    elif mentions > 10:
        score += 1
    if sentiment > 0.75:
        score += 1
    if avg_score > 100:
        score += 1
    return min(4, score)


def volume_meme_score(volume_ratio: float, price_change: float) -> int:
    score = 0
    if volume_ratio > 3:
        score += 2
    elif volume_ratio > 2:
        score += 1
    if price_change > 5:
        score += 1
    if volume_ratio > 5:
        score += 1
    return min(4, score)


def crypto_meme_score(rank: float, price_change_24h: float, market_cap_rank: float) -> int:
    if rank <= 3:
        score = 3
    elif rank <= 7:
        score = 2
    else:
        score = 1
    if abs(price_change_24h) > 20:
        score += 1
    if market_cap_rank > 100:
        score += 1
    return min(4, score)


def trend_meme_score(trend_score: float) -> int:
    if trend_score >= 80:
        return 4
    if trend_score >= 60:
        return 3
    if trend_score >= 40:
        return 2
    if trend_score >= 20:
        return 1
    return 0


def earnings_surprise_score(surprise: float) -> int:
    if surprise > 0.1:
        return 2
    if surprise > 0.05:
        return 1
    return 0


def derive_candidate(signal: RawSignal, table: SourceTable) -> CandidateSignal:
    """Compute sub-scores and retention flags for one raw signal.

    Explicit score/flag keys in the signal metadata always win over values
    derived from the source kind.
    """
    meta = signal.metadata
    kind = table.kind_of(signal.source_name)
    meme = political = earnings = 0
    unusual_volume = metadata_flag(meta.get("volume_spike"))
    political_trade = False
    earnings_based = False
    metrics: list[str] = []

    if kind == SourceKind.SOCIAL:
        mentions = _number(meta.get("mentions"))
        meme = social_meme_score(mentions, signal.sentiment, _number(meta.get("avg_score")))
        if mentions:
            metrics.append(f"{int(mentions)} mentions")
        if signal.sentiment > 0.7:
            metrics.append("high sentiment")
    elif kind in (SourceKind.VOLUME, SourceKind.MARKET_DATA):
        volume_ratio = _number(meta.get("volume_ratio"))
        meme = volume_meme_score(volume_ratio, _number(meta.get("price_change")))
        if volume_ratio:
            metrics.append(f"{volume_ratio:.1f}x volume")
            unusual_volume = unusual_volume or volume_ratio > 2.0
    elif kind == SourceKind.POLITICAL:
        political = 2
        political_trade = True
        metrics.append("political activity")
    elif kind == SourceKind.FILINGS:
        political = 1
        metrics.append("insider activity")
    elif kind == SourceKind.EARNINGS:
        earnings = earnings_surprise_score(_number(meta.get("surprise")))
        earnings_based = True
        metrics.append("upcoming report")
    elif kind == SourceKind.TRENDS:
        meme = trend_meme_score(_number(meta.get("trend_score")))
        metrics.append("search interest spike")
    elif kind == SourceKind.CRYPTO_TRENDING:
        price_change = _number(meta.get("price_change_24h"))
        meme = crypto_meme_score(
            _number(meta.get("rank"), 99.0),
            price_change,
            _number(meta.get("market_cap_rank")),
        )
        if price_change:
            metrics.append(f"{'+' if price_change > 0 else ''}{price_change:.1f}% (24h)")

    if "meme_score" in meta:
        meme = int(_number(meta["meme_score"]))
    if "political_score" in meta:
        political = int(_number(meta["political_score"]))
    if "earnings_score" in meta:
        earnings = int(_number(meta["earnings_score"]))
    unusual_volume = metadata_flag(meta.get("unusual_volume"), unusual_volume)
    political_trade = metadata_flag(meta.get("is_political_trade"), political_trade)
    earnings_based = metadata_flag(meta.get("is_earnings_based"), earnings_based)

    meme, political, earnings = clamp_scores(meme, political, earnings)
    summary = f"Trending on {signal.source_name}"
    if metrics:
        summary += f" with {' and '.join(metrics)}"

    return CandidateSignal(
        source_name=signal.source_name,
        symbol=signal.symbol,
        asset_kind=signal.asset_kind,
        confidence=signal.confidence,
        sentiment=signal.sentiment,
        observed_at=signal.observed_at,
        meme_score=meme,
        political_score=political,
        earnings_score=earnings,
        unusual_volume=unusual_volume,
        is_political_trade=political_trade,
        is_earnings_based=earnings_based,
        summary=summary,
        metadata=dict(meta),
    )


def merge_candidates(candidates: Iterable[CandidateSignal]) -> list[CandidateSignal]:
    """Fold candidates for the same symbol into one, keeping first-seen order.

    Sources are unioned, sub-scores and confidence take the maximum and flags
    are OR-ed. The summary of the highest-confidence candidate is kept.
    """
    merged: dict[str, CandidateSignal] = {}
    for candidate in candidates:
        existing = merged.get(candidate.symbol)
        if existing is None:
            merged[candidate.symbol] = candidate
            continue
        lead, other = (existing, candidate) if existing.confidence >= candidate.confidence else (candidate, existing)
        merged[candidate.symbol] = CandidateSignal(
            source_name=lead.source_name,
            symbol=lead.symbol,
            asset_kind=lead.asset_kind,
            confidence=lead.confidence,
            sentiment=lead.sentiment,
            observed_at=max(lead.observed_at, other.observed_at),
            meme_score=max(lead.meme_score, other.meme_score),
            political_score=max(lead.political_score, other.political_score),
            earnings_score=max(lead.earnings_score, other.earnings_score),
            unusual_volume=lead.unusual_volume or other.unusual_volume,
            is_political_trade=lead.is_political_trade or other.is_political_trade,
            is_earnings_based=lead.is_earnings_based or other.is_earnings_based,
            summary=lead.summary,
            metadata=lead.metadata,
            sources=lead.all_sources | other.all_sources,
        )
    return list(merged.values())
