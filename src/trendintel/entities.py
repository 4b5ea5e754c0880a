"""Pending and confirmed asset entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from trendintel.ingest.signals import AssetKind
from trendintel.scoring import Recommendation, calculate_total_score, get_recommendation, should_trigger_alert


class PendingStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Visibility(Enum):
    VISIBLE = "visible"
    HIDDEN = "hidden"


def _new_id() -> str:
    return uuid4().hex


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ScoredEntity:
    """Fields shared by pending and confirmed assets.

    total_score and recommendation are derived on access so they can never
    go stale after a score mutation.
    """

    symbol: str
    asset_kind: AssetKind
    meme_score: int = 0
    political_score: int = 0
    earnings_score: int = 0
    summary: str = ""
    sources: set[str] = field(default_factory=set)
    unusual_volume: bool = False
    is_political_trade: bool = False
    is_earnings_based: bool = False
    visibility: Visibility = Visibility.VISIBLE
    id: str = field(default_factory=_new_id)

    @property
    def total_score(self) -> int:
        return calculate_total_score(self.meme_score, self.political_score, self.earnings_score)

    @property
    def recommendation(self) -> Recommendation:
        return get_recommendation(self.total_score)


@dataclass
class PendingAsset(ScoredEntity):
    confidence: float = 0.0
    discovered_at: datetime = field(default_factory=_now)
    status: PendingStatus = PendingStatus.PENDING

    @property
    def is_pending(self) -> bool:
        return self.status == PendingStatus.PENDING


@dataclass
class Asset(ScoredEntity):
    alert_sent: bool = False
    live_price: float | None = None
    price_change_24h: float | None = None
    percent_change_24h: float | None = None
    last_price_update: datetime | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def has_unread_alert(self) -> bool:
        return should_trigger_alert(self.total_score, self.alert_sent)


Entity = PendingAsset | Asset
