"""Pending/confirmed asset lifecycle and alerting."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

import structlog
from pydantic import BaseModel, Field, field_validator

from trendintel.entities import Asset, PendingAsset, PendingStatus, Visibility
from trendintel.errors import AssetNotFoundError, DuplicateSymbolError, InvalidTransitionError, RetentionRejectedError
from trendintel.ingest.candidates import CandidateSignal
from trendintel.ingest.signals import AssetKind, normalize_symbol
from trendintel.ingest.window import utc_now
from trendintel.retention import RetentionEngine
from trendintel.scoring import (
    ALERT_MIN_SCORE,
    MAX_EARNINGS_SCORE,
    MAX_MEME_SCORE,
    MAX_POLITICAL_SCORE,
    clamp_scores,
)
from trendintel.store.base import AssetStore

logger = structlog.get_logger()

UPDATABLE_FIELDS = frozenset(
    {
        "meme_score",
        "political_score",
        "earnings_score",
        "summary",
        "sources",
        "unusual_volume",
        "is_political_trade",
        "is_earnings_based",
        "visibility",
    }
)
SCORE_FIELDS = frozenset({"meme_score", "political_score", "earnings_score"})


class ApprovalOverrides(BaseModel):
    """Scores supplied by the approver on top of the discovered meme score."""

    political_score: int = Field(0, ge=0, le=MAX_POLITICAL_SCORE)
    earnings_score: int = Field(0, ge=0, le=MAX_EARNINGS_SCORE)
    summary: str | None = None


class AssetForm(BaseModel):
    """Manual asset creation input."""

    symbol: str = Field(..., min_length=1)
    asset_kind: AssetKind = AssetKind.EQUITY
    meme_score: int = Field(0, ge=0, le=MAX_MEME_SCORE)
    political_score: int = Field(0, ge=0, le=MAX_POLITICAL_SCORE)
    earnings_score: int = Field(0, ge=0, le=MAX_EARNINGS_SCORE)
    summary: str = ""
    sources: list[str] = Field(default_factory=list)
    unusual_volume: bool = False
    is_political_trade: bool = False
    is_earnings_based: bool = False

    @field_validator("symbol", mode="before")
    @classmethod
    def _strip_symbol(cls, value: object) -> object:
        return normalize_symbol(value) if isinstance(value, str) else value


class AssetLifecycleManager:
    """Owns the pending -> approved/rejected state machine and confirmed assets.

    Every read-mutate-write runs under one re-entrant lock shared with the
    retention sweep, so no entity is stored On Watch without a retention check.
    """

    def __init__(
        self,
        store: AssetStore,
        retention: RetentionEngine | None = None,
        *,
        lock: threading.RLock | None = None,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.retention = retention or RetentionEngine()
        self.lock = lock or threading.RLock()
        self._now = now_fn

    # Pending ---------------------------------------------------------------

    def add_pending(self, candidate: CandidateSignal) -> PendingAsset:
        """Persist a discovered candidate.

        Discovery only contributes the meme score; political and earnings
        scores are set at approval time.
        """
        meme, _, _ = clamp_scores(candidate.meme_score, 0, 0)
        pending = PendingAsset(
            symbol=candidate.symbol,
            asset_kind=candidate.asset_kind,
            meme_score=meme,
            summary=candidate.summary,
            sources=set(candidate.all_sources),
            unusual_volume=candidate.unusual_volume,
            is_political_trade=candidate.is_political_trade,
            is_earnings_based=candidate.is_earnings_based,
            confidence=candidate.confidence,
            discovered_at=self._now(),
        )

        with self.lock:
            if self.store.get(pending.symbol) is not None:
                raise DuplicateSymbolError(pending.symbol)
            if self.retention.should_evict(pending):
                logger.info("Auto-rejected On Watch pending asset", symbol=pending.symbol)
                raise RetentionRejectedError(pending.symbol)
            self.store.put(pending)

        logger.info("Added pending asset", symbol=pending.symbol, sources=sorted(pending.sources))
        return pending

    def list_pending(self) -> list[PendingAsset]:
        pending = [
            p
            for p in self.store.list_pending()
            if p.status == PendingStatus.PENDING and p.visibility != Visibility.HIDDEN
        ]
        return sorted(pending, key=lambda p: (-p.confidence, p.symbol))

    def _require_pending(self, pending_id: str, action: str) -> PendingAsset:
        entity = self.store.get_by_id(pending_id)
        if not isinstance(entity, PendingAsset):
            raise AssetNotFoundError(pending_id)
        if entity.status != PendingStatus.PENDING:
            raise InvalidTransitionError(entity.symbol, entity.status.value, action)
        return entity

    def approve(self, pending_id: str, overrides: ApprovalOverrides | None = None) -> Asset:
        """Promote a pending asset to a confirmed one.

        Raises RetentionRejectedError when the merged scores leave the asset
        On Watch without any retention criterion; nothing is written then.
        """
        overrides = overrides or ApprovalOverrides()
        with self.lock:
            pending = self._require_pending(pending_id, "approve")
            existing = self.store.get(pending.symbol)
            if isinstance(existing, Asset):
                raise DuplicateSymbolError(pending.symbol)

            now = self._now()
            asset = Asset(
                symbol=pending.symbol,
                asset_kind=pending.asset_kind,
                meme_score=pending.meme_score,
                political_score=overrides.political_score,
                earnings_score=overrides.earnings_score,
                summary=overrides.summary if overrides.summary is not None else pending.summary,
                sources=set(pending.sources),
                unusual_volume=pending.unusual_volume,
                is_political_trade=pending.is_political_trade,
                is_earnings_based=pending.is_earnings_based,
                created_at=now,
                updated_at=now,
            )
            if self.retention.should_evict(asset):
                logger.info("Approval voided by retention policy", symbol=asset.symbol, pending_id=pending_id)
                raise RetentionRejectedError(asset.symbol)

            self.store.put(asset)
            self.store.put(replace(pending, status=PendingStatus.APPROVED))

        logger.info("Approved asset", symbol=asset.symbol, total_score=asset.total_score)
        return asset

    def reject(self, pending_id: str) -> PendingAsset:
        with self.lock:
            pending = self._require_pending(pending_id, "reject")
            rejected = replace(pending, status=PendingStatus.REJECTED)
            self.store.put(rejected)
        logger.info("Rejected pending asset", symbol=rejected.symbol)
        return rejected

    # Confirmed -------------------------------------------------------------

    def create_asset(self, form: AssetForm) -> Asset:
        now = self._now()
        asset = Asset(
            symbol=normalize_symbol(form.symbol),
            asset_kind=form.asset_kind,
            meme_score=form.meme_score,
            political_score=form.political_score,
            earnings_score=form.earnings_score,
            summary=form.summary,
            sources=set(form.sources),
            unusual_volume=form.unusual_volume,
            is_political_trade=form.is_political_trade,
            is_earnings_based=form.is_earnings_based,
            created_at=now,
            updated_at=now,
        )
        with self.lock:
            if self.store.get(asset.symbol) is not None:
                raise DuplicateSymbolError(asset.symbol)
            if self.retention.should_evict(asset):
                raise RetentionRejectedError(asset.symbol)
            self.store.put(asset)
        logger.info("Created asset", symbol=asset.symbol, total_score=asset.total_score)
        return asset

    def get_asset(self, asset_id: str) -> Asset:
        entity = self.store.get_by_id(asset_id)
        if not isinstance(entity, Asset):
            raise AssetNotFoundError(asset_id)
        return entity

    def update_asset(self, asset_id: str, **updates: object) -> Asset | None:
        """Apply field updates; returns None if the update evicted the asset."""
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if "sources" in updates:
            updates["sources"] = set(updates["sources"])  # type: ignore[call-overload]
        if "visibility" in updates:
            updates["visibility"] = Visibility(updates["visibility"])

        with self.lock:
            asset = self.get_asset(asset_id)
            changed = replace(asset, **updates, updated_at=self._now())  # type: ignore[arg-type]
            if SCORE_FIELDS & set(updates):
                changed.meme_score, changed.political_score, changed.earnings_score = clamp_scores(
                    changed.meme_score, changed.political_score, changed.earnings_score
                )
            if self.retention.should_evict(changed):
                self.store.delete(asset_id)
                logger.info("Evicted updated On Watch asset", symbol=changed.symbol, asset_id=asset_id)
                return None
            self.store.put(changed)
        return changed

    def delete_asset(self, asset_id: str) -> bool:
        with self.lock:
            return self.store.delete(asset_id)

    def update_pricing(
        self,
        symbol: str,
        *,
        live_price: float,
        price_change_24h: float,
        percent_change_24h: float,
        last_price_update: datetime | None = None,
    ) -> bool:
        with self.lock:
            asset = self.store.get(normalize_symbol(symbol))
            if not isinstance(asset, Asset):
                return False
            now = self._now()
            self.store.put(
                replace(
                    asset,
                    live_price=live_price,
                    price_change_24h=price_change_24h,
                    percent_change_24h=percent_change_24h,
                    last_price_update=last_price_update or now,
                    updated_at=now,
                )
            )
        return True

    def list_assets(self) -> list[Asset]:
        assets = [a for a in self.store.list_confirmed() if a.visibility != Visibility.HIDDEN]
        return sorted(assets, key=lambda a: (-a.total_score, a.symbol))

    # Alerts ----------------------------------------------------------------

    def unread_alerts(self) -> list[Asset]:
        alerts = [a for a in self.store.list_confirmed() if a.has_unread_alert]
        return sorted(alerts, key=lambda a: (-a.total_score, a.symbol))

    def mark_alert_read(self, asset_id: str) -> Asset:
        """Mark an alert as read. Marking an already-read alert is a no-op."""
        with self.lock:
            asset = self.get_asset(asset_id)
            if asset.alert_sent:
                return asset
            asset = replace(asset, alert_sent=True, updated_at=self._now())
            self.store.put(asset)
        logger.info("Marked alert as read", symbol=asset.symbol)
        return asset

    def reset_alerts(self) -> int:
        """Re-arm alerts on every alert-worthy asset."""
        reset = 0
        with self.lock:
            for asset in self.store.list_confirmed():
                if asset.total_score >= ALERT_MIN_SCORE and asset.alert_sent:
                    self.store.put(replace(asset, alert_sent=False, updated_at=self._now()))
                    reset += 1
        logger.info("Reset alerts", count=reset)
        return reset
