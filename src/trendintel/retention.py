"""Retention policy for low-conviction (On Watch) assets."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from trendintel.entities import Entity
from trendintel.scoring import Recommendation
from trendintel.store.base import AssetStore

logger = structlog.get_logger()

MIN_RETAINED_MEME_SCORE = 2
MIN_RETAINED_SOURCES = 2


@dataclass(frozen=True)
class SweepResult:
    evicted_confirmed: int = 0
    evicted_pending: int = 0

    @property
    def total(self) -> int:
        return self.evicted_confirmed + self.evicted_pending


class RetentionEngine:
    """Single decision point for evicting On Watch entities.

    Used by the scheduled sweep and inline by every create/update path.
    """

    def meets_retention(self, entity: Entity) -> bool:
        if entity.meme_score >= MIN_RETAINED_MEME_SCORE:
            return True
        if len(entity.sources) >= MIN_RETAINED_SOURCES:
            return True
        if entity.unusual_volume:
            return True
        if entity.is_political_trade or entity.is_earnings_based:
            return True
        return False

    def should_evict(self, entity: Entity) -> bool:
        return entity.recommendation == Recommendation.ON_WATCH and not self.meets_retention(entity)

    def sweep(self, store: AssetStore) -> SweepResult:
        """Hard-delete every evictable entity. Callers hold the store lock."""
        evicted_confirmed = 0
        evicted_pending = 0

        for asset in store.list_confirmed():
            if self.should_evict(asset) and store.delete(asset.id):
                logger.info("Evicted On Watch asset", symbol=asset.symbol, asset_id=asset.id)
                evicted_confirmed += 1

        for pending in store.list_pending():
            if self.should_evict(pending) and store.delete(pending.id):
                logger.info("Evicted On Watch pending asset", symbol=pending.symbol, asset_id=pending.id)
                evicted_pending += 1

        result = SweepResult(evicted_confirmed=evicted_confirmed, evicted_pending=evicted_pending)
        logger.info("Retention sweep complete", **vars(result))
        return result

    def stats(self, store: AssetStore) -> dict[str, int]:
        on_watch_assets = [a for a in store.list_confirmed() if a.recommendation == Recommendation.ON_WATCH]
        on_watch_pending = [p for p in store.list_pending() if p.recommendation == Recommendation.ON_WATCH]
        retained_assets = sum(1 for a in on_watch_assets if self.meets_retention(a))
        retained_pending = sum(1 for p in on_watch_pending if self.meets_retention(p))
        return {
            "on_watch_assets": len(on_watch_assets),
            "on_watch_pending": len(on_watch_pending),
            "retained_on_watch_assets": retained_assets,
            "retained_on_watch_pending": retained_pending,
            "eligible_for_deletion": (len(on_watch_assets) - retained_assets)
            + (len(on_watch_pending) - retained_pending),
        }
