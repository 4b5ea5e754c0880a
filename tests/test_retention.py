"""Tests for the On Watch retention policy."""

import pytest

from trendintel.entities import Asset, PendingAsset, PendingStatus
from trendintel.ingest.signals import AssetKind
from trendintel.retention import RetentionEngine
from trendintel.scoring import Recommendation


@pytest.fixture
def retention():
    return RetentionEngine()


def _asset(**overrides) -> Asset:
    fields = {"symbol": "GME", "asset_kind": AssetKind.EQUITY}
    fields.update(overrides)
    return Asset(**fields)


def _pending(**overrides) -> PendingAsset:
    fields = {"symbol": "AMC", "asset_kind": AssetKind.EQUITY, "confidence": 70.0}
    fields.update(overrides)
    return PendingAsset(**fields)


class TestMeetsRetention:
    """Tests for RetentionEngine.meets_retention()."""

    def test_bare_entity_fails(self, retention):
        assert retention.meets_retention(_asset(meme_score=1, sources={"Reddit"})) is False

    @pytest.mark.parametrize(
        "overrides",
        [
            {"meme_score": 2},
            {"sources": {"Reddit", "Finviz"}},
            {"unusual_volume": True},
            {"is_political_trade": True},
            {"is_earnings_based": True},
        ],
    )
    def test_any_criterion_suffices(self, retention, overrides):
        assert retention.meets_retention(_asset(**overrides)) is True

    def test_only_on_watch_is_evicted(self, retention):
        """Higher tiers are never evicted, whatever their criteria."""
        strong = _asset(political_score=3, earnings_score=2)
        assert strong.recommendation == Recommendation.SHORT_TERM_WATCH
        assert retention.should_evict(strong) is False
        assert retention.should_evict(_asset(meme_score=1)) is True


class TestSweep:
    """Tests for RetentionEngine.sweep()."""

    def test_evicts_failing_on_watch_entities(self, retention, store):
        keep_asset = _asset(symbol="KEEP", meme_score=3)
        drop_asset = _asset(symbol="DROP", meme_score=1)
        keep_pending = _pending(symbol="VOL", unusual_volume=True)
        drop_pending = _pending(symbol="WEAK", status=PendingStatus.REJECTED)
        for entity in (keep_asset, drop_asset, keep_pending, drop_pending):
            store.put(entity)

        result = retention.sweep(store)

        assert (result.evicted_confirmed, result.evicted_pending, result.total) == (1, 1, 2)
        assert store.get_by_id(drop_asset.id) is None
        assert store.get_by_id(drop_pending.id) is None
        assert store.get_by_id(keep_asset.id) is not None
        assert store.get_by_id(keep_pending.id) is not None

    def test_sweep_is_idempotent(self, retention, store):
        store.put(_asset(meme_score=0))
        store.put(_pending(meme_score=1))

        first = retention.sweep(store)
        second = retention.sweep(store)

        assert first.total == 2
        assert second.total == 0

    def test_invariant_holds_after_sweep(self, retention, store):
        for index in range(6):
            store.put(_asset(symbol=f"A{index}", meme_score=index % 4, unusual_volume=index == 1))
            store.put(_pending(symbol=f"P{index}", meme_score=index % 3, sources={"Reddit"} if index else set()))

        retention.sweep(store)

        for entity in [*store.list_confirmed(), *store.list_pending()]:
            if entity.recommendation == Recommendation.ON_WATCH:
                assert retention.meets_retention(entity)

    def test_stats(self, retention, store):
        store.put(_asset(symbol="KEEP", meme_score=2))
        store.put(_asset(symbol="DROP", meme_score=0))
        store.put(_asset(symbol="TOP", meme_score=4, political_score=3))
        store.put(_pending(meme_score=0))

        stats = retention.stats(store)

        assert stats == {
            "on_watch_assets": 2,
            "on_watch_pending": 1,
            "retained_on_watch_assets": 1,
            "retained_on_watch_pending": 0,
            "eligible_for_deletion": 2,
        }
