"""Tests for the signal engine facade."""

import asyncio

from trendintel.adapters.base import AdapterStatus
from trendintel.adapters.static import StaticAdapter
from trendintel.engine import IngestResult, SignalEngine
from trendintel.entities import Asset, PendingAsset
from trendintel.errors import AdapterError
from trendintel.ingest.signals import AssetKind
from trendintel.lifecycle import ApprovalOverrides
from trendintel.validation import RiskLevel


class TestIngest:
    """Tests for SignalEngine.ingest()."""

    def test_counts_every_outcome(self, engine, store, make_signal):
        store.put(PendingAsset(symbol="TSLA", asset_kind=AssetKind.EQUITY, meme_score=3))

        result = engine.ingest(
            [
                make_signal("Reddit", "GME", confidence=80, sentiment=0.8, mentions=140),
                make_signal("Finviz", "GME", confidence=75, volume_ratio=3.4),
                {"source": "Reddit", "symbol": "", "confidence": 80},
                make_signal("Reddit", "AMC", confidence=90, mentions=20),
                make_signal("Mystery Feed", "XYZ", confidence=70),
                make_signal("Mystery Feed", "ABC", confidence=90),
                make_signal("Reddit", "TSLA", confidence=80, mentions=140),
            ]
        )

        assert result == IngestResult(added=1, skipped=1, auto_rejected=1, filtered=2, invalid=1)

        [gme] = [p for p in engine.list_pending() if p.symbol == "GME"]
        assert gme.sources == {"Reddit", "Finviz"}
        assert gme.unusual_volume is True
        assert gme.meme_score == 4

    def test_single_strong_meme_signal_is_added(self, engine, make_signal):
        result = engine.ingest([make_signal("Reddit", "BB", confidence=40, sentiment=0.5, mentions=140)])
        assert result.added == 1

    def test_accepts_payload_dicts(self, engine, clock):
        result = engine.ingest(
            [
                {
                    "source": "QuiverQuant",
                    "ticker": "nvda",
                    "confidence": 88,
                    "sentiment": 0.65,
                    "observed_at": clock().isoformat(),
                }
            ]
        )

        assert result.added == 1
        pending = engine.list_pending()[0]
        assert pending.symbol == "NVDA"
        assert pending.is_political_trade is True

    def test_sweeps_before_ingesting(self, engine, store):
        weak = PendingAsset(symbol="WEAK", asset_kind=AssetKind.EQUITY, meme_score=0)
        store.put(weak)

        engine.ingest([])

        assert store.get_by_id(weak.id) is None

    def test_repeated_batches_do_not_duplicate(self, engine, make_signal):
        batch = [make_signal("Reddit", "GME", mentions=140)]

        assert engine.ingest(batch).added == 1
        assert engine.ingest(batch) == IngestResult(skipped=1)
        assert len(engine.list_pending()) == 1

    def test_future_dated_signal_does_not_pin_validation(self, engine, make_signal, clock):
        engine.ingest([make_signal("Reddit", "GME", mentions=140, hours_ago=-24 * 365)])
        assert engine.validate("GME") is not None

        clock.advance(days=8)

        assert engine.validate("GME") is None

    def test_signals_feed_validation(self, engine, make_signal):
        engine.ingest([make_signal("Reddit", "GME", mentions=140), make_signal("Finviz", "GME", volume_ratio=4)])

        result = engine.validate("GME")

        assert result is not None
        assert result.source_names == ["Finviz", "Reddit"]
        assert result.risk_level != RiskLevel.HIGH
        assert [v.symbol for v in engine.validate_all()] == ["GME"]


class TestScan:
    """Tests for adapter-driven ingestion."""

    def test_scan_and_ingest_with_partial_failures(self, store, table, clock, make_signal):
        engine = SignalEngine(
            store,
            table,
            [
                StaticAdapter("Reddit", [make_signal("Reddit", "GME", mentions=140)]),
                StaticAdapter("Finviz", [make_signal("Finviz", "GME", volume_ratio=4)], delay_seconds=5),
                StaticAdapter("StockTwits", error=AdapterError("rate limited")),
            ],
            now_fn=clock,
        )

        report = asyncio.run(engine.scan_and_ingest(timeout_seconds=0.2))

        assert [r.status for r in report.adapters] == [
            AdapterStatus.SUCCESS,
            AdapterStatus.TIMEOUT,
            AdapterStatus.ERROR,
        ]
        assert report.ingest.added == 1
        assert engine.list_pending()[0].sources == {"Reddit"}

    def test_collect_fills_window_only(self, store, table, clock, make_signal):
        engine = SignalEngine(store, table, [StaticAdapter("Reddit", [make_signal("Reddit", "GME")])], now_fn=clock)

        asyncio.run(engine.collect(timeout_seconds=1))

        assert engine.validate("GME") is not None
        assert engine.list_pending() == []


class TestLifecycleFacade:
    """Tests for approve/reject/alert pass-throughs."""

    def test_approve_then_read_alert(self, engine, make_signal):
        engine.ingest([make_signal("Reddit", "GME", sentiment=0.8, mentions=140)])
        pending = engine.list_pending()[0]

        asset = engine.approve(pending.id, ApprovalOverrides(political_score=2))

        assert isinstance(asset, Asset)
        assert [a.id for a in engine.unread_alerts()] == [asset.id]
        engine.mark_alert_read(asset.id)
        engine.mark_alert_read(asset.id)
        assert engine.unread_alerts() == []
        assert [a.symbol for a in engine.list_assets()] == ["GME"]

    def test_reject(self, engine, make_signal):
        engine.ingest([make_signal("Reddit", "GME", mentions=140)])
        pending = engine.list_pending()[0]

        engine.reject(pending.id)

        assert engine.list_pending() == []

    def test_status(self, engine, make_signal):
        engine.ingest([make_signal("Reddit", "GME", mentions=140)])

        status = engine.status()

        assert status["pending"] == 1
        assert status["assets"] == 0
        assert status["window"]["total_signals"] == 1
        assert status["retention"]["eligible_for_deletion"] == 0


class TestScheduling:
    """Tests for the periodic loops."""

    def test_sweep_loop_runs_until_stopped(self, engine, store):
        async def _run():
            stop = asyncio.Event()
            task = asyncio.create_task(engine.run_sweep_loop(0.01, stop))
            await asyncio.sleep(0.05)
            store.put(PendingAsset(symbol="WEAK", asset_kind=AssetKind.EQUITY))
            await asyncio.sleep(0.05)
            stop.set()
            return await task

        runs = asyncio.run(_run())

        assert runs >= 2
        assert store.list_pending() == []

    def test_stopped_loop_does_not_run(self, engine):
        async def _run():
            stop = asyncio.Event()
            stop.set()
            return await engine.run_sweep_loop(0.01, stop)

        assert asyncio.run(_run()) == 0

    def test_scan_loop(self, store, table, clock, make_signal):
        engine = SignalEngine(
            store, table, [StaticAdapter("Reddit", [make_signal("Reddit", "GME", mentions=140)])], now_fn=clock
        )

        async def _run():
            stop = asyncio.Event()
            task = asyncio.create_task(engine.run_scan_loop(0.01, stop, timeout_seconds=1))
            await asyncio.sleep(0.05)
            stop.set()
            return await task

        assert asyncio.run(_run()) >= 1
        assert len(engine.list_pending()) == 1
