"""Tests for cross-source validation."""

import itertools
import math

import pytest

from trendintel.validation import (
    CONFLICT_OPPOSED_SENTIMENT,
    CONFLICT_SOCIAL_VS_FUNDAMENTAL,
    CrossSourceValidator,
    RiskLevel,
    SignalRecommendation,
    sentiment_aligned,
    temporally_aligned,
)


@pytest.fixture
def validator(window, table, clock):
    return CrossSourceValidator(window, table, now_fn=clock)


class TestWeightedConfidence:
    """Tests for reliability- and time-weighted confidence."""

    def test_single_signal_returns_its_confidence(self, validator, make_signal, clock):
        assert validator.weighted_confidence([make_signal(confidence=80)], clock()) == pytest.approx(80)

    def test_weights_by_source_profile(self, validator, make_signal, clock):
        signals = [make_signal("Reddit", confidence=80), make_signal("SEC EDGAR", confidence=60)]
        reddit_weight = 0.8 * 0.7 * 0.8
        sec_weight = 1.0 * 0.95 * 0.6
        expected = (80 * reddit_weight + 60 * sec_weight) / (reddit_weight + sec_weight)

        assert validator.weighted_confidence(signals, clock()) == pytest.approx(expected)

    def test_older_signals_weigh_less(self, validator, make_signal, clock):
        signals = [make_signal("Reddit", confidence=90), make_signal("Reddit", confidence=60, hours_ago=48)]
        fresh = 0.8 * 0.7 * 0.9
        stale = 0.8 * 0.7 * 0.6 * math.exp(-48 * 0.9 / 24)
        expected = (90 * fresh + 60 * stale) / (fresh + stale)

        assert validator.weighted_confidence(signals, clock()) == pytest.approx(expected)

    def test_future_timestamps_are_not_boosted(self, validator, make_signal, clock):
        assert validator.time_weight(make_signal(hours_ago=-5), clock()) == 1.0

    def test_zero_weight_yields_zero(self, validator, make_signal, clock):
        assert validator.weighted_confidence([make_signal(confidence=0)], clock()) == 0.0

    def test_unknown_source_uses_flat_weight(self, validator, make_signal, clock):
        signals = [make_signal("Mystery Feed", confidence=50), make_signal("Other Feed", confidence=90)]
        assert validator.weighted_confidence(signals, clock()) == pytest.approx(70)

    @pytest.mark.parametrize(
        "existing",
        [
            [("Reddit", 40)],
            [("Reddit", 90), ("Finviz", 30)],
            [("SEC EDGAR", 55), ("StockTwits", 75), ("Mystery Feed", 20)],
        ],
    )
    def test_adding_full_confidence_signal_never_lowers_confidence(self, validator, make_signal, clock, existing):
        signals = [make_signal(source, confidence=confidence, sentiment=0.7) for source, confidence in existing]
        before = validator.weighted_confidence(signals, clock())
        after = validator.weighted_confidence([*signals, make_signal("Finviz", confidence=100, sentiment=0.7)], clock())

        assert after >= before


class TestAlignment:
    """Tests for the alignment predicates."""

    def test_sentiment_vacuous_for_single_signal(self, make_signal):
        assert sentiment_aligned([make_signal(sentiment=0.0)]) is True

    def test_sentiment_variance_at_limit_is_misaligned(self, make_signal):
        assert sentiment_aligned([make_signal(sentiment=1.0), make_signal("Finviz", sentiment=0.0)]) is False

    def test_temporal_spread(self, make_signal):
        assert temporally_aligned([make_signal(), make_signal(hours_ago=48)]) is True
        assert temporally_aligned([make_signal(), make_signal(hours_ago=49)]) is False


class TestConflicts:
    """Tests for conflict detection."""

    def test_opposed_high_confidence_sentiment(self, validator, make_signal):
        signals = [
            make_signal("Reddit", confidence=80, sentiment=0.9),
            make_signal("StockTwits", confidence=80, sentiment=0.1),
        ]
        assert validator.detect_conflicts(signals) == [CONFLICT_OPPOSED_SENTIMENT]

    def test_low_confidence_disagreement_is_not_a_conflict(self, validator, make_signal):
        signals = [
            make_signal("Reddit", confidence=65, sentiment=0.9),
            make_signal("StockTwits", confidence=65, sentiment=0.1),
        ]
        assert validator.detect_conflicts(signals) == []

    def test_social_vs_fundamental(self, validator, make_signal):
        signals = [
            make_signal("Reddit", confidence=65, sentiment=0.9),
            make_signal("SEC EDGAR", confidence=65, sentiment=0.3),
        ]
        assert validator.detect_conflicts(signals) == [CONFLICT_SOCIAL_VS_FUNDAMENTAL]


class TestClassification:
    """Tests for risk level and recommendation rules."""

    @pytest.mark.parametrize(
        ("confidence", "sources", "conflicts", "expected"),
        [
            (95, 3, ["x"], RiskLevel.HIGH),
            (95, 1, [], RiskLevel.HIGH),
            (59, 3, [], RiskLevel.HIGH),
            (81, 3, [], RiskLevel.LOW),
            (80, 3, [], RiskLevel.MEDIUM),
            (90, 2, [], RiskLevel.MEDIUM),
        ],
    )
    def test_risk_level(self, confidence, sources, conflicts, expected):
        assert CrossSourceValidator.risk_level(confidence, sources, conflicts) == expected

    @pytest.mark.parametrize(
        ("confidence", "risk", "aligned", "expected"),
        [
            (99, RiskLevel.HIGH, True, SignalRecommendation.AVOID),
            (99, RiskLevel.LOW, False, SignalRecommendation.WATCH),
            (85, RiskLevel.LOW, True, SignalRecommendation.STRONG_BUY),
            (90, RiskLevel.MEDIUM, True, SignalRecommendation.BUY),
            (70, RiskLevel.LOW, True, SignalRecommendation.BUY),
            (65, RiskLevel.MEDIUM, True, SignalRecommendation.WATCH),
        ],
    )
    def test_recommendation(self, confidence, risk, aligned, expected):
        assert CrossSourceValidator.recommendation(confidence, risk, aligned) == expected


class TestEvaluate:
    """Tests for CrossSourceValidator.evaluate()."""

    def test_conflicting_sentiment_is_avoided(self, validator, make_signal):
        result = validator.evaluate(
            "GME",
            [
                make_signal("Reddit", confidence=80, sentiment=0.9),
                make_signal("StockTwits", confidence=80, sentiment=0.1),
            ],
        )
        assert result.risk_level == RiskLevel.HIGH
        assert result.recommendation == SignalRecommendation.AVOID
        assert result.has_conflicts

    def test_strong_buy(self, validator, make_signal):
        result = validator.evaluate(
            "GME",
            [
                make_signal("Reddit", confidence=90),
                make_signal("Finviz", confidence=90),
                make_signal("SEC EDGAR", confidence=90),
            ],
        )
        assert result.overall_confidence == pytest.approx(90)
        assert result.risk_level == RiskLevel.LOW
        assert result.recommendation == SignalRecommendation.STRONG_BUY
        assert result.flags.multiple_sources_confirm
        assert result.flags.insider_activity
        assert result.flags.volume_confirmation
        assert not result.flags.technical_confirmation

    def test_misaligned_sentiment_is_watch(self, validator, make_signal):
        result = validator.evaluate(
            "GME",
            [make_signal("Reddit", confidence=65, sentiment=1.0), make_signal("Finviz", confidence=65, sentiment=0.0)],
        )
        assert result.risk_level == RiskLevel.MEDIUM
        assert result.recommendation == SignalRecommendation.WATCH

    def test_volume_spike_metadata(self, validator, make_signal):
        result = validator.evaluate("GME", [make_signal("Reddit", volume_spike=True)])
        assert result.flags.volume_confirmation

    def test_quoted_volume_spike_metadata(self, validator, make_signal):
        assert validator.evaluate("GME", [make_signal("Reddit", volume_spike="true")]).flags.volume_confirmation
        assert not validator.evaluate("GME", [make_signal("Reddit", volume_spike="false")]).flags.volume_confirmation

    def test_repeated_source_counts_once(self, validator, make_signal):
        result = validator.evaluate("GME", [make_signal("Reddit", confidence=95), make_signal("Reddit", confidence=95)])
        assert result.risk_level == RiskLevel.HIGH
        assert not result.flags.multiple_sources_confirm

    def test_summary(self, validator, make_signal):
        result = validator.evaluate("GME", [make_signal("Reddit", confidence=80, sentiment=0.7)])
        assert result.summary == (
            "GME: 80% confidence signal from 1 source (Reddit). Sentiment aligned across sources. "
            "Recent coordinated activity. Overall bullish sentiment."
        )

    def test_order_independent(self, validator, make_signal):
        signals = [
            make_signal("Reddit", confidence=70, sentiment=0.8, hours_ago=5),
            make_signal("SEC EDGAR", confidence=85, sentiment=0.4, hours_ago=20),
            make_signal("Finviz", confidence=60, sentiment=0.6, hours_ago=1),
            make_signal("StockTwits", confidence=75, sentiment=0.9),
        ]
        expected = validator.evaluate("GME", signals)

        for permutation in itertools.permutations(signals):
            assert validator.evaluate("GME", list(permutation)) == expected

    def test_empty_signals_raise(self, validator):
        with pytest.raises(ValueError):
            validator.evaluate("GME", [])


class TestValidate:
    """Tests for window-backed validation."""

    def test_no_signals(self, validator):
        assert validator.validate("GME") is None

    def test_reads_window_and_records_history(self, validator, window, make_signal):
        window.add_many([make_signal("Reddit", confidence=80), make_signal("Finviz", confidence=70)])

        first = validator.validate("gme")
        second = validator.validate("GME")

        assert first is not None and second is not None
        assert first.symbol == "GME"
        assert first.source_names == ["Finviz", "Reddit"]
        assert validator.history("GME") == [second, first]

    def test_history_is_bounded(self, validator, window, make_signal):
        window.add(make_signal())
        for _ in range(15):
            validator.validate("GME")
        assert len(validator.history("GME")) == 10

    def test_validate_all_and_high_confidence(self, validator, window, make_signal):
        window.add_many(
            [
                make_signal("Reddit", "GME", confidence=90),
                make_signal("Finviz", "GME", confidence=90),
                make_signal("Reddit", "AMC", confidence=50),
            ]
        )

        results = validator.validate_all()

        assert [r.symbol for r in results] == ["GME", "AMC"]
        assert [r.symbol for r in validator.high_confidence()] == ["GME"]

    def test_stats_track_latest_validation_per_symbol(self, validator, window, make_signal):
        assert validator.stats()["symbols_validated"] == 0

        window.add_many(
            [
                make_signal("Reddit", "GME", confidence=90),
                make_signal("Finviz", "GME", confidence=90),
                make_signal("Reddit", "AMC", confidence=50),
            ]
        )
        validator.validate_all()
        validator.validate("GME")

        stats = validator.stats()

        assert stats["symbols_validated"] == 2
        assert stats["by_risk"]["HIGH"] == 1
        assert stats["by_recommendation"]["AVOID"] == 1
        assert stats["average_confidence"] == 70.0
