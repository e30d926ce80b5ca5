"""
Unit tests for the ensemble combiner and its guards.
"""

import pytest

from augur.ensemble import CombinationMode, EnsembleCombiner, RiskProfile
from augur.models.features import IndicatorSet
from augur.models.signals import Direction, PredictionSignal, RejectionReason, SignalSource


def stat(direction: Direction, confidence: float) -> PredictionSignal:
    return PredictionSignal(direction=direction, confidence=confidence, rationale="stat", source=SignalSource.STATISTICAL)


def ext(direction: Direction, confidence: float) -> PredictionSignal:
    return PredictionSignal(direction=direction, confidence=confidence, rationale="ext", source=SignalSource.EXTERNAL)


class TestEnsembleCombiner:
    """Test the weighted merge."""

    def setup_method(self):
        self.combiner = EnsembleCombiner(RiskProfile(name="conservative"))
        self.indicators = IndicatorSet(price=1000.0)

    def test_agreement_bonus_and_clamp(self):
        result = self.combiner.combine(stat(Direction.UP, 0.8), ext(Direction.UP, 0.95), self.indicators)

        assert result.mode == CombinationMode.AGREEMENT
        assert result.raw_confidence == pytest.approx(0.6 * 0.95 + 0.4 * 0.8 + 0.05)
        assert result.signal.confidence == 0.85
        assert result.signal.source == SignalSource.ENSEMBLE
        assert result.reasons == []

    def test_disagreement_keeps_more_confident_side(self):
        result = self.combiner.combine(stat(Direction.UP, 0.7), ext(Direction.DOWN, 0.8), self.indicators)

        assert result.mode == CombinationMode.DISAGREEMENT
        assert result.signal.direction == Direction.DOWN
        assert result.raw_confidence == pytest.approx((0.6 * 0.8 + 0.4 * 0.7) * 0.7)

    def test_disagreement_statistical_can_win(self):
        result = self.combiner.combine(stat(Direction.UP, 0.9), ext(Direction.DOWN, 0.6), self.indicators)
        assert result.signal.direction == Direction.UP

    def test_disagreement_tie_goes_to_external(self):
        result = self.combiner.combine(stat(Direction.UP, 0.7), ext(Direction.DOWN, 0.7), self.indicators)
        assert result.signal.direction == Direction.DOWN

    def test_neutral_statistical_follows_external(self):
        result = self.combiner.combine(
            PredictionSignal.neutral(SignalSource.STATISTICAL), ext(Direction.UP, 0.8), self.indicators
        )

        assert result.mode == CombinationMode.STATISTICAL_NEUTRAL
        assert result.signal.direction == Direction.UP
        assert result.raw_confidence == pytest.approx(0.6 * 0.8 + 0.4 * 0.5)
        assert result.external_used

    @pytest.mark.parametrize("external", [None, PredictionSignal.neutral(SignalSource.EXTERNAL)])
    def test_statistical_only(self, external):
        result = self.combiner.combine(stat(Direction.DOWN, 0.65), external, self.indicators)

        assert result.mode == CombinationMode.STATISTICAL_ONLY
        assert not result.external_used
        assert result.signal.direction == Direction.DOWN
        assert result.signal.source == SignalSource.STATISTICAL
        assert result.raw_confidence == pytest.approx(0.65)

    def test_raw_confidence_below_band_is_clamped_up(self):
        result = self.combiner.combine(stat(Direction.UP, 0.3), None, self.indicators)
        assert result.raw_confidence == pytest.approx(0.3)
        assert result.signal.confidence == 0.5

    def test_weights_from_config(self, temp_dir):
        import json
        from augur.config_manager import ConfigManager

        (temp_dir / "engine.json").write_text(json.dumps({
            "ensemble": {"external_weight": 0.5, "statistical_weight": 0.5, "agreement_bonus": 0.0},
        }))
        combiner = EnsembleCombiner(RiskProfile(name="conservative"), ConfigManager(temp_dir))
        result = combiner.combine(stat(Direction.UP, 0.6), ext(Direction.UP, 0.8), self.indicators)
        assert result.raw_confidence == pytest.approx(0.7)


class TestGuards:
    """Test the vetoes on a combined call."""

    def setup_method(self):
        self.combiner = EnsembleCombiner(RiskProfile(name="conservative"))

    def test_rsi_exhaustion_on_up_call(self):
        result = self.combiner.combine(
            stat(Direction.UP, 0.7), ext(Direction.UP, 0.9), IndicatorSet(rsi=85, price=1000.0)
        )
        assert result.reasons == [RejectionReason.RSI_EXHAUSTION]

    def test_rsi_exhaustion_on_down_call(self):
        reasons = self.combiner.guards(
            Direction.DOWN, stat(Direction.DOWN, 0.7), None, IndicatorSet(rsi=15, price=1000.0)
        )
        assert RejectionReason.RSI_EXHAUSTION in reasons

    def test_oversold_up_call_is_fine(self):
        reasons = self.combiner.guards(Direction.UP, stat(Direction.UP, 0.7), None, IndicatorSet(rsi=15, price=1000.0))
        assert reasons == []

    def test_macd_conflict_needs_material_histogram(self):
        strong = IndicatorSet(macd_histogram=-1.0, price=1000.0)
        weak = IndicatorSet(macd_histogram=-0.1, price=1000.0)

        assert self.combiner.guards(Direction.UP, stat(Direction.UP, 0.7), None, strong) == [
            RejectionReason.MACD_CONFLICT
        ]
        assert self.combiner.guards(Direction.UP, stat(Direction.UP, 0.7), None, weak) == []

    def test_macd_guard_skipped_without_price(self):
        indicators = IndicatorSet(macd_histogram=-1.0)
        assert self.combiner.guards(Direction.UP, stat(Direction.UP, 0.7), None, indicators) == []

    def test_low_signal_confidence(self):
        indicators = IndicatorSet(price=1000.0)

        both_low = self.combiner.guards(Direction.UP, stat(Direction.UP, 0.55), ext(Direction.UP, 0.58), indicators)
        one_strong = self.combiner.guards(Direction.UP, stat(Direction.UP, 0.55), ext(Direction.UP, 0.7), indicators)
        stat_only = self.combiner.guards(Direction.UP, stat(Direction.UP, 0.55), None, indicators)

        assert both_low == [RejectionReason.LOW_SIGNAL_CONFIDENCE]
        assert one_strong == []
        assert stat_only == [RejectionReason.LOW_SIGNAL_CONFIDENCE]
