"""
Unit tests for regime classification, spike timing and session strength.
"""

from datetime import datetime, timezone

import pytest

from augur.exceptions import UnknownSymbolError
from augur.indicators.regime import RegimeClassifier, analyze_spike, session_strength
from augur.models.features import (
    IndicatorSet,
    MomentumState,
    OverallRegime,
    SpikeProximity,
    TrendState,
    VolatilityState,
)


class TestRegimeClassifier:
    """Test the mapping from indicators to regime labels."""

    def setup_method(self):
        self.classifier = RegimeClassifier()

    @pytest.mark.parametrize("rank,expected", [
        (0.1, VolatilityState.LOW),
        (0.5, VolatilityState.NORMAL),
        (0.8, VolatilityState.HIGH),
        (0.97, VolatilityState.EXTREME),
    ])
    def test_volatility_bands(self, rank, expected):
        assert self.classifier.volatility_state(rank) == expected

    @pytest.mark.parametrize("efficiency,expected", [
        (0.7, TrendState.STRONG_UP),
        (0.3, TrendState.WEAK_UP),
        (0.0, TrendState.SIDEWAYS),
        (-0.3, TrendState.WEAK_DOWN),
        (-0.7, TrendState.STRONG_DOWN),
    ])
    def test_trend_bands(self, efficiency, expected):
        assert self.classifier.trend_state(efficiency) == expected

    def test_momentum_states(self):
        assert self.classifier.momentum_state(0.7, 0.3) == MomentumState.ACCELERATING
        assert self.classifier.momentum_state(0.3, 0.7) == MomentumState.DECELERATING
        assert self.classifier.momentum_state(0.5, 0.45) == MomentumState.STEADY

    def test_trending_regime(self):
        indicators = IndicatorSet(trend_efficiency=0.7, trend_efficiency_prev=0.65, volatility_rank=0.5)
        regime = self.classifier.classify(indicators)

        assert regime.overall_regime == OverallRegime.TRENDING
        assert regime.direction_bias == 1
        # strong 0.4 + steady 0.2 + normal 0.2 + no opposing divergence 0.1
        assert regime.confluence_score == pytest.approx(0.9)

    def test_breakout_regime(self):
        indicators = IndicatorSet(bollinger_squeeze=True, trend_efficiency=0.5, trend_efficiency_prev=0.1)
        assert self.classifier.classify(indicators).overall_regime == OverallRegime.BREAKOUT

    def test_reversal_regime(self):
        indicators = IndicatorSet(trend_efficiency=0.7, trend_efficiency_prev=0.7, rsi_divergence=-1)
        regime = self.classifier.classify(indicators)

        assert regime.overall_regime == OverallRegime.REVERSAL
        assert regime.confluence_score == pytest.approx(0.8)

    def test_neutral_indicators_are_ranging(self):
        regime = self.classifier.classify(IndicatorSet.neutral())

        assert regime.overall_regime == OverallRegime.RANGING
        assert regime.trend_state == TrendState.SIDEWAYS
        assert regime.confluence_score == pytest.approx(0.5)

    def test_features_bundle(self):
        as_of = datetime(2024, 1, 15, 14, 0, tzinfo=timezone.utc)
        features = self.classifier.features(IndicatorSet.neutral(), "BOOM1000", ticks_since_spike=900, as_of=as_of)

        assert features.symbol == "BOOM1000"
        assert features.spike.applicable
        assert features.session_strength == 1.0


class TestSpikeAnalysis:
    """Test Boom/Crash spike proximity."""

    def test_not_applicable_for_volatility_index(self):
        analysis = analyze_spike("R_75", 500)
        assert analysis.applicable is False
        assert analysis.probability == 0.0

    @pytest.mark.parametrize("ticks,expected", [
        (100, SpikeProximity.SAFE),
        (700, SpikeProximity.WARNING),
        (900, SpikeProximity.DANGER),
        (990, SpikeProximity.IMMINENT),
    ])
    def test_proximity_bands(self, ticks, expected):
        assert analyze_spike("BOOM1000", ticks).proximity == expected

    def test_probability_centered_at_eighty_percent(self):
        assert analyze_spike("CRASH500", 400).probability == pytest.approx(0.5)
        assert analyze_spike("CRASH500", 100).probability < 0.05

    def test_unknown_symbol_rejected_when_defaults_disabled(self):
        with pytest.raises(UnknownSymbolError):
            analyze_spike("FOO_1", 10, allow_unknown=False)


class TestSessionStrength:
    """Test trading-session weights."""

    def test_missing_timestamp_is_neutral(self):
        assert session_strength(None) == 0.5

    def test_london_only(self):
        assert session_strength(datetime(2024, 1, 15, 10, tzinfo=timezone.utc)) == pytest.approx(0.4)

    def test_overlap_is_capped(self):
        # london + new_york + overlap
        assert session_strength(datetime(2024, 1, 15, 14, tzinfo=timezone.utc)) == 1.0

    def test_quiet_hour(self):
        assert session_strength(datetime(2024, 1, 15, 23, tzinfo=timezone.utc)) == 0.0
