"""
Unit tests for volume analysis.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from augur.models.market_data import Candle
from augur.models.patterns import PatternSignal
from augur.models.volume import PriceVolumeTrend, VolumePatternType
from augur.strategies.volume_analyzer import (
    VolumeAnalyzer,
    on_balance_volume,
    pearson_correlation,
)


BASE_TIME = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def build_candles(closes, volumes=None):
    candles = []
    previous = closes[0]
    for i, close in enumerate(closes):
        volume = volumes[i] if volumes is not None else None
        candles.append(Candle(
            symbol="R_75",
            timestamp=BASE_TIME + timedelta(minutes=i),
            open=Decimal(str(previous)),
            high=Decimal(str(max(previous, close) + 0.5)),
            low=Decimal(str(min(previous, close) - 0.5)),
            close=Decimal(str(close)),
            volume=Decimal(str(volume)) if volume is not None else None,
        ))
        previous = close
    return candles


class TestVolumeHelpers:

    def test_on_balance_volume(self):
        obv = on_balance_volume([10, 11, 11, 10, 12], [100, 200, 300, 400, 500])
        assert obv == [0.0, 200.0, 200.0, -200.0, 300.0]

    def test_correlation(self):
        assert pearson_correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
        assert pearson_correlation([1, 2, 3], [6, 4, 2]) == pytest.approx(-1.0)
        assert pearson_correlation([1, 1, 1], [1, 2, 3]) == 0.0


class TestVolumeAnalyzer:
    """Test volume events and the profile."""

    def setup_method(self):
        self.analyzer = VolumeAnalyzer()

    def test_short_window_returns_defaults(self):
        analysis = self.analyzer.analyze(build_candles([500] * 5, [1000] * 5))
        assert analysis.patterns == []
        assert analysis.vwap is None

    def test_selling_climax_is_bullish(self):
        closes = [500] * 11 + [499]
        volumes = [1000] * 11 + [2600]
        analysis = self.analyzer.analyze(build_candles(closes, volumes))

        types = [p.pattern_type for p in analysis.patterns]
        assert types[0] == VolumePatternType.SELLING_CLIMAX
        assert VolumePatternType.VOLUME_SPIKE in types
        assert analysis.primary_pattern.pattern_type == VolumePatternType.SELLING_CLIMAX
        assert analysis.primary_pattern.signal == PatternSignal.BULLISH
        assert analysis.primary_pattern.strength == 1.0
        assert analysis.volume_confirmation is True

    def test_buying_climax_is_bearish(self):
        closes = [500] * 11 + [501]
        volumes = [1000] * 11 + [1800]
        analysis = self.analyzer.analyze(build_candles(closes, volumes))

        assert analysis.primary_pattern.pattern_type == VolumePatternType.BUYING_CLIMAX
        assert analysis.primary_pattern.signal == PatternSignal.BEARISH
        assert analysis.primary_pattern.strength == pytest.approx(0.9)
        # 1.8x is below the spike multiplier
        assert VolumePatternType.VOLUME_SPIKE not in [p.pattern_type for p in analysis.patterns]

    def test_flat_volume_bar_is_not_a_climax(self):
        closes = [500] * 12
        volumes = [1000] * 11 + [2600]
        types = [p.pattern_type for p in self.analyzer.analyze(build_candles(closes, volumes)).patterns]
        assert VolumePatternType.SELLING_CLIMAX not in types
        assert VolumePatternType.BUYING_CLIMAX not in types

    def test_missing_volume_uses_constant_default(self):
        closes = [500 + i for i in range(12)]
        analysis = self.analyzer.analyze(build_candles(closes))

        assert analysis.patterns == []
        assert analysis.volume_ratio == pytest.approx(1.0)
        assert analysis.volume_sma == pytest.approx(1000.0)
        assert analysis.price_volume_trend == PriceVolumeTrend.WEAK_RALLY

    def test_bearish_divergence(self):
        closes = [500 + 2 * i for i in range(12)]
        volumes = [2000 - 120 * i for i in range(12)]
        analysis = self.analyzer.analyze(build_candles(closes, volumes))

        assert analysis.divergence == PatternSignal.BEARISH
        assert analysis.price_volume_correlation < 0

    def test_rally_on_rising_volume_confirms(self):
        closes = [500 + 2 * i for i in range(12)]
        volumes = [1000 + 150 * i for i in range(12)]
        analysis = self.analyzer.analyze(build_candles(closes, volumes))

        assert analysis.price_volume_trend == PriceVolumeTrend.BULLISH_CONFIRMATION
        assert analysis.obv_slope > 0

    def test_volume_profile(self):
        closes = [100 + i for i in range(20)]
        volumes = [1000] * 19 + [10000]
        profile = self.analyzer.analyze(build_candles(closes, volumes)).profile

        assert len(profile.bins) == 10
        assert profile.total_volume == pytest.approx(29000)
        assert profile.point_of_control == pytest.approx(118.05)
        assert profile.value_area_high == pytest.approx(119.0)
        assert profile.high_volume_nodes == [pytest.approx(118.05)]

    def test_profile_needs_twenty_candles(self):
        closes = [100 + i for i in range(15)]
        profile = self.analyzer.analyze(build_candles(closes, [1000] * 15)).profile
        assert profile.bins == []
        assert profile.point_of_control is None
