"""
Unit tests for the technical indicator functions and IndicatorEngine.
"""

import pytest

from augur.indicators.engine import (
    IndicatorEngine,
    atr,
    bollinger,
    divergence,
    ema_series,
    is_squeeze,
    linear_slope,
    macd,
    momentum,
    percentile,
    rsi,
    sma,
    stoch_rsi,
    stochastic,
    trend_efficiency,
    volatility_rank,
    williams_r,
)
from augur.models.features import IndicatorSet


class TestMovingAverages:
    """Test SMA and EMA helpers."""

    def test_sma_uses_last_period_values(self):
        assert sma([1, 2, 3, 4], 2) == pytest.approx(3.5)

    def test_sma_short_series_returns_last_value(self):
        assert sma([5.0], 3) == 5.0
        assert sma([], 3) == 0.0

    def test_ema_series_seeded_with_sma(self):
        # alpha = 0.5, seed = mean(1, 2, 3)
        assert ema_series([1, 2, 3, 4, 5], 3) == pytest.approx([2.0, 3.0, 4.0])

    def test_ema_series_too_short(self):
        assert ema_series([1, 2], 3) == []


class TestOscillators:
    """Test RSI, MACD, Stochastic and related oscillators."""

    def test_rsi_monotonic_rise_is_100(self):
        assert rsi([float(i) for i in range(1, 30)]) == 100.0

    def test_rsi_monotonic_fall_is_0(self):
        assert rsi([float(i) for i in range(30, 1, -1)]) == pytest.approx(0.0)

    def test_rsi_short_series_is_neutral(self):
        assert rsi([1.0, 2.0, 3.0]) == 50.0

    def test_rsi_alternating_is_balanced(self):
        closes = [100.0 + (1 if i % 2 else -1) for i in range(41)]
        assert 40 < rsi(closes) < 60

    def test_macd_short_series_is_zero(self):
        assert macd([1.0] * 30) == (0.0, 0.0, 0.0)

    def test_macd_positive_in_uptrend(self, uptrend_closes):
        line, signal, histogram = macd(uptrend_closes)
        assert line > 0
        assert histogram == pytest.approx(line - signal)

    def test_stochastic_at_range_high(self):
        highs = [float(i + 1) for i in range(14)]
        lows = [float(i) for i in range(14)]
        closes = [float(i + 1) for i in range(14)]
        assert stochastic(highs, lows, closes) == pytest.approx(100.0)
        assert williams_r(highs, lows, closes) == pytest.approx(0.0)

    def test_stochastic_flat_range_is_neutral(self):
        flat = [10.0] * 20
        assert stochastic(flat, flat, flat) == 50.0

    def test_stoch_rsi_short_series_is_neutral(self):
        assert stoch_rsi([55.0, 60.0]) == 50.0


class TestVolatility:
    """Test ATR, Bollinger bands and volatility rank."""

    def test_atr_constant_range(self):
        closes = [10.0] * 20
        highs = [11.0] * 20
        lows = [9.0] * 20
        assert atr(highs, lows, closes) == pytest.approx(2.0)

    def test_atr_short_series_is_zero(self):
        assert atr([1.0], [1.0], [1.0]) == 0.0

    def test_bollinger_flat_series(self):
        upper, middle, lower, position, width = bollinger([100.0] * 25)
        assert upper == middle == lower == pytest.approx(100.0)
        assert position == 0.5
        assert width == 0.0

    def test_bollinger_position_near_top_after_jump(self):
        closes = [100.0 + (0.1 if i % 2 else -0.1) for i in range(19)] + [101.0]
        _, _, _, position, width = bollinger(closes)
        assert position > 0.9
        assert width > 0

    def test_percentile_interpolates(self):
        assert percentile([1, 2, 3, 4, 5], 50) == 3
        assert percentile([1, 2], 50) == pytest.approx(1.5)

    def test_squeeze_when_width_at_bottom(self):
        assert is_squeeze([0.05, 0.04, 0.03, 0.01]) is True
        assert is_squeeze([0.01, 0.02, 0.03, 0.05]) is False

    def test_volatility_rank(self):
        assert volatility_rank([1.0, 2.0, 3.0, 4.0]) == pytest.approx(0.875)
        assert volatility_rank([1.0]) == 0.5


class TestTrendStatistics:
    """Test slope, divergence, momentum and trend efficiency."""

    def test_linear_slope(self):
        assert linear_slope([1.0, 2.0, 3.0]) == pytest.approx(1.0)
        assert linear_slope([5.0]) == 0.0

    def test_bullish_divergence(self):
        prices = [float(20 - i) for i in range(10)]
        oscillator = [float(30 + i) for i in range(10)]
        assert divergence(prices, oscillator) == 1
        assert divergence(oscillator, prices) == -1

    def test_momentum_percent(self):
        assert momentum([100.0] * 10 + [110.0], 10) == pytest.approx(10.0)
        assert momentum([100.0] * 5, 10) == 0.0

    def test_trend_efficiency_straight_line(self):
        closes = [float(i) for i in range(30)]
        assert trend_efficiency(closes, 20) == pytest.approx(1.0)
        assert trend_efficiency(list(reversed(closes)), 20) == pytest.approx(-1.0)

    def test_trend_efficiency_short_series(self):
        assert trend_efficiency([1.0, 2.0], 20) == 0.0


class TestIndicatorEngine:
    """Test the IndicatorSet bundle."""

    def setup_method(self):
        self.engine = IndicatorEngine()

    def test_empty_window_is_neutral(self):
        assert self.engine.compute([], "R_75") == IndicatorSet.neutral()

    def test_uptrend(self, candle_factory, uptrend_closes):
        candles = candle_factory(uptrend_closes)
        indicators = self.engine.compute(candles, "R_75")

        assert indicators.rsi > 50
        assert indicators.macd_line > 0
        assert indicators.trend_efficiency > 0
        assert indicators.bars_used == len(candles)
        assert indicators.price == pytest.approx(float(candles[-1].close))
        assert indicators.williams_r == pytest.approx(indicators.stochastic - 100)

    def test_downtrend(self, candle_factory, downtrend_closes):
        indicators = self.engine.compute(candle_factory(downtrend_closes), "R_75")

        assert indicators.rsi < 50
        assert indicators.macd_line < 0
        assert indicators.trend_efficiency < 0

    def test_short_window_uses_defaults(self, candle_factory):
        indicators = self.engine.compute(candle_factory([500.0, 501.0, 502.0]), "R_75")

        assert indicators.rsi == 50.0
        assert indicators.macd_histogram == 0.0
        assert indicators.bollinger_position == 0.5
