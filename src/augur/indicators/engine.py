"""
Technical Indicator Engine

Pure functions over close/high/low series plus an IndicatorEngine that
bundles them into an IndicatorSet for the latest bar. Periods come from
the per-symbol parameter table; shared lookbacks come from the engine
configuration file.

Every function returns a neutral value instead of failing when the
series is shorter than its window:
- RSI 50, Stochastic 50, Stochastic RSI 50
- MACD line/signal/histogram 0
- ATR 0, Bollinger position 0.5
- divergence 0, momentum 0, volatility rank 0.5, trend efficiency 0
"""

import math
from typing import List, Optional, Sequence, Tuple

from ..config_manager import ConfigManager, get_config_manager
from ..logger import get_logger
from ..models.features import IndicatorSet
from ..models.market_data import Candle
from ..models.symbols import get_symbol_spec


logger = get_logger(__name__)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def sma(values: Sequence[float], period: int) -> float:
    """Simple moving average of the last `period` values; last value when too short."""
    if not values:
        return 0.0
    if len(values) < period:
        return float(values[-1])
    return sum(values[-period:]) / period


def ema_series(values: Sequence[float], period: int) -> List[float]:
    """
    Exponential moving average seeded with the SMA of the first `period` values.

    The returned list is aligned to values[period - 1:].
    """
    if period <= 0 or len(values) < period:
        return []
    alpha = 2.0 / (period + 1)
    current = sum(values[:period]) / period
    series = [current]
    for value in values[period:]:
        current = alpha * value + (1 - alpha) * current
        series.append(current)
    return series


def ema(values: Sequence[float], period: int) -> float:
    """Latest EMA value; falls back to the last price for short series."""
    series = ema_series(values, period)
    if series:
        return series[-1]
    return float(values[-1]) if values else 0.0


def rsi_series(closes: Sequence[float], period: int = 14) -> List[float]:
    """
    RSI with Wilder smoothing, one value per bar from index `period` on.

    The first averages are simple means of the first `period` changes.
    A zero average loss yields 100.
    """
    if period <= 0 or len(closes) < period + 1:
        return []

    changes = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    gains = [max(c, 0.0) for c in changes]
    losses = [max(-c, 0.0) for c in changes]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    def value(g: float, l: float) -> float:
        if l == 0:
            return 100.0
        rs = g / l
        return 100.0 - 100.0 / (1.0 + rs)

    series = [value(avg_gain, avg_loss)]
    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        series.append(value(avg_gain, avg_loss))
    return series


def rsi(closes: Sequence[float], period: int = 14) -> float:
    series = rsi_series(closes, period)
    return series[-1] if series else 50.0


def macd_series(closes: Sequence[float], fast: int = 12, slow: int = 26) -> List[float]:
    """MACD line per bar, aligned to closes[slow - 1:]."""
    slow_ema = ema_series(closes, slow)
    fast_ema = ema_series(closes, fast)
    if not slow_ema:
        return []
    offset = slow - fast
    return [f - s for f, s in zip(fast_ema[offset:], slow_ema)]


def macd(closes: Sequence[float], fast: int = 12, slow: int = 26, signal: int = 9) -> Tuple[float, float, float]:
    """
    MACD line, signal line and histogram at the latest bar.

    Returns zeros when fewer than slow + signal closes are available.
    """
    if len(closes) < slow + signal:
        return 0.0, 0.0, 0.0
    line = macd_series(closes, fast, slow)
    signal_series = ema_series(line, signal)
    if not signal_series:
        return 0.0, 0.0, 0.0
    macd_line = line[-1]
    signal_line = signal_series[-1]
    return macd_line, signal_line, macd_line - signal_line


def true_ranges(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]) -> List[float]:
    """True range for every bar after the first."""
    ranges = []
    for i in range(1, len(closes)):
        prev_close = closes[i - 1]
        ranges.append(max(
            highs[i] - lows[i],
            abs(highs[i] - prev_close),
            abs(lows[i] - prev_close),
        ))
    return ranges


def atr_series(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> List[float]:
    """Wilder-smoothed ATR, aligned to closes[period:]."""
    ranges = true_ranges(highs, lows, closes)
    if period <= 0 or len(ranges) < period:
        return []
    current = sum(ranges[:period]) / period
    series = [current]
    for tr in ranges[period:]:
        current = (current * (period - 1) + tr) / period
        series.append(current)
    return series


def atr(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> float:
    series = atr_series(highs, lows, closes, period)
    return series[-1] if series else 0.0


def bollinger(closes: Sequence[float], period: int = 20, num_std: float = 2.0) -> Tuple[float, float, float, float, float]:
    """
    Bollinger bands with population standard deviation.

    Returns:
        (upper, middle, lower, position, width); position is clamped to
        [0, 1] and is 0.5 when the band has no width.
    """
    if not closes:
        return 0.0, 0.0, 0.0, 0.5, 0.0
    price = float(closes[-1])
    if len(closes) < period:
        return price, price, price, 0.5, 0.0

    window = closes[-period:]
    middle = sum(window) / period
    variance = sum((c - middle) ** 2 for c in window) / period
    std = math.sqrt(variance)
    upper = middle + num_std * std
    lower = middle - num_std * std

    band = upper - lower
    position = _clamp((price - lower) / band, 0.0, 1.0) if band > 0 else 0.5
    width = band / middle if middle > 0 else 0.0
    return upper, middle, lower, position, width


def bollinger_width_history(closes: Sequence[float], period: int, num_std: float, history: int) -> List[float]:
    """Band width for each of the last `history` windows, oldest first."""
    widths = []
    start = max(period, len(closes) - history + 1)
    for end in range(start, len(closes) + 1):
        widths.append(bollinger(closes[:end], period, num_std)[4])
    return widths


def percentile(values: Sequence[float], pct: float) -> float:
    """Linear-interpolated percentile, pct in [0, 100]."""
    if not values:
        return 0.0
    ordered = sorted(values)
    if len(ordered) == 1:
        return ordered[0]
    rank = (len(ordered) - 1) * pct / 100.0
    lower = int(math.floor(rank))
    upper = min(lower + 1, len(ordered) - 1)
    fraction = rank - lower
    return ordered[lower] + (ordered[upper] - ordered[lower]) * fraction


def is_squeeze(widths: Sequence[float], pct: float = 20) -> bool:
    """Current width at or below the pct-th percentile of its history."""
    if len(widths) < 2:
        return False
    return widths[-1] <= percentile(widths, pct)


def stochastic(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> float:
    """Stochastic %K; 50 for short series or a flat range."""
    if len(closes) < period:
        return 50.0
    highest = max(highs[-period:])
    lowest = min(lows[-period:])
    if highest == lowest:
        return 50.0
    return _clamp((closes[-1] - lowest) / (highest - lowest) * 100.0, 0.0, 100.0)


def williams_r(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> float:
    return stochastic(highs, lows, closes, period) - 100.0


def stoch_rsi(rsi_values: Sequence[float], period: int = 14) -> float:
    """Stochastic oscillator applied to the RSI series."""
    if len(rsi_values) < period:
        return 50.0
    window = rsi_values[-period:]
    highest, lowest = max(window), min(window)
    if highest == lowest:
        return 50.0
    return _clamp((window[-1] - lowest) / (highest - lowest) * 100.0, 0.0, 100.0)


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope of values against their index."""
    n = len(values)
    if n < 2:
        return 0.0
    mean_x = (n - 1) / 2.0
    mean_y = sum(values) / n
    numerator = sum((i - mean_x) * (v - mean_y) for i, v in enumerate(values))
    denominator = sum((i - mean_x) ** 2 for i in range(n))
    return numerator / denominator if denominator else 0.0


def divergence(prices: Sequence[float], oscillator: Sequence[float], lookback: int = 10) -> int:
    """
    +1 for bullish divergence (price falling, oscillator rising), -1 for
    bearish divergence, 0 otherwise.
    """
    if len(prices) < lookback or len(oscillator) < lookback:
        return 0
    price_slope = linear_slope(prices[-lookback:])
    osc_slope = linear_slope(oscillator[-lookback:])
    if price_slope < 0 and osc_slope > 0:
        return 1
    if price_slope > 0 and osc_slope < 0:
        return -1
    return 0


def momentum(closes: Sequence[float], period: int = 10) -> float:
    """Rate of change over `period` bars, in percent."""
    if len(closes) <= period:
        return 0.0
    base = closes[-1 - period]
    if base == 0:
        return 0.0
    return (closes[-1] - base) / base * 100.0


def volatility_rank(history: Sequence[float], lookback: int = 100) -> float:
    """Percentile rank of the latest value within its trailing history."""
    window = list(history[-lookback:])
    if len(window) < 2:
        return 0.5
    current = window[-1]
    below = sum(1 for v in window if v < current)
    equal = sum(1 for v in window if v == current)
    return _clamp((below + 0.5 * equal) / len(window), 0.0, 1.0)


def trend_efficiency(closes: Sequence[float], lookback: int = 20, shift: int = 0) -> float:
    """
    Signed net move over total absolute move across `lookback` bars,
    ending `shift` bars before the latest one. Range [-1, 1].
    """
    end = len(closes) - shift
    if lookback <= 0 or end < lookback + 1:
        return 0.0
    window = closes[end - lookback - 1:end]
    total = sum(abs(window[i] - window[i - 1]) for i in range(1, len(window)))
    if total == 0:
        return 0.0
    return _clamp((window[-1] - window[0]) / total, -1.0, 1.0)


class IndicatorEngine:
    """
    Computes the full IndicatorSet for the latest bar of a candle window.

    Symbol-specific periods come from the symbol table; shared lookbacks
    from the 'indicators' section of engine.json.
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None, allow_unknown_symbols: bool = True):
        self.config_manager = config_manager or get_config_manager()
        self.allow_unknown_symbols = allow_unknown_symbols

        def setting(key: str, default: int) -> int:
            return self.config_manager.get_int('engine', 'indicators', key, default=default)

        self.stochastic_period = setting('stochastic_period', 14)
        self.stoch_rsi_period = setting('stoch_rsi_period', 14)
        self.divergence_lookback = setting('divergence_lookback', 10)
        self.momentum_period = setting('momentum_period', 10)
        self.squeeze_percentile = setting('squeeze_percentile', 20)
        self.squeeze_history = setting('squeeze_history', 50)
        self.volatility_rank_lookback = setting('volatility_rank_lookback', 100)
        self.trend_lookback = setting('trend_lookback', 20)
        self.momentum_shift = setting('momentum_shift', 5)

    def compute(self, candles: Sequence[Candle], symbol: str) -> IndicatorSet:
        """
        Compute indicators at the latest candle.

        Args:
            candles: Candle window, oldest first
            symbol: Instrument whose parameter row selects the periods

        Returns:
            IndicatorSet; neutral defaults for an empty window
        """
        if not candles:
            return IndicatorSet.neutral()

        params = get_symbol_spec(symbol, allow_unknown=self.allow_unknown_symbols).parameters

        closes = [float(c.close) for c in candles]
        highs = [float(c.high) for c in candles]
        lows = [float(c.low) for c in candles]
        price = closes[-1]

        rsi_values = rsi_series(closes, params.rsi_period)
        macd_line, macd_signal, macd_hist = macd(closes, params.macd_fast, params.macd_slow, params.macd_signal)
        macd_values = macd_series(closes, params.macd_fast, params.macd_slow)

        atr_values = atr_series(highs, lows, closes, params.atr_period)
        atr_value = atr_values[-1] if atr_values else 0.0
        # normalized ATR history aligned to the closes it was computed at
        offset = len(closes) - len(atr_values)
        atr_normalized_history = [
            a / closes[offset + i] * 100.0 for i, a in enumerate(atr_values) if closes[offset + i] > 0
        ]
        atr_normalized = atr_value / price * 100.0 if price > 0 else 0.0

        upper, middle, lower, position, width = bollinger(closes, params.bollinger_period, params.bollinger_std)
        widths = bollinger_width_history(closes, params.bollinger_period, params.bollinger_std, self.squeeze_history)

        stoch = stochastic(highs, lows, closes, self.stochastic_period)

        indicators = IndicatorSet(
            rsi=_clamp(rsi_values[-1], 0.0, 100.0) if rsi_values else 50.0,
            macd_line=macd_line,
            macd_signal=macd_signal,
            macd_histogram=macd_hist,
            atr=max(atr_value, 0.0),
            atr_normalized=max(atr_normalized, 0.0),
            bollinger_upper=upper,
            bollinger_middle=middle,
            bollinger_lower=lower,
            bollinger_position=position,
            bollinger_width=max(width, 0.0),
            bollinger_squeeze=is_squeeze(widths, self.squeeze_percentile),
            stochastic=stoch,
            williams_r=stoch - 100.0,
            stoch_rsi=stoch_rsi(rsi_values, self.stoch_rsi_period),
            rsi_divergence=divergence(closes, rsi_values, self.divergence_lookback),
            macd_divergence=divergence(closes, macd_values, self.divergence_lookback),
            momentum=momentum(closes, self.momentum_period),
            volatility_rank=volatility_rank(atr_normalized_history, self.volatility_rank_lookback),
            trend_efficiency=trend_efficiency(closes, self.trend_lookback),
            trend_efficiency_prev=trend_efficiency(closes, self.trend_lookback, self.momentum_shift),
            price=price,
            bars_used=len(closes),
        )

        logger.debug(
            f"{symbol} indicators: RSI={indicators.rsi:.2f} "
            f"MACD_hist={indicators.macd_histogram:.5f} BB_pos={indicators.bollinger_position:.2f}"
        )
        return indicators
