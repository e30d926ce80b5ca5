"""
Multi-Timeframe Analysis Engine

Resamples one base candle series into coarser timeframes and reads trend,
strength, momentum and volatility on each, then aggregates them into a
confluence score weighted toward the middle timeframes.

Key features:
- Resampling by integer bucket (epoch // bucket seconds) with OHLCV rules
- Neutral default view for timeframes with fewer than 10 resampled bars
- Weighted confluence, dominant trend and alignment across timeframes
"""

import statistics
from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from ..config_manager import ConfigManager, get_config_manager
from ..exceptions import ConfigError
from ..logger import get_logger
from ..models.features import TrendState
from ..models.market_data import Candle
from ..models.timeframes import MultiTimeframeAnalysis, TimeframeView


logger = get_logger(__name__)

DEFAULT_TIMEFRAMES = [1, 5, 15, 60, 240, 1440]
DEFAULT_WEIGHTS = {1: 0.10, 5: 0.15, 15: 0.20, 60: 0.25, 240: 0.20, 1440: 0.10}


def resample(candles: Sequence[Candle], minutes: int) -> List[Candle]:
    """
    Aggregate candles into `minutes`-wide buckets.

    open = first, close = last, high = max, low = min, volume = sum
    (None when no candle in the bucket carries volume).
    """
    if minutes <= 0:
        raise ValueError("minutes must be positive")
    bucket_seconds = minutes * 60

    buckets: Dict[int, List[Candle]] = {}
    for candle in candles:
        buckets.setdefault(candle.epoch // bucket_seconds, []).append(candle)

    resampled = []
    for key in sorted(buckets):
        group = buckets[key]
        volumes = [c.volume for c in group if c.volume is not None]
        resampled.append(Candle(
            symbol=group[0].symbol,
            timestamp=datetime.fromtimestamp(key * bucket_seconds, tz=timezone.utc),
            open=group[0].open,
            high=max(c.high for c in group),
            low=min(c.low for c in group),
            close=group[-1].close,
            volume=sum(volumes, Decimal('0')) if volumes else None,
        ))
    return resampled


def _returns(closes: Sequence[float]) -> List[float]:
    return [(closes[i] - closes[i - 1]) / closes[i - 1] for i in range(1, len(closes)) if closes[i - 1] != 0]


def _sma(values: Sequence[float], period: int) -> float:
    if len(values) < period:
        return values[-1]
    return sum(values[-period:]) / period


def determine_trend(closes: Sequence[float]) -> TrendState:
    """Trend from price against SMA5/SMA10 and the net percent change of the series."""
    if len(closes) < 5:
        return TrendState.SIDEWAYS
    price = closes[-1]
    sma5 = _sma(closes, 5)
    sma10 = _sma(closes, min(10, len(closes)))
    change = (price - closes[0]) / closes[0] * 100 if closes[0] else 0.0

    if price > sma5 and sma5 > sma10 and change > 1:
        return TrendState.STRONG_UP
    if price > sma5 and change > 0.5:
        return TrendState.WEAK_UP
    if price < sma5 and sma5 < sma10 and change < -1:
        return TrendState.STRONG_DOWN
    if price < sma5 and change < -0.5:
        return TrendState.WEAK_DOWN
    return TrendState.SIDEWAYS


def trend_strength(closes: Sequence[float]) -> float:
    """Directional consistency of returns scaled by (1 - return std)."""
    returns = _returns(closes)
    if not returns:
        return 0.5
    positive = sum(1 for r in returns if r > 0)
    negative = sum(1 for r in returns if r < 0)
    consistency = max(positive, negative) / len(returns)
    std = statistics.pstdev(returns)
    return max(0.0, min(1.0, consistency * (1 - std)))


def timeframe_confidence(candles: Sequence[Candle], default_volume: float = 1000.0) -> float:
    """Mean of volume consistency, price consistency and data sufficiency."""
    volumes = [float(c.volume) if c.volume else default_volume for c in candles]
    mean_volume = statistics.fmean(volumes)
    volume_consistency = max(0.0, 1 - statistics.pstdev(volumes) / (mean_volume or 1))

    abs_returns = [abs(r) for r in _returns([float(c.close) for c in candles])]
    mean_return = statistics.fmean(abs_returns) if abs_returns else 0.0
    price_consistency = max(0.0, 1 - mean_return * 100)

    sufficiency = min(1.0, len(candles) / 20)
    return max(0.0, min(1.0, (volume_consistency + price_consistency + sufficiency) / 3))


class MultiTimeframeAnalyzer:
    """
    Confluence analysis across resampled timeframes.

    Weights come from the 'multi_timeframe' section of engine.json, keyed
    by minutes; they are validated and normalized over the requested set.
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None, weights: Optional[Dict[int, float]] = None):
        config = config_manager or get_config_manager()
        self.min_bars = config.get_int('engine', 'multi_timeframe', 'min_bars', default=10)
        self.default_volume = config.get_float('engine', 'volume', 'default_volume', default=1000.0)

        if weights is None:
            raw = config.get('engine', 'multi_timeframe', 'weights', default=None)
            weights = {int(k): float(v) for k, v in raw.items()} if raw else dict(DEFAULT_WEIGHTS)
        if any(w < 0 for w in weights.values()) or sum(weights.values()) <= 0:
            raise ConfigError(f"Invalid timeframe weights: {weights}")
        self.weights = weights

    def normalized_weights(self, timeframes: Sequence[int]) -> Dict[int, float]:
        """Weights for the requested timeframes, summing to 1."""
        fallback = 1.0 / len(timeframes)
        raw = {m: self.weights.get(m, fallback) for m in timeframes}
        total = sum(raw.values())
        if total <= 0:
            return {m: fallback for m in timeframes}
        return {m: w / total for m, w in raw.items()}

    def analyze_timeframe(self, candles: Sequence[Candle], minutes: int) -> TimeframeView:
        """Read one timeframe; neutral default when too few bars."""
        bars = resample(candles, minutes)
        if len(bars) < self.min_bars:
            return TimeframeView(minutes=minutes, bars=len(bars), is_default=True)

        closes = [float(c.close) for c in bars]
        recent = bars[-10:]
        returns = _returns(closes)

        past = closes[-6] if len(closes) > 5 else closes[0]
        momentum = (closes[-1] - past) / past * 100 if past else 0.0

        return TimeframeView(
            minutes=minutes,
            trend=determine_trend(closes),
            strength=trend_strength(closes),
            momentum=momentum,
            volatility=statistics.pstdev(returns) * 100 if returns else 0.0,
            support=min(float(c.low) for c in recent),
            resistance=max(float(c.high) for c in recent),
            confidence=timeframe_confidence(bars, self.default_volume),
            bars=len(bars),
        )

    def analyze(self, candles: Sequence[Candle], timeframes: Optional[Sequence[int]] = None) -> MultiTimeframeAnalysis:
        """
        Analyze every requested timeframe and aggregate.

        Args:
            candles: Base candle series, oldest first
            timeframes: Timeframes in minutes (default 1/5/15/60/240/1440)
        """
        # repeated timeframes would be weighted twice
        timeframes = list(dict.fromkeys(timeframes or DEFAULT_TIMEFRAMES))
        if not candles or not timeframes:
            return MultiTimeframeAnalysis()

        views = [self.analyze_timeframe(candles, m) for m in timeframes]
        weights = self.normalized_weights(timeframes)

        confluence = sum(v.strength * weights[v.minutes] for v in views)

        live = [v for v in views if not v.is_default]
        distribution = Counter(v.trend.value for v in live)
        if live:
            dominant_label, count = distribution.most_common(1)[0]
            dominant = TrendState(dominant_label)
            alignment = count / len(live)
        else:
            dominant, alignment = TrendState.SIDEWAYS, 0.5

        strengths = [v.strength for v in views]
        confluence = max(0.0, min(1.0, confluence))

        if confluence > 0.8:
            recommendation = "STRONG_CONFLUENCE"
        elif confluence > 0.6:
            recommendation = "MODERATE_CONFLUENCE"
        elif confluence > 0.4:
            recommendation = "WEAK_CONFLUENCE"
        else:
            recommendation = "MIXED_SIGNALS"

        analysis = MultiTimeframeAnalysis(
            views=views,
            confluence=confluence,
            dominant_trend=dominant,
            alignment=alignment,
            trend_distribution=dict(distribution),
            strength_average=statistics.fmean(strengths),
            strength_min=min(strengths),
            strength_max=max(strengths),
            recommendation=recommendation,
        )
        logger.debug(
            f"MTF: {len(live)}/{len(views)} live views, confluence={confluence:.2f}, "
            f"dominant={dominant.value}"
        )
        return analysis
