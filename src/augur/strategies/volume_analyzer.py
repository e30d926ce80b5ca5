"""
Volume Analysis

On-balance volume, VWAP, volume averages, a price/volume profile and the
volume events (climaxes, divergences, spikes, trends) of a candle window.
Synthetic indices often carry no volume; missing values are replaced by
a constant default so the price-side logic still runs.
"""

import math
from typing import List, Optional, Sequence

from ..config_manager import ConfigManager, get_config_manager
from ..indicators.engine import linear_slope
from ..logger import get_logger
from ..models.market_data import Candle
from ..models.patterns import PatternSignal
from ..models.volume import (
    PriceVolumeTrend,
    VolumeAnalysis,
    VolumeBin,
    VolumePattern,
    VolumePatternType,
    VolumeProfile,
)


logger = get_logger(__name__)

MIN_CANDLES = 10
MIN_PROFILE_CANDLES = 20
TRAILING_BARS = 5
PRICE_SLOPE_THRESHOLD = 0.05  # percent of mean price per bar
VOLUME_SLOPE_THRESHOLD = 0.05  # fraction of mean volume per bar


def _relative_slope(values: Sequence[float]) -> float:
    mean = sum(values) / len(values) if values else 0.0
    if mean == 0:
        return 0.0
    return linear_slope(values) / mean


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Pearson correlation; 0 when either series is constant."""
    n = len(xs)
    if n != len(ys) or n < 2:
        return 0.0
    mean_x = sum(xs) / n
    mean_y = sum(ys) / n
    cov = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    var_x = sum((x - mean_x) ** 2 for x in xs)
    var_y = sum((y - mean_y) ** 2 for y in ys)
    if var_x == 0 or var_y == 0:
        return 0.0
    return max(-1.0, min(1.0, cov / math.sqrt(var_x * var_y)))


def on_balance_volume(closes: Sequence[float], volumes: Sequence[float]) -> List[float]:
    """OBV series: +volume on up closes, -volume on down closes, unchanged on flat."""
    obv = [0.0]
    for i in range(1, len(closes)):
        if closes[i] > closes[i - 1]:
            obv.append(obv[-1] + volumes[i])
        elif closes[i] < closes[i - 1]:
            obv.append(obv[-1] - volumes[i])
        else:
            obv.append(obv[-1])
    return obv


class VolumeAnalyzer:
    """
    Volume analysis over a candle window.

    Tunables come from the 'volume' section of engine.json.
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        config = config_manager or get_config_manager()
        self.default_volume = config.get_float('engine', 'volume', 'default_volume', default=1000.0)
        self.sma_period = config.get_int('engine', 'volume', 'sma_period', default=20)
        self.profile_bins = config.get_int('engine', 'volume', 'profile_bins', default=10)
        self.value_area_fraction = config.get_float('engine', 'volume', 'value_area_fraction', default=0.7)
        self.climax_multiplier = config.get_float('engine', 'volume', 'climax_multiplier', default=1.5)
        self.spike_multiplier = config.get_float('engine', 'volume', 'spike_multiplier', default=2.0)

    def _volumes(self, candles: Sequence[Candle]) -> List[float]:
        return [float(c.volume) if c.volume is not None else self.default_volume for c in candles]

    def analyze(self, candles: Sequence[Candle]) -> VolumeAnalysis:
        """
        Analyze volume behaviour.

        Args:
            candles: Candle window, oldest first

        Returns:
            VolumeAnalysis; defaults for fewer than 10 candles
        """
        if len(candles) < MIN_CANDLES:
            return VolumeAnalysis()

        closes = [float(c.close) for c in candles]
        volumes = self._volumes(candles)

        obv = on_balance_volume(closes, volumes)
        mean_volume = sum(volumes) / len(volumes)
        obv_slope = linear_slope(obv[-10:]) / mean_volume if mean_volume else 0.0

        total_volume = sum(volumes)
        vwap = None
        if total_volume > 0:
            vwap = sum(float(c.typical_price) * v for c, v in zip(candles, volumes)) / total_volume

        sma_window = volumes[-self.sma_period:]
        volume_sma = sum(sma_window) / len(sma_window)
        volume_ratio = volumes[-1] / volume_sma if volume_sma > 0 else 1.0

        patterns = self.detect_patterns(closes, volumes)
        divergence = next(
            (p.signal for p in patterns if p.pattern_type in (
                VolumePatternType.BULLISH_VOLUME_DIVERGENCE,
                VolumePatternType.BEARISH_VOLUME_DIVERGENCE,
            )),
            PatternSignal.NEUTRAL,
        )

        analysis = VolumeAnalysis(
            obv=obv[-1],
            obv_slope=obv_slope,
            vwap=vwap,
            volume_sma=volume_sma,
            volume_ratio=volume_ratio,
            patterns=patterns,
            primary_pattern=self.primary_pattern(patterns),
            divergence=divergence,
            price_volume_trend=self.price_volume_trend(closes, volumes),
            price_volume_correlation=pearson_correlation(closes, volumes),
            volume_confirmation=self.volume_confirmation(closes, volumes),
            profile=self.volume_profile(closes, volumes),
        )
        logger.debug(
            f"Volume: ratio={volume_ratio:.2f} patterns={[p.pattern_type.value for p in patterns]}"
        )
        return analysis

    def detect_patterns(self, closes: Sequence[float], volumes: Sequence[float]) -> List[VolumePattern]:
        """Climax, divergence, spike and trend, in that order."""
        patterns = []
        current = volumes[-1]
        trailing = volumes[-TRAILING_BARS - 1:-1]
        average = sum(trailing) / len(trailing) if trailing else 0.0

        if average > 0 and current > average * self.climax_multiplier and closes[-1] != closes[-2]:
            strength = min(1.0, current / (2 * average))
            if closes[-1] < closes[-2]:
                patterns.append(VolumePattern(
                    pattern_type=VolumePatternType.SELLING_CLIMAX,
                    signal=PatternSignal.BULLISH,
                    strength=strength,
                    description="Heavy volume on a down bar",
                ))
            else:
                patterns.append(VolumePattern(
                    pattern_type=VolumePatternType.BUYING_CLIMAX,
                    signal=PatternSignal.BEARISH,
                    strength=strength,
                    description="Heavy volume on an up bar",
                ))

        price_slope = _relative_slope(closes[-10:]) * 100
        volume_slope = _relative_slope(volumes[-10:])
        if price_slope < -PRICE_SLOPE_THRESHOLD and volume_slope > VOLUME_SLOPE_THRESHOLD:
            patterns.append(VolumePattern(
                pattern_type=VolumePatternType.BULLISH_VOLUME_DIVERGENCE,
                signal=PatternSignal.BULLISH,
                strength=min(1.0, abs(volume_slope) * 5),
                description="Price falling on rising volume",
            ))
        elif price_slope > PRICE_SLOPE_THRESHOLD and volume_slope < -VOLUME_SLOPE_THRESHOLD:
            patterns.append(VolumePattern(
                pattern_type=VolumePatternType.BEARISH_VOLUME_DIVERGENCE,
                signal=PatternSignal.BEARISH,
                strength=min(1.0, abs(volume_slope) * 5),
                description="Price rising on falling volume",
            ))

        if average > 0 and current > average * self.spike_multiplier:
            patterns.append(VolumePattern(
                pattern_type=VolumePatternType.VOLUME_SPIKE,
                signal=PatternSignal.NEUTRAL,
                strength=min(1.0, current / (3 * average)),
                description=f"Volume {current / average:.1f}x the trailing average",
            ))

        if abs(volume_slope) > VOLUME_SLOPE_THRESHOLD:
            patterns.append(VolumePattern(
                pattern_type=VolumePatternType.VOLUME_TREND,
                signal=PatternSignal.NEUTRAL,
                strength=min(1.0, abs(volume_slope) * 5),
                description="Increasing volume" if volume_slope > 0 else "Decreasing volume",
            ))

        return patterns

    @staticmethod
    def primary_pattern(patterns: Sequence[VolumePattern]) -> Optional[VolumePattern]:
        """First directional pattern, else the strongest one."""
        for pattern in patterns:
            if pattern.signal != PatternSignal.NEUTRAL:
                return pattern
        if not patterns:
            return None
        return max(patterns, key=lambda p: p.strength)

    @staticmethod
    def price_volume_trend(closes: Sequence[float], volumes: Sequence[float]) -> PriceVolumeTrend:
        price_slope = _relative_slope(closes[-5:]) * 100
        volume_slope = _relative_slope(volumes[-5:])
        volume_rising = volume_slope > VOLUME_SLOPE_THRESHOLD

        if price_slope > 0.01:
            return PriceVolumeTrend.BULLISH_CONFIRMATION if volume_rising else PriceVolumeTrend.WEAK_RALLY
        if price_slope < -0.01:
            return PriceVolumeTrend.BEARISH_CONFIRMATION if volume_rising else PriceVolumeTrend.WEAK_DECLINE
        return PriceVolumeTrend.NEUTRAL

    @staticmethod
    def volume_confirmation(closes: Sequence[float], volumes: Sequence[float]) -> bool:
        """A price move on above-average volume (average of the last five bars)."""
        if len(closes) < 3 or closes[-1] == closes[-2]:
            return False
        recent = volumes[-TRAILING_BARS:]
        return volumes[-1] > sum(recent) / len(recent)

    def volume_profile(self, closes: Sequence[float], volumes: Sequence[float]) -> VolumeProfile:
        """
        Volume by equal-width close-price bins.

        The value area grows from the heaviest bin downward until it holds
        the configured fraction of total volume.
        """
        if len(closes) < MIN_PROFILE_CANDLES:
            return VolumeProfile()

        low, high = min(closes), max(closes)
        if high == low:
            bins = [VolumeBin(price_low=low, price_high=high, volume=sum(volumes))]
        else:
            size = (high - low) / self.profile_bins
            totals = [0.0] * self.profile_bins
            for price, volume in zip(closes, volumes):
                index = min(int((price - low) / size), self.profile_bins - 1)
                totals[index] += volume
            bins = [
                VolumeBin(price_low=low + i * size, price_high=low + (i + 1) * size, volume=v)
                for i, v in enumerate(totals)
            ]

        total = sum(b.volume for b in bins)
        poc_bin = max(bins, key=lambda b: b.volume)

        chosen = []
        accumulated = 0.0
        for b in sorted(bins, key=lambda b: b.volume, reverse=True):
            chosen.append(b)
            accumulated += b.volume
            if total <= 0 or accumulated >= total * self.value_area_fraction:
                break

        mean_bin = total / len(bins)
        nodes = [b.midpoint for b in bins if b.volume > 1.5 * mean_bin]

        return VolumeProfile(
            bins=bins,
            point_of_control=poc_bin.midpoint,
            value_area_low=min(b.price_low for b in chosen),
            value_area_high=max(b.price_high for b in chosen),
            high_volume_nodes=nodes,
        )
