"""
Chart Pattern Recognition

Multi-swing formations built on 3-point peaks and troughs:
- Double Top / Double Bottom (15+ candles)
- Head and Shoulders / Inverse Head and Shoulders (25+ candles)
- Ascending / Descending / Symmetrical triangles (20+ candles)

Also derives support and resistance levels from clustered swing points.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from ...config_manager import ConfigManager, get_config_manager
from ...indicators.engine import linear_slope
from ...logger import get_logger
from ...models.market_data import Candle
from ...models.patterns import (
    PatternCategory,
    PatternMatch,
    PatternName,
    PatternSignal,
    SupportResistance,
)
from .candlestick import confirmations_for


logger = get_logger(__name__)


def find_peaks(values: Sequence[float]) -> List[int]:
    """Indices strictly higher than both neighbours."""
    return [i for i in range(1, len(values) - 1) if values[i] > values[i - 1] and values[i] > values[i + 1]]


def find_troughs(values: Sequence[float]) -> List[int]:
    """Indices strictly lower than both neighbours."""
    return [i for i in range(1, len(values) - 1) if values[i] < values[i - 1] and values[i] < values[i + 1]]


def _positive(value: float) -> Optional[float]:
    return value if value > 0 else None


class ChartPatternDetector(ABC):
    """Abstract base class for chart pattern detectors."""

    min_candles: int = 15
    reliability: float = 0.8

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        config = config_manager or get_config_manager()
        self.peak_tolerance = config.get_float('engine', 'patterns', 'peak_tolerance', default=0.02)
        self.shoulder_tolerance = config.get_float('engine', 'patterns', 'shoulder_tolerance', default=0.03)
        self.min_retracement = config.get_float('engine', 'patterns', 'min_retracement', default=0.3)
        self.triangle_flatness = config.get_float('engine', 'patterns', 'triangle_flatness', default=0.02)

    @abstractmethod
    def detect(self, candles: Sequence[Candle]) -> Optional[PatternMatch]:
        pass

    @abstractmethod
    def get_pattern_name(self) -> PatternName:
        pass

    def _create_match(
        self,
        candles: Sequence[Candle],
        signal: PatternSignal,
        category: PatternCategory,
        target: Optional[float],
        stop: Optional[float],
        completion: float = 1.0,
    ) -> PatternMatch:
        return PatternMatch(
            name=self.get_pattern_name(),
            category=category,
            reliability=self.reliability,
            signal=signal,
            target_price=_positive(target) if target is not None else None,
            stop_price=_positive(stop) if stop is not None else None,
            completion=completion,
            confirmations=confirmations_for(candles, signal),
        )


class DoubleTopDetector(ChartPatternDetector):
    """
    Double top (or, mirrored, double bottom).

    The last two peaks must sit within the peak tolerance of each other and
    the valley between them must retrace at least 30% of the move into the
    first peak. Target is the neckline minus the pattern height.
    """

    min_candles = 15
    reliability = 0.85

    def __init__(self, top: bool = True, config_manager: Optional[ConfigManager] = None):
        super().__init__(config_manager)
        self.top = top

    def get_pattern_name(self) -> PatternName:
        return PatternName.DOUBLE_TOP if self.top else PatternName.DOUBLE_BOTTOM

    def detect(self, candles: Sequence[Candle]) -> Optional[PatternMatch]:
        if len(candles) < self.min_candles:
            return None

        highs = [float(c.high) for c in candles]
        lows = [float(c.low) for c in candles]
        close = float(candles[-1].close)

        if self.top:
            extremes, opposite, points = highs, lows, find_peaks(highs)
        else:
            extremes, opposite, points = lows, highs, find_troughs(lows)
        if len(points) < 2:
            return None

        first, second = points[-2], points[-1]
        e1, e2 = extremes[first], extremes[second]
        if abs(e1 - e2) / max(abs(e1), abs(e2)) > self.peak_tolerance:
            return None

        between = opposite[first + 1:second]
        before = opposite[:first + 1]
        if not between or not before:
            return None

        if self.top:
            neckline = min(between)
            start = min(before)
            move = e1 - start
            retracement = (e1 - neckline) / move if move > 0 else 0.0
            extreme = max(e1, e2)
            height = extreme - neckline
            target = neckline - height
            stop = extreme * 1.01
            broken = close < neckline
            signal = PatternSignal.BEARISH
        else:
            neckline = max(between)
            start = max(before)
            move = start - e1
            retracement = (neckline - e1) / move if move > 0 else 0.0
            extreme = min(e1, e2)
            height = neckline - extreme
            target = neckline + height
            stop = extreme * 0.99
            broken = close > neckline
            signal = PatternSignal.BULLISH

        if retracement < self.min_retracement:
            return None

        return self._create_match(
            candles, signal, PatternCategory.REVERSAL, target, stop,
            completion=1.0 if broken else 0.75,
        )


class HeadAndShouldersDetector(ChartPatternDetector):
    """
    Head and shoulders (or inverse) over the last three swing extremes.

    The middle extreme must be the most extreme and the shoulders must sit
    within the shoulder tolerance. The neckline is the mean of the two
    intermediate swings.
    """

    min_candles = 25
    reliability = 0.9

    def __init__(self, inverse: bool = False, config_manager: Optional[ConfigManager] = None):
        super().__init__(config_manager)
        self.inverse = inverse

    def get_pattern_name(self) -> PatternName:
        return PatternName.INVERSE_HEAD_AND_SHOULDERS if self.inverse else PatternName.HEAD_AND_SHOULDERS

    def detect(self, candles: Sequence[Candle]) -> Optional[PatternMatch]:
        if len(candles) < self.min_candles:
            return None

        highs = [float(c.high) for c in candles]
        lows = [float(c.low) for c in candles]

        if self.inverse:
            extremes, opposite, points = lows, highs, find_troughs(lows)
        else:
            extremes, opposite, points = highs, lows, find_peaks(highs)
        if len(points) < 3:
            return None

        left, head, right = points[-3:]
        ls, hd, rs = extremes[left], extremes[head], extremes[right]

        if self.inverse:
            if not (hd < ls and hd < rs):
                return None
        elif not (hd > ls and hd > rs):
            return None

        if abs(ls - rs) / max(abs(ls), abs(rs)) > self.shoulder_tolerance:
            return None

        left_gap = opposite[left + 1:head]
        right_gap = opposite[head + 1:right]
        if not left_gap or not right_gap:
            return None

        if self.inverse:
            neckline = (max(left_gap) + max(right_gap)) / 2
            target = neckline + (neckline - hd)
            stop = hd * 0.99
            signal = PatternSignal.BULLISH
        else:
            neckline = (min(left_gap) + min(right_gap)) / 2
            target = neckline - (hd - neckline)
            stop = hd * 1.01
            signal = PatternSignal.BEARISH

        return self._create_match(candles, signal, PatternCategory.REVERSAL, target, stop)


class TriangleDetector(ChartPatternDetector):
    """
    Triangle classification from the slopes of the last 10 highs and lows.

    Slopes are normalized to percent of the mean price per bar and compared
    against the flatness threshold.
    """

    min_candles = 20
    lookback = 10

    def get_pattern_name(self) -> PatternName:
        # family name; detect() reports the specific triangle
        return PatternName.SYMMETRICAL_TRIANGLE

    def _normalized_slope(self, values: Sequence[float]) -> float:
        mean = sum(values) / len(values)
        if mean == 0:
            return 0.0
        return linear_slope(values) / mean * 100.0

    def classify(self, candles: Sequence[Candle]) -> Optional[Tuple[PatternName, PatternSignal, float]]:
        if len(candles) < self.min_candles:
            return None
        window = candles[-self.lookback:]
        high_slope = self._normalized_slope([float(c.high) for c in window])
        low_slope = self._normalized_slope([float(c.low) for c in window])

        flat = self.triangle_flatness
        highs_flat = abs(high_slope) < flat
        lows_flat = abs(low_slope) < flat

        if highs_flat and low_slope >= flat:
            return PatternName.ASCENDING_TRIANGLE, PatternSignal.BULLISH, 0.8
        if lows_flat and high_slope <= -flat:
            return PatternName.DESCENDING_TRIANGLE, PatternSignal.BEARISH, 0.8
        if high_slope <= -flat and low_slope >= flat:
            return PatternName.SYMMETRICAL_TRIANGLE, PatternSignal.NEUTRAL, 0.75
        return None

    def detect(self, candles: Sequence[Candle]) -> Optional[PatternMatch]:
        result = self.classify(candles)
        if result is None:
            return None
        name, signal, reliability = result

        window = candles[-self.lookback:]
        top = max(float(c.high) for c in window)
        bottom = min(float(c.low) for c in window)
        height = top - bottom
        close = float(candles[-1].close)

        if signal == PatternSignal.BULLISH:
            target, stop = close + height, bottom
        elif signal == PatternSignal.BEARISH:
            target, stop = close - height, top
        else:
            target, stop = None, None

        category = PatternCategory.REVERSAL if signal == PatternSignal.NEUTRAL else PatternCategory.CONTINUATION
        return PatternMatch(
            name=name,
            category=category,
            reliability=reliability,
            signal=signal,
            target_price=_positive(target) if target is not None else None,
            stop_price=_positive(stop) if stop is not None else None,
            completion=1.0,
            confirmations=confirmations_for(candles, signal),
        )


def _cluster_levels(values: Sequence[float], tolerance: float) -> List[float]:
    """Mean of every cluster of at least two values within tolerance of each other."""
    levels = []
    cluster: List[float] = []
    for value in sorted(values):
        if cluster and abs(value - cluster[0]) / cluster[0] > tolerance:
            if len(cluster) >= 2:
                levels.append(sum(cluster) / len(cluster))
            cluster = []
        cluster.append(value)
    if len(cluster) >= 2:
        levels.append(sum(cluster) / len(cluster))
    return levels


def support_resistance(
    candles: Sequence[Candle],
    tolerance: Optional[float] = None,
    config_manager: Optional[ConfigManager] = None,
) -> SupportResistance:
    """
    Support from clustered troughs, resistance from clustered peaks; a level
    needs at least two touches within tolerance.
    """
    if tolerance is None:
        config = config_manager or get_config_manager()
        tolerance = config.get_float('engine', 'patterns', 'level_tolerance', default=0.01)
    if len(candles) < 3:
        return SupportResistance()

    highs = [float(c.high) for c in candles]
    lows = [float(c.low) for c in candles]
    price = float(candles[-1].close)

    resistance = _cluster_levels([highs[i] for i in find_peaks(highs)], tolerance)
    support = _cluster_levels([lows[i] for i in find_troughs(lows)], tolerance)

    below = [level for level in support + resistance if level <= price]
    above = [level for level in support + resistance if level >= price]

    return SupportResistance(
        support_levels=support,
        resistance_levels=resistance,
        nearest_support=max(below) if below else None,
        nearest_resistance=min(above) if above else None,
    )


class ChartPatternRecognizer:
    """Runs every chart detector over the candle window."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        self.detectors: List[ChartPatternDetector] = [
            DoubleTopDetector(top=True, config_manager=config_manager),
            DoubleTopDetector(top=False, config_manager=config_manager),
            HeadAndShouldersDetector(inverse=False, config_manager=config_manager),
            HeadAndShouldersDetector(inverse=True, config_manager=config_manager),
            TriangleDetector(config_manager),
        ]

    def analyze(self, candles: Sequence[Candle]) -> List[PatternMatch]:
        matches = []
        for detector in self.detectors:
            match = detector.detect(candles)
            if match is not None:
                matches.append(match)
        if matches:
            logger.debug(f"Chart patterns: {[m.name.value for m in matches]}")
        return matches
