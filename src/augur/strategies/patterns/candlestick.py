"""
Candlestick Pattern Recognition

Detectors for the single- and multi-candle formations read from the
latest candles of a window:
- Doji, Hammer, Shooting Star (last candle)
- Bullish/Bearish Engulfing (last two candles)
- Three White Soldiers / Three Black Crows (last three candles)

Each detector has a fixed reliability; volume and price confirmations
are recorded on the match but never change its reliability.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional, Sequence

from ...config_manager import ConfigManager, get_config_manager
from ...logger import get_logger
from ...models.market_data import Candle
from ...models.patterns import (
    Confirmation,
    PatternCategory,
    PatternMatch,
    PatternName,
    PatternSignal,
)


logger = get_logger(__name__)

MIN_CANDLES = 3
# last candle plus the five whose volumes the confirmation averages
CONFIRMATION_WINDOW = 6


def confirmations_for(candles: Sequence[Candle], signal: PatternSignal) -> List[Confirmation]:
    """
    Evidence supporting a match at the last candle.

    HIGH_VOLUME: last volume above 1.5x the average of the five before it.
    PRICE_CONFIRMATION: last close moved in the signal's direction.
    """
    found = []
    if len(candles) >= 6:
        last = candles[-1].volume
        prior = [c.volume for c in candles[-6:-1]]
        if last is not None and all(v is not None for v in prior):
            average = sum(prior) / Decimal(len(prior))
            if average > 0 and last > average * Decimal('1.5'):
                found.append(Confirmation.HIGH_VOLUME)
    if len(candles) >= 2 and signal != PatternSignal.NEUTRAL:
        move = candles[-1].close - candles[-2].close
        if (move > 0 and signal == PatternSignal.BULLISH) or (move < 0 and signal == PatternSignal.BEARISH):
            found.append(Confirmation.PRICE_CONFIRMATION)
    return found


class CandlestickPatternDetector(ABC):
    """
    Abstract base class for candlestick pattern detectors.

    Subclasses look at the tail of the window and return a PatternMatch
    or None.
    """

    reliability: float = 0.7
    category: PatternCategory = PatternCategory.REVERSAL

    @abstractmethod
    def detect(self, candles: Sequence[Candle]) -> Optional[PatternMatch]:
        """
        Detect the pattern at the end of the window.

        Args:
            candles: Candle window, oldest first

        Returns:
            PatternMatch if detected, None otherwise
        """
        pass

    @abstractmethod
    def get_pattern_name(self) -> PatternName:
        """Get the pattern this detector recognizes."""
        pass

    def get_required_candles(self) -> int:
        return 1

    def _create_match(self, candles: Sequence[Candle], signal: PatternSignal) -> PatternMatch:
        return PatternMatch(
            name=self.get_pattern_name(),
            category=self.category,
            reliability=self.reliability,
            signal=signal,
            completion=1.0,
            confirmations=confirmations_for(candles, signal),
        )


class DojiDetector(CandlestickPatternDetector):
    """
    Doji: body no larger than 10% of the range, i.e. indecision.

    Direction is read from the last close against the previous close.
    """

    reliability = 0.7
    max_body_ratio = Decimal('0.1')

    def get_pattern_name(self) -> PatternName:
        return PatternName.DOJI

    def detect(self, candles: Sequence[Candle]) -> Optional[PatternMatch]:
        candle = candles[-1]
        if candle.total_range == 0:
            return None
        if candle.body_size > candle.total_range * self.max_body_ratio:
            return None

        signal = PatternSignal.NEUTRAL
        if len(candles) >= 2:
            signal = PatternSignal.from_bias(candle.close - candles[-2].close)
        return self._create_match(candles, signal)


class HammerDetector(CandlestickPatternDetector):
    """Hammer: long lower shadow (> 2x body), short upper shadow (< body)."""

    reliability = 0.8

    def get_pattern_name(self) -> PatternName:
        return PatternName.HAMMER

    def detect(self, candles: Sequence[Candle]) -> Optional[PatternMatch]:
        candle = candles[-1]
        body = candle.body_size
        if body == 0:
            return None
        if candle.lower_shadow > 2 * body and candle.upper_shadow < body:
            return self._create_match(candles, PatternSignal.BULLISH)
        return None


class ShootingStarDetector(CandlestickPatternDetector):
    """Shooting star: long upper shadow (> 2x body), short lower shadow (< body)."""

    reliability = 0.8

    def get_pattern_name(self) -> PatternName:
        return PatternName.SHOOTING_STAR

    def detect(self, candles: Sequence[Candle]) -> Optional[PatternMatch]:
        candle = candles[-1]
        body = candle.body_size
        if body == 0:
            return None
        if candle.upper_shadow > 2 * body and candle.lower_shadow < body:
            return self._create_match(candles, PatternSignal.BEARISH)
        return None


class EngulfingDetector(CandlestickPatternDetector):
    """
    Engulfing pattern: the current body contains the prior body and
    closes in the opposite direction.
    """

    reliability = 0.8

    def __init__(self, bullish: bool = True):
        self.bullish = bullish

    def get_pattern_name(self) -> PatternName:
        return PatternName.BULLISH_ENGULFING if self.bullish else PatternName.BEARISH_ENGULFING

    def get_required_candles(self) -> int:
        return 2

    def detect(self, candles: Sequence[Candle]) -> Optional[PatternMatch]:
        if len(candles) < 2:
            return None
        prior, current = candles[-2], candles[-1]

        if self.bullish:
            engulfs = (
                prior.is_bearish and current.is_bullish
                and current.open <= prior.close
                and current.close >= prior.open
            )
            signal = PatternSignal.BULLISH
        else:
            engulfs = (
                prior.is_bullish and current.is_bearish
                and current.open >= prior.close
                and current.close <= prior.open
            )
            signal = PatternSignal.BEARISH

        if not engulfs or current.body_size <= prior.body_size:
            return None
        return self._create_match(candles, signal)


class ThreeCandleTrendDetector(CandlestickPatternDetector):
    """
    Three White Soldiers / Three Black Crows: three strong candles in one
    direction with monotonic closes. Each body must cover at least 60%
    of its range.
    """

    reliability = 0.9
    category = PatternCategory.CONTINUATION
    min_body_ratio = Decimal('0.6')

    def __init__(self, bullish: bool = True):
        self.bullish = bullish

    def get_pattern_name(self) -> PatternName:
        return PatternName.THREE_WHITE_SOLDIERS if self.bullish else PatternName.THREE_BLACK_CROWS

    def get_required_candles(self) -> int:
        return 3

    def detect(self, candles: Sequence[Candle]) -> Optional[PatternMatch]:
        if len(candles) < 3:
            return None
        last_three = candles[-3:]

        for candle in last_three:
            if candle.total_range == 0:
                return None
            if candle.body_size < candle.total_range * self.min_body_ratio:
                return None
            if self.bullish and not candle.is_bullish:
                return None
            if not self.bullish and not candle.is_bearish:
                return None

        closes = [c.close for c in last_three]
        if self.bullish and not (closes[0] < closes[1] < closes[2]):
            return None
        if not self.bullish and not (closes[0] > closes[1] > closes[2]):
            return None

        signal = PatternSignal.BULLISH if self.bullish else PatternSignal.BEARISH
        return self._create_match(candles, signal)


class CandlestickRecognizer:
    """
    Runs every candlestick detector over the recent window.

    The window never drops below six candles so that volume confirmation
    can compare the last candle with the five before it.

    Matches are returned in detector order; callers pick the primary by
    reliability.
    """

    def __init__(self, window: Optional[int] = None, config_manager: Optional[ConfigManager] = None):
        if window is None:
            config = config_manager or get_config_manager()
            window = config.get_int('engine', 'patterns', 'candlestick_window', default=CONFIRMATION_WINDOW)
        self.window = max(window, CONFIRMATION_WINDOW)
        self.detectors: List[CandlestickPatternDetector] = [
            DojiDetector(),
            HammerDetector(),
            ShootingStarDetector(),
            EngulfingDetector(bullish=True),
            EngulfingDetector(bullish=False),
            ThreeCandleTrendDetector(bullish=True),
            ThreeCandleTrendDetector(bullish=False),
        ]

    def analyze(self, candles: Sequence[Candle]) -> List[PatternMatch]:
        """
        Detect candlestick patterns at the end of the window.

        Returns an empty list for fewer than three candles.
        """
        if len(candles) < MIN_CANDLES:
            return []

        recent = list(candles[-self.window:])
        matches = []
        for detector in self.detectors:
            if len(recent) < detector.get_required_candles():
                continue
            match = detector.detect(recent)
            if match is not None:
                matches.append(match)

        if matches:
            logger.debug(f"Candlestick patterns: {[m.name.value for m in matches]}")
        return matches
