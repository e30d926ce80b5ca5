"""
Pattern Recognizer

Facade over the candlestick and chart recognizers producing one
PatternAnalysis per candle window, including support/resistance and the
combined pattern signal.
"""

from typing import List, Optional, Sequence, Tuple

from ...config_manager import ConfigManager, get_config_manager
from ...logger import get_logger
from ...models.market_data import Candle
from ...models.patterns import PatternAnalysis, PatternMatch, PatternSignal
from .candlestick import CandlestickRecognizer
from .chart import ChartPatternRecognizer, support_resistance


logger = get_logger(__name__)

AGREEMENT_STRENGTH = 0.8
CANDLESTICK_ONLY_STRENGTH = 0.6
CHART_ONLY_STRENGTH = 0.7


def select_primary(matches: Sequence[PatternMatch]) -> Optional[PatternMatch]:
    """Highest reliability; the first one found wins ties."""
    best = None
    for match in matches:
        if best is None or match.reliability > best.reliability:
            best = match
    return best


def combine_signals(
    candlestick: Optional[PatternMatch],
    chart: Optional[PatternMatch],
) -> Tuple[PatternSignal, float]:
    """
    Overall pattern read from the two primaries.

    Agreement gives 0.8, a lone candlestick signal 0.6, a lone chart
    signal 0.7; conflicting directions cancel to NEUTRAL.
    """
    candle_signal = candlestick.signal if candlestick else PatternSignal.NEUTRAL
    chart_signal = chart.signal if chart else PatternSignal.NEUTRAL

    if candle_signal != PatternSignal.NEUTRAL and chart_signal != PatternSignal.NEUTRAL:
        if candle_signal == chart_signal:
            return candle_signal, AGREEMENT_STRENGTH
        return PatternSignal.NEUTRAL, 0.0
    if candle_signal != PatternSignal.NEUTRAL:
        return candle_signal, CANDLESTICK_ONLY_STRENGTH
    if chart_signal != PatternSignal.NEUTRAL:
        return chart_signal, CHART_ONLY_STRENGTH
    return PatternSignal.NEUTRAL, 0.0


class PatternRecognizer:
    """Runs candlestick and chart recognition over one candle window."""
    
    def __init__(
        self,
        candlestick_recognizer: Optional[CandlestickRecognizer] = None,
        chart_recognizer: Optional[ChartPatternRecognizer] = None,
        config_manager: Optional[ConfigManager] = None,
    ):
        self.config_manager = config_manager or get_config_manager()
        self.candlestick_recognizer = candlestick_recognizer or CandlestickRecognizer(config_manager=self.config_manager)
        self.chart_recognizer = chart_recognizer or ChartPatternRecognizer(self.config_manager)
    
    def analyze(self, candles: Sequence[Candle]) -> PatternAnalysis:
        """
        Analyze a candle window.
        
        Args:
            candles: Candle window, oldest first
            
        Returns:
            PatternAnalysis; empty (NEUTRAL) when nothing is detected
        """
        candles = list(candles)
        candlestick_matches: List[PatternMatch] = self.candlestick_recognizer.analyze(candles)
        chart_matches: List[PatternMatch] = self.chart_recognizer.analyze(candles)
        
        primary_candlestick = select_primary(candlestick_matches)
        primary_chart = select_primary(chart_matches)
        signal, strength = combine_signals(primary_candlestick, primary_chart)
        
        analysis = PatternAnalysis(
            candlestick_patterns=candlestick_matches,
            chart_patterns=chart_matches,
            primary_candlestick=primary_candlestick,
            primary_chart=primary_chart,
            support_resistance=support_resistance(candles, config_manager=self.config_manager),
            overall_signal=signal,
            overall_strength=strength,
        )
        
        if analysis.primary is not None:
            logger.debug(
                f"Primary pattern {analysis.primary.name.value} "
                f"overall={signal.value} strength={strength:.2f}"
            )
        return analysis
