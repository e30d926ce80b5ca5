"""
Narrative Generation for LLM Integration

This module renders the analysis of one snapshot (indicators, regime,
patterns, volume and timeframe confluence) as a text prompt for the
external inference service, followed by the JSON answer contract the
response parser expects.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from ..models.features import MarketFeatures
from ..models.patterns import PatternAnalysis
from ..models.signals import PredictionSignal
from ..models.timeframes import MultiTimeframeAnalysis
from ..models.volume import VolumeAnalysis


ANSWER_CONTRACT = """Respond with a single JSON object and nothing else:
{
  "direction": "UP" | "DOWN" | "NEUTRAL",
  "confidence": <number between 0 and 1>,
  "reasoning": "<one or two sentences>",
  "entry_price": <number, optional>,
  "stop_loss": <number, optional>,
  "take_profit": <number, optional>
}"""


class NarrativeStyle(str, Enum):
    """Narrative style for different LLM consumption patterns."""
    CONCISE = "concise"              # Indicators and regime only
    COMPREHENSIVE = "comprehensive"  # Every section


class NarrativeSection(str, Enum):
    """Sections of the market narrative."""
    MARKET_OVERVIEW = "market_overview"
    TECHNICAL_INDICATORS = "technical_indicators"
    PATTERN_ANALYSIS = "pattern_analysis"
    VOLUME_ANALYSIS = "volume_analysis"
    TIMEFRAME_CONFLUENCE = "timeframe_confluence"
    STATISTICAL_OPINION = "statistical_opinion"


@dataclass
class NarrativeConfiguration:
    """Configuration for narrative generation."""
    style: NarrativeStyle = NarrativeStyle.COMPREHENSIVE
    max_pattern_count: int = 5
    include_statistical_opinion: bool = True


class PromptBuilder:
    """
    Builds the inference prompt from analysis results.

    Output is a pure function of its inputs, so identical snapshots give
    identical prompts.
    """

    def __init__(self, config: Optional[NarrativeConfiguration] = None):
        self.config = config or NarrativeConfiguration()

    def build(
        self,
        symbol: str,
        timeframe: str,
        current_price: Decimal,
        features: MarketFeatures,
        patterns: Optional[PatternAnalysis] = None,
        volume: Optional[VolumeAnalysis] = None,
        multi_timeframe: Optional[MultiTimeframeAnalysis] = None,
        statistical: Optional[PredictionSignal] = None,
    ) -> str:
        """
        Render the full prompt.

        Args:
            symbol: Instrument symbol
            timeframe: Prediction timeframe label (e.g. '5m')
            current_price: Entry reference price
            features: Indicators, regime, spike and session context
            patterns: Pattern analysis, if computed
            volume: Volume analysis, if computed
            multi_timeframe: Timeframe confluence, if computed
            statistical: Local statistical opinion
        """
        sections = [
            self._market_overview(symbol, timeframe, current_price, features),
            self._technical_indicators(features),
        ]

        if self.config.style == NarrativeStyle.COMPREHENSIVE:
            if patterns is not None:
                sections.append(self._pattern_analysis(patterns))
            if volume is not None:
                sections.append(self._volume_analysis(volume))
            if multi_timeframe is not None:
                sections.append(self._timeframe_confluence(multi_timeframe))

        if statistical is not None and self.config.include_statistical_opinion:
            sections.append(
                f"## Statistical Opinion\n{statistical.direction.value} with confidence "
                f"{statistical.confidence:.2f}: {statistical.rationale}"
            )

        sections.append(
            f"## Task\nPredict the direction of {symbol} over the next {timeframe} "
            f"from {current_price}.\n{ANSWER_CONTRACT}"
        )
        return "\n\n".join(sections)

    def _market_overview(self, symbol: str, timeframe: str, price: Decimal, features: MarketFeatures) -> str:
        regime = features.regime
        lines = [
            "## Market Overview",
            f"Symbol: {symbol} | Timeframe: {timeframe} | Price: {price}",
            f"Regime: {regime.overall_regime.value} (trend {regime.trend_state.value}, "
            f"momentum {regime.momentum_state.value}, volatility {regime.volatility_state.value})",
            f"Confluence score: {regime.confluence_score:.2f} | Session strength: {features.session_strength:.2f}",
        ]
        if features.spike.applicable:
            spike = features.spike
            lines.append(
                f"Spike timing: {spike.ticks_since_spike}/{spike.expected_interval} ticks, "
                f"{spike.proximity.value}, probability {spike.probability:.2f}"
            )
        return "\n".join(lines)

    def _technical_indicators(self, features: MarketFeatures) -> str:
        ind = features.indicators
        squeeze = " (squeeze)" if ind.bollinger_squeeze else ""
        return "\n".join([
            "## Technical Indicators",
            f"RSI: {ind.rsi:.2f} | Stochastic: {ind.stochastic:.2f} | Williams %R: {ind.williams_r:.2f} "
            f"| Stoch RSI: {ind.stoch_rsi:.2f}",
            f"MACD: line {ind.macd_line:.5f}, signal {ind.macd_signal:.5f}, histogram {ind.macd_histogram:.5f}",
            f"Bollinger: position {ind.bollinger_position:.2f}, width {ind.bollinger_width:.4f}{squeeze}",
            f"ATR: {ind.atr:.5f} ({ind.atr_normalized:.3f}% of price), volatility rank {ind.volatility_rank:.2f}",
            f"Momentum: {ind.momentum:.3f}% | Trend efficiency: {ind.trend_efficiency:.2f}",
            f"Divergence: RSI {ind.rsi_divergence:+d}, MACD {ind.macd_divergence:+d}",
        ])

    def _pattern_analysis(self, patterns: PatternAnalysis) -> str:
        lines = ["## Pattern Analysis"]
        matches = (patterns.candlestick_patterns + patterns.chart_patterns)[:self.config.max_pattern_count]
        if not matches:
            lines.append("No candlestick or chart patterns detected.")
        for match in matches:
            extra = ""
            if match.target_price is not None:
                extra = f", target {match.target_price:.5f}"
            lines.append(f"- {match.name.value}: {match.signal.value}, reliability {match.reliability:.2f}{extra}")
        lines.append(f"Overall pattern signal: {patterns.overall_signal.value} ({patterns.overall_strength:.2f})")

        levels = patterns.support_resistance
        if levels.nearest_support is not None or levels.nearest_resistance is not None:
            lines.append(f"Nearest support: {levels.nearest_support} | Nearest resistance: {levels.nearest_resistance}")
        return "\n".join(lines)

    def _volume_analysis(self, volume: VolumeAnalysis) -> str:
        lines = [
            "## Volume Analysis",
            f"Volume ratio: {volume.volume_ratio:.2f} | Price/volume trend: {volume.price_volume_trend.value} "
            f"| Correlation: {volume.price_volume_correlation:.2f}",
        ]
        if volume.vwap is not None:
            lines.append(f"VWAP: {volume.vwap:.5f}")
        if volume.primary_pattern is not None:
            lines.append(f"Primary volume pattern: {volume.primary_pattern.pattern_type.value} "
                         f"({volume.primary_pattern.signal.value})")
        return "\n".join(lines)

    def _timeframe_confluence(self, analysis: MultiTimeframeAnalysis) -> str:
        lines: List[str] = ["## Timeframe Confluence"]
        for view in analysis.views:
            if view.is_default:
                lines.append(f"- {view.label}: insufficient data")
            else:
                lines.append(f"- {view.label}: {view.trend.value}, strength {view.strength:.2f}, "
                             f"momentum {view.momentum:.2f}%")
        lines.append(
            f"Dominant trend: {analysis.dominant_trend.value} (alignment {analysis.alignment:.2f}), "
            f"confluence {analysis.confluence:.2f}, {analysis.recommendation}"
        )
        return "\n".join(lines)
