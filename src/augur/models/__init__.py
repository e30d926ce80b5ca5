"""
Data models for the Augur prediction engine.

Provides pydantic models for raw market data, derived features, pattern,
volume and timeframe analysis, and the signals and directives exchanged by
the ensemble.
"""

from .market_data import Candle, MarketData, Tick, Timeframe
from .symbols import (
    IndicatorParameters,
    SymbolSpec,
    SymbolType,
    VolatilityProfile,
    get_symbol_spec,
    price_to_pips,
    supported_symbols,
)
from .features import (
    IndicatorSet,
    MarketFeatures,
    MomentumState,
    OverallRegime,
    RegimeState,
    SpikeAnalysis,
    SpikeProximity,
    TrendState,
    VolatilityState,
)
from .patterns import (
    Confirmation,
    PatternAnalysis,
    PatternCategory,
    PatternMatch,
    PatternName,
    PatternSignal,
    SupportResistance,
)
from .volume import (
    PriceVolumeTrend,
    VolumeAnalysis,
    VolumeBin,
    VolumePattern,
    VolumePatternType,
    VolumeProfile,
)
from .timeframes import MultiTimeframeAnalysis, TimeframeView
from .signals import (
    Direction,
    DirectiveMode,
    ExternalOpinion,
    GateState,
    PredictionSignal,
    PriceTargets,
    RejectionReason,
    SignalSource,
    TradingDirective,
    TradingLevels,
)

__all__ = [
    # Market data
    "Candle", "MarketData", "Tick", "Timeframe",
    # Symbols
    "IndicatorParameters", "SymbolSpec", "SymbolType", "VolatilityProfile",
    "get_symbol_spec", "price_to_pips", "supported_symbols",
    # Features
    "IndicatorSet", "MarketFeatures", "MomentumState", "OverallRegime",
    "RegimeState", "SpikeAnalysis", "SpikeProximity", "TrendState", "VolatilityState",
    # Patterns
    "Confirmation", "PatternAnalysis", "PatternCategory", "PatternMatch",
    "PatternName", "PatternSignal", "SupportResistance",
    # Volume
    "PriceVolumeTrend", "VolumeAnalysis", "VolumeBin", "VolumePattern",
    "VolumePatternType", "VolumeProfile",
    # Timeframes
    "MultiTimeframeAnalysis", "TimeframeView",
    # Signals
    "Direction", "DirectiveMode", "ExternalOpinion", "GateState", "PredictionSignal",
    "PriceTargets", "RejectionReason", "SignalSource", "TradingDirective", "TradingLevels",
]
