"""
Instrument Reference Data

Per-symbol indicator parameters, volatility profiles and the stop-loss and
gain tables used by the risk sizer. Values are tuned for the Deriv
synthetic indices: Boom/Crash spike indices and the R_* volatility
indices. Unknown symbols fall back to the R_25 row.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict

from ..exceptions import UnknownSymbolError


DEFAULT_SYMBOL = "R_25"


class SymbolType(str, Enum):
    """Quoting and behaviour class of an instrument."""
    BOOM = "boom"
    CRASH = "crash"
    VOLATILITY = "volatility"
    
    @property
    def is_spike_type(self) -> bool:
        return self in (SymbolType.BOOM, SymbolType.CRASH)


@dataclass(frozen=True)
class IndicatorParameters:
    """Indicator periods optimized per instrument."""
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    atr_period: int = 14
    spike_threshold: float = 0.02
    volatility_multiplier: float = 1.0
    bollinger_period: int = 20
    bollinger_std: float = 2.0


@dataclass(frozen=True)
class VolatilityProfile:
    """Typical ranges as fractions of price."""
    daily_range: float
    hourly_range: float
    spike_frequency: float  # per tick, 0 for non-spike instruments
    typical_move_size: float
    
    def scaled(self, multiplier: float) -> 'VolatilityProfile':
        """Profile with ranges scaled by current conditions, clamped to [0.5, 2]."""
        m = max(0.5, min(2.0, multiplier))
        return VolatilityProfile(
            daily_range=self.daily_range * m,
            hourly_range=self.hourly_range * m,
            spike_frequency=self.spike_frequency,
            typical_move_size=self.typical_move_size * m,
        )


@dataclass(frozen=True)
class SymbolSpec:
    """Everything the engine needs to know about one instrument."""
    symbol: str
    symbol_type: SymbolType
    pip_size: Decimal
    spike_interval: int  # expected ticks between spikes, 0 when none
    parameters: IndicatorParameters
    volatility: VolatilityProfile
    base_stop_loss: float
    max_gains: Dict[str, float]
    
    @property
    def is_spike_type(self) -> bool:
        return self.symbol_type.is_spike_type
    
    def max_realistic_gain(self, timeframe: str) -> float:
        return self.max_gains.get(timeframe, 0.03)


SYMBOL_PARAMETERS: Dict[str, IndicatorParameters] = {
    "BOOM1000": IndicatorParameters(21, 8, 21, 9, 14, 0.03, 1.2, 20, 2.0),
    "BOOM500": IndicatorParameters(14, 8, 21, 9, 14, 0.04, 1.5, 15, 2.0),
    "CRASH1000": IndicatorParameters(21, 8, 21, 9, 14, 0.03, 1.2, 20, 2.0),
    "CRASH500": IndicatorParameters(14, 8, 21, 9, 14, 0.04, 1.5, 15, 2.0),
    "R_10": IndicatorParameters(9, 12, 26, 9, 14, 0.015, 0.8, 20, 2.0),
    "R_25": IndicatorParameters(14, 12, 26, 9, 14, 0.02, 1.0, 20, 2.0),
    "R_50": IndicatorParameters(14, 10, 21, 7, 14, 0.025, 1.1, 20, 2.0),
    "R_75": IndicatorParameters(21, 8, 17, 7, 14, 0.03, 1.3, 15, 2.0),
    "R_100": IndicatorParameters(21, 8, 17, 7, 14, 0.035, 1.5, 15, 2.0),
}

VOLATILITY_PROFILES: Dict[str, VolatilityProfile] = {
    "BOOM1000": VolatilityProfile(0.08, 0.02, 0.001, 0.008),
    "BOOM500": VolatilityProfile(0.12, 0.035, 0.002, 0.012),
    "CRASH1000": VolatilityProfile(0.08, 0.02, 0.001, 0.008),
    "CRASH500": VolatilityProfile(0.12, 0.035, 0.002, 0.012),
    "R_10": VolatilityProfile(0.05, 0.012, 0.0, 0.004),
    "R_25": VolatilityProfile(0.12, 0.025, 0.0, 0.008),
    "R_50": VolatilityProfile(0.25, 0.05, 0.0, 0.015),
    "R_75": VolatilityProfile(0.35, 0.075, 0.0, 0.022),
    "R_100": VolatilityProfile(0.45, 0.1, 0.0, 0.03),
}

BASE_STOP_LOSS: Dict[str, float] = {
    "BOOM1000": 0.003,
    "BOOM500": 0.005,
    "CRASH1000": 0.003,
    "CRASH500": 0.005,
    "R_10": 0.002,
    "R_25": 0.004,
    "R_50": 0.006,
    "R_75": 0.008,
    "R_100": 0.01,
}

TIMEFRAME_STOP_MULTIPLIER: Dict[str, float] = {
    "1m": 0.6,
    "5m": 0.8,
    "15m": 1.0,
    "30m": 1.2,
    "1h": 1.4,
}

_BOOM_CRASH_1000_GAINS = {"1m": 0.005, "5m": 0.01, "15m": 0.025, "30m": 0.04, "1h": 0.06}
_BOOM_CRASH_500_GAINS = {"1m": 0.008, "5m": 0.015, "15m": 0.035, "30m": 0.055, "1h": 0.08}

MAX_REALISTIC_GAIN: Dict[str, Dict[str, float]] = {
    "BOOM1000": _BOOM_CRASH_1000_GAINS,
    "BOOM500": _BOOM_CRASH_500_GAINS,
    "CRASH1000": _BOOM_CRASH_1000_GAINS,
    "CRASH500": _BOOM_CRASH_500_GAINS,
    "R_10": {"1m": 0.003, "5m": 0.008, "15m": 0.015, "30m": 0.025, "1h": 0.04},
    "R_25": {"1m": 0.006, "5m": 0.012, "15m": 0.025, "30m": 0.04, "1h": 0.06},
    "R_50": {"1m": 0.01, "5m": 0.02, "15m": 0.04, "30m": 0.065, "1h": 0.1},
    "R_75": {"1m": 0.015, "5m": 0.03, "15m": 0.055, "30m": 0.08, "1h": 0.12},
    "R_100": {"1m": 0.02, "5m": 0.04, "15m": 0.07, "30m": 0.1, "1h": 0.15},
}


def classify_symbol(symbol: str) -> SymbolType:
    """Infer the instrument class from its name."""
    if symbol.startswith("BOOM"):
        return SymbolType.BOOM
    if symbol.startswith("CRASH"):
        return SymbolType.CRASH
    return SymbolType.VOLATILITY


def _spike_interval(symbol: str, symbol_type: SymbolType) -> int:
    if not symbol_type.is_spike_type:
        return 0
    digits = "".join(ch for ch in symbol if ch.isdigit())
    return int(digits) if digits else 1000


def pips_per_unit(symbol: str) -> int:
    """Pip conversion factor: 3-decimal quoting for R_* and Boom/Crash, 2 otherwise."""
    if "R_" in symbol or symbol.startswith("BOOM") or symbol.startswith("CRASH"):
        return 1000
    return 100


def price_to_pips(distance: Decimal, symbol: str) -> int:
    """Convert an absolute price distance to whole pips."""
    return int(round(abs(float(distance)) * pips_per_unit(symbol)))


def get_symbol_spec(symbol: str, allow_unknown: bool = True) -> SymbolSpec:
    """
    Build the reference data for a symbol.
    
    Args:
        symbol: Instrument symbol
        allow_unknown: Fall back to the default row for unknown symbols
    
    Raises:
        UnknownSymbolError: symbol is unknown and defaults are disabled
    """
    symbol = symbol.upper().strip()
    known = symbol in SYMBOL_PARAMETERS
    if not known and not allow_unknown:
        raise UnknownSymbolError(f"No configuration for symbol '{symbol}' and defaults are disabled")
    
    key = symbol if known else DEFAULT_SYMBOL
    symbol_type = classify_symbol(symbol)
    
    return SymbolSpec(
        symbol=symbol,
        symbol_type=symbol_type,
        pip_size=Decimal('0.01') if symbol_type.is_spike_type else Decimal('0.001'),
        spike_interval=_spike_interval(symbol, symbol_type),
        parameters=SYMBOL_PARAMETERS[key],
        volatility=VOLATILITY_PROFILES[key],
        base_stop_loss=BASE_STOP_LOSS[key],
        max_gains=MAX_REALISTIC_GAIN[key],
    )


def supported_symbols() -> list:
    return list(SYMBOL_PARAMETERS.keys())
