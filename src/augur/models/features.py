"""
Derived Feature Models

Fixed-field records produced by the indicator engine and the regime
classifier. Every field carries a neutral default so downstream
components can read them without presence checks.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class VolatilityState(str, Enum):
    """Percentile band of normalized ATR."""
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


class TrendState(str, Enum):
    """Direction and magnitude of the trend-efficiency statistic."""
    STRONG_UP = "STRONG_UP"
    WEAK_UP = "WEAK_UP"
    SIDEWAYS = "SIDEWAYS"
    WEAK_DOWN = "WEAK_DOWN"
    STRONG_DOWN = "STRONG_DOWN"
    
    @property
    def bias(self) -> int:
        """+1 for up trends, -1 for down trends, 0 otherwise."""
        if self in (TrendState.STRONG_UP, TrendState.WEAK_UP):
            return 1
        if self in (TrendState.STRONG_DOWN, TrendState.WEAK_DOWN):
            return -1
        return 0
    
    @property
    def is_strong(self) -> bool:
        return self in (TrendState.STRONG_UP, TrendState.STRONG_DOWN)


class MomentumState(str, Enum):
    """Rate of change of the trend statistic."""
    ACCELERATING = "ACCELERATING"
    STEADY = "STEADY"
    DECELERATING = "DECELERATING"


class OverallRegime(str, Enum):
    """Summary label of market behaviour."""
    TRENDING = "TRENDING"
    RANGING = "RANGING"
    BREAKOUT = "BREAKOUT"
    REVERSAL = "REVERSAL"


class SpikeProximity(str, Enum):
    """How close a spike index is to its expected next spike."""
    SAFE = "SAFE"
    WARNING = "WARNING"
    DANGER = "DANGER"
    IMMINENT = "IMMINENT"


class IndicatorSet(BaseModel):
    """Technical indicators computed at the latest bar."""
    
    rsi: float = Field(default=50.0, ge=0, le=100)
    macd_line: float = 0.0
    macd_signal: float = 0.0
    macd_histogram: float = 0.0
    atr: float = Field(default=0.0, ge=0)
    atr_normalized: float = Field(default=0.0, ge=0, description="ATR as percent of price")
    bollinger_upper: float = 0.0
    bollinger_middle: float = 0.0
    bollinger_lower: float = 0.0
    bollinger_position: float = Field(default=0.5, ge=0, le=1)
    bollinger_width: float = Field(default=0.0, ge=0)
    bollinger_squeeze: bool = False
    stochastic: float = Field(default=50.0, ge=0, le=100)
    williams_r: float = Field(default=-50.0, ge=-100, le=0)
    stoch_rsi: float = Field(default=50.0, ge=0, le=100)
    rsi_divergence: int = Field(default=0, ge=-1, le=1)
    macd_divergence: int = Field(default=0, ge=-1, le=1)
    momentum: float = Field(default=0.0, description="Rate of change in percent")
    volatility_rank: float = Field(default=0.5, ge=0, le=1)
    trend_efficiency: float = Field(default=0.0, ge=-1, le=1)
    trend_efficiency_prev: float = Field(default=0.0, ge=-1, le=1)
    price: float = Field(default=0.0, ge=0, description="Close of the latest bar")
    bars_used: int = Field(default=0, ge=0)
    
    model_config = ConfigDict(frozen=True)
    
    @classmethod
    def neutral(cls, price: float = 0.0) -> 'IndicatorSet':
        """Neutral defaults for an empty or too-short series."""
        return cls(price=price)


class RegimeState(BaseModel):
    """Classification of current market conditions."""
    
    volatility_state: VolatilityState = VolatilityState.NORMAL
    trend_state: TrendState = TrendState.SIDEWAYS
    momentum_state: MomentumState = MomentumState.STEADY
    overall_regime: OverallRegime = OverallRegime.RANGING
    confluence_score: float = Field(default=0.5, ge=0, le=1)
    
    model_config = ConfigDict(frozen=True)
    
    @computed_field
    @property
    def direction_bias(self) -> int:
        return self.trend_state.bias


class SpikeAnalysis(BaseModel):
    """Spike timing for Boom/Crash indices."""
    
    applicable: bool = False
    ticks_since_spike: int = Field(default=0, ge=0)
    expected_interval: int = Field(default=0, ge=0)
    proximity: SpikeProximity = SpikeProximity.SAFE
    probability: float = Field(default=0.0, ge=0, le=1)
    
    model_config = ConfigDict(frozen=True)


class MarketFeatures(BaseModel):
    """All non-pattern features of one snapshot."""
    
    symbol: str
    indicators: IndicatorSet = Field(default_factory=IndicatorSet)
    regime: RegimeState = Field(default_factory=RegimeState)
    spike: SpikeAnalysis = Field(default_factory=SpikeAnalysis)
    session_strength: float = Field(default=0.5, ge=0, le=1)
    
    model_config = ConfigDict(frozen=True)
    
    @property
    def session_volatility_factor(self) -> float:
        """Session-driven volatility factor, 0.8 at quiet hours up to 1.2."""
        return 0.8 + 0.4 * self.session_strength
