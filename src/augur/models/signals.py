"""
Prediction Signal and Directive Models

This module defines the directional opinions exchanged inside the
ensemble and the terminal artifact returned to the caller:
- Direction: UP / DOWN / NEUTRAL
- PredictionSignal: one opinion with confidence and rationale
- ExternalOpinion: parsed response of the inference service
- TradingLevels / PriceTargets: price geometry of a directive
- TradingDirective: immutable, JSON-serializable final output

TradingDirective validates its own price geometry, so an instance that
exists always satisfies stop < entry < target for UP (and the mirror for
DOWN) and carries a consistent risk/reward ratio.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from .features import OverallRegime


class Direction(str, Enum):
    """Directional call of a signal or directive."""
    UP = "UP"
    DOWN = "DOWN"
    NEUTRAL = "NEUTRAL"
    
    @property
    def sign(self) -> int:
        if self == Direction.UP:
            return 1
        if self == Direction.DOWN:
            return -1
        return 0
    
    @property
    def opposite(self) -> 'Direction':
        if self == Direction.UP:
            return Direction.DOWN
        if self == Direction.DOWN:
            return Direction.UP
        return Direction.NEUTRAL


class SignalSource(str, Enum):
    STATISTICAL = "statistical"
    EXTERNAL = "external"
    ENSEMBLE = "ensemble"


class GateState(str, Enum):
    """Outcome of the validation gate."""
    VALID = "VALID"
    REJECTED = "REJECTED"


class DirectiveMode(str, Enum):
    """Which path produced the directive's levels."""
    ENSEMBLE = "ENSEMBLE"
    STATISTICAL_FALLBACK = "STATISTICAL_FALLBACK"
    REJECTED = "REJECTED"


class RejectionReason(str, Enum):
    RSI_EXHAUSTION = "RSI_EXHAUSTION"
    MACD_CONFLICT = "MACD_CONFLICT"
    LOW_SIGNAL_CONFIDENCE = "LOW_SIGNAL_CONFIDENCE"
    CONFIDENCE_BELOW_FLOOR = "CONFIDENCE_BELOW_FLOOR"
    RISK_REWARD_BELOW_MINIMUM = "RISK_REWARD_BELOW_MINIMUM"
    NO_DIRECTION = "NO_DIRECTION"
    NO_EXTERNAL_OPINION = "NO_EXTERNAL_OPINION"
    DATA_QUALITY = "DATA_QUALITY"


class PredictionSignal(BaseModel):
    """One directional opinion with confidence."""
    
    direction: Direction
    confidence: float = Field(..., ge=0, le=1)
    rationale: str = ""
    source: SignalSource = SignalSource.STATISTICAL
    
    model_config = ConfigDict(frozen=True)
    
    @classmethod
    def neutral(cls, source: SignalSource, rationale: str = "No directional evidence") -> 'PredictionSignal':
        return cls(direction=Direction.NEUTRAL, confidence=0.5, rationale=rationale, source=source)


class ExternalOpinion(BaseModel):
    """Structured block extracted from the inference service's answer."""
    
    signal: PredictionSignal
    entry_price: Optional[float] = Field(None, gt=0)
    stop_loss: Optional[float] = Field(None, gt=0)
    take_profit: Optional[float] = Field(None, gt=0)
    
    model_config = ConfigDict(frozen=True)


class TradingLevels(BaseModel):
    """Entry/stop/target geometry in price and pips."""
    
    entry_price: Decimal = Field(..., gt=0)
    stop_loss: Decimal = Field(..., gt=0)
    take_profit: Decimal = Field(..., gt=0)
    max_drawdown_pips: int = Field(..., ge=0)
    target_pips: int = Field(..., ge=0)
    
    model_config = ConfigDict(frozen=True)
    
    @computed_field
    @property
    def risk_reward_ratio(self) -> float:
        risk = abs(self.entry_price - self.stop_loss)
        if risk == 0:
            return 0.0
        return float(abs(self.take_profit - self.entry_price) / risk)


class PriceTargets(BaseModel):
    immediate: Decimal = Field(..., gt=0)
    short_term: Decimal = Field(..., gt=0)
    medium_term: Decimal = Field(..., gt=0)
    
    model_config = ConfigDict(frozen=True)


class TradingDirective(BaseModel):
    """
    Final output of a prediction request.
    
    REJECTED directives keep valid price geometry but carry minimal size
    and a confidence pinned at the band floor; they encode "no actionable
    signal".
    """
    
    symbol: str
    timeframe: str
    direction: Direction
    confidence: float = Field(..., gt=0, lt=1)
    entry_price: Decimal = Field(..., gt=0)
    stop_loss: Decimal = Field(..., gt=0)
    take_profit: Decimal = Field(..., gt=0)
    risk_reward_ratio: float = Field(..., ge=1.0)
    max_drawdown_pips: int = Field(..., ge=0)
    target_pips: int = Field(..., ge=0)
    position_size_fraction: float = Field(..., gt=0, le=1)
    gate_state: GateState
    mode: DirectiveMode
    rejection_reasons: List[RejectionReason] = Field(default_factory=list)
    rationale: str = ""
    price_targets: Optional[PriceTargets] = None
    success_probability: float = Field(default=0.5, ge=0, le=1)
    market_regime: OverallRegime = OverallRegime.RANGING
    confluence_score: float = Field(default=0.5, ge=0, le=1)
    external_opinion_used: bool = False
    data_quality_warnings: List[str] = Field(default_factory=list)
    as_of: Optional[datetime] = None
    
    model_config = ConfigDict(frozen=True)
    
    @model_validator(mode='after')
    def validate_price_geometry(self):
        """Stops and targets must bracket the entry on the correct sides."""
        entry, stop, target = self.entry_price, self.stop_loss, self.take_profit
        if self.direction == Direction.DOWN:
            if not (stop > entry > target):
                raise ValueError(f"DOWN directive requires stop_loss > entry_price > take_profit, got {stop}/{entry}/{target}")
        elif not (stop < entry < target):
            raise ValueError(f"{self.direction.value} directive requires stop_loss < entry_price < take_profit, got {stop}/{entry}/{target}")
        
        expected = float(abs(target - entry) / abs(entry - stop))
        if abs(expected - self.risk_reward_ratio) > 1e-6 * max(1.0, expected):
            raise ValueError(f"risk_reward_ratio {self.risk_reward_ratio} does not match levels ({expected})")
        return self
    
    @computed_field
    @property
    def actionable(self) -> bool:
        return self.gate_state == GateState.VALID
