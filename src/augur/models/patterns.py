"""
Pattern Recognition Models

Records for candlestick and chart pattern matches, support/resistance
levels and the combined pattern read of one snapshot.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class PatternName(str, Enum):
    """Every pattern the recognizer can report."""
    DOJI = "DOJI"
    HAMMER = "HAMMER"
    SHOOTING_STAR = "SHOOTING_STAR"
    BULLISH_ENGULFING = "BULLISH_ENGULFING"
    BEARISH_ENGULFING = "BEARISH_ENGULFING"
    THREE_WHITE_SOLDIERS = "THREE_WHITE_SOLDIERS"
    THREE_BLACK_CROWS = "THREE_BLACK_CROWS"
    DOUBLE_TOP = "DOUBLE_TOP"
    DOUBLE_BOTTOM = "DOUBLE_BOTTOM"
    HEAD_AND_SHOULDERS = "HEAD_AND_SHOULDERS"
    INVERSE_HEAD_AND_SHOULDERS = "INVERSE_HEAD_AND_SHOULDERS"
    ASCENDING_TRIANGLE = "ASCENDING_TRIANGLE"
    DESCENDING_TRIANGLE = "DESCENDING_TRIANGLE"
    SYMMETRICAL_TRIANGLE = "SYMMETRICAL_TRIANGLE"


class PatternCategory(str, Enum):
    REVERSAL = "REVERSAL"
    CONTINUATION = "CONTINUATION"


class PatternSignal(str, Enum):
    """Directional read of a pattern."""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"
    
    @property
    def bias(self) -> int:
        if self == PatternSignal.BULLISH:
            return 1
        if self == PatternSignal.BEARISH:
            return -1
        return 0
    
    @classmethod
    def from_bias(cls, bias: float) -> 'PatternSignal':
        if bias > 0:
            return cls.BULLISH
        if bias < 0:
            return cls.BEARISH
        return cls.NEUTRAL


class Confirmation(str, Enum):
    """Evidence recorded alongside a match; does not change reliability."""
    HIGH_VOLUME = "HIGH_VOLUME"
    PRICE_CONFIRMATION = "PRICE_CONFIRMATION"


class PatternMatch(BaseModel):
    """A detected candlestick or chart pattern."""
    
    name: PatternName
    category: PatternCategory
    reliability: float = Field(..., ge=0, le=1)
    signal: PatternSignal
    target_price: Optional[float] = Field(None, gt=0)
    stop_price: Optional[float] = Field(None, gt=0)
    completion: float = Field(default=1.0, ge=0, le=1)
    confirmations: List[Confirmation] = Field(default_factory=list)
    
    model_config = ConfigDict(frozen=True)
    
    @computed_field
    @property
    def is_confirmed(self) -> bool:
        return bool(self.confirmations)


class SupportResistance(BaseModel):
    """Price levels touched at least twice within tolerance."""
    
    support_levels: List[float] = Field(default_factory=list)
    resistance_levels: List[float] = Field(default_factory=list)
    nearest_support: Optional[float] = None
    nearest_resistance: Optional[float] = None
    
    model_config = ConfigDict(frozen=True)
    
    def proximity(self, price: float) -> float:
        """Position of price between nearest support (0) and resistance (1); 0.5 when unbounded."""
        if self.nearest_support is None or self.nearest_resistance is None:
            return 0.5
        span = self.nearest_resistance - self.nearest_support
        if span <= 0:
            return 0.5
        return max(0.0, min(1.0, (price - self.nearest_support) / span))


class PatternAnalysis(BaseModel):
    """Combined pattern read of one candle window."""
    
    candlestick_patterns: List[PatternMatch] = Field(default_factory=list)
    chart_patterns: List[PatternMatch] = Field(default_factory=list)
    primary_candlestick: Optional[PatternMatch] = None
    primary_chart: Optional[PatternMatch] = None
    support_resistance: SupportResistance = Field(default_factory=SupportResistance)
    overall_signal: PatternSignal = PatternSignal.NEUTRAL
    overall_strength: float = Field(default=0.0, ge=0, le=1)
    
    model_config = ConfigDict(frozen=True)
    
    @property
    def primary(self) -> Optional[PatternMatch]:
        """Highest-reliability match across both families, first found on ties."""
        matches = self.candlestick_patterns + self.chart_patterns
        if not matches:
            return None
        best = matches[0]
        for match in matches[1:]:
            if match.reliability > best.reliability:
                best = match
        return best
