"""
Volume Analysis Models
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .patterns import PatternSignal


class VolumePatternType(str, Enum):
    SELLING_CLIMAX = "SELLING_CLIMAX"
    BUYING_CLIMAX = "BUYING_CLIMAX"
    BULLISH_VOLUME_DIVERGENCE = "BULLISH_VOLUME_DIVERGENCE"
    BEARISH_VOLUME_DIVERGENCE = "BEARISH_VOLUME_DIVERGENCE"
    VOLUME_SPIKE = "VOLUME_SPIKE"
    VOLUME_TREND = "VOLUME_TREND"


class PriceVolumeTrend(str, Enum):
    """How price and volume moved together over the trailing window."""
    BULLISH_CONFIRMATION = "BULLISH_CONFIRMATION"
    BEARISH_CONFIRMATION = "BEARISH_CONFIRMATION"
    WEAK_RALLY = "WEAK_RALLY"
    WEAK_DECLINE = "WEAK_DECLINE"
    NEUTRAL = "NEUTRAL"


class VolumePattern(BaseModel):
    """A volume event and its directional implication."""
    
    pattern_type: VolumePatternType
    signal: PatternSignal
    strength: float = Field(..., ge=0, le=1)
    description: str = ""
    
    model_config = ConfigDict(frozen=True)


class VolumeBin(BaseModel):
    price_low: float
    price_high: float
    volume: float = Field(..., ge=0)
    
    model_config = ConfigDict(frozen=True)
    
    @property
    def midpoint(self) -> float:
        return (self.price_low + self.price_high) / 2


class VolumeProfile(BaseModel):
    """Distribution of traded volume across equal-width price bins."""
    
    bins: List[VolumeBin] = Field(default_factory=list)
    point_of_control: Optional[float] = None
    value_area_low: Optional[float] = None
    value_area_high: Optional[float] = None
    high_volume_nodes: List[float] = Field(default_factory=list)
    
    model_config = ConfigDict(frozen=True)
    
    @property
    def total_volume(self) -> float:
        return sum(b.volume for b in self.bins)


class VolumeAnalysis(BaseModel):
    """Volume-derived metrics and signals for one snapshot."""
    
    obv: float = 0.0
    obv_slope: float = 0.0
    vwap: Optional[float] = None
    volume_sma: float = Field(default=0.0, ge=0)
    volume_ratio: float = Field(default=1.0, ge=0)
    patterns: List[VolumePattern] = Field(default_factory=list)
    primary_pattern: Optional[VolumePattern] = None
    divergence: PatternSignal = PatternSignal.NEUTRAL
    price_volume_trend: PriceVolumeTrend = PriceVolumeTrend.NEUTRAL
    price_volume_correlation: float = Field(default=0.0, ge=-1, le=1)
    volume_confirmation: bool = False
    profile: VolumeProfile = Field(default_factory=VolumeProfile)
    
    model_config = ConfigDict(frozen=True)
