"""
Multi-Timeframe Models
"""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .features import TrendState


class TimeframeView(BaseModel):
    """Trend read of one resampled timeframe."""
    
    minutes: int = Field(..., gt=0)
    trend: TrendState = TrendState.SIDEWAYS
    strength: float = Field(default=0.5, ge=0, le=1)
    momentum: float = 0.0
    volatility: float = Field(default=0.0, ge=0)
    support: float = Field(default=0.0, ge=0)
    resistance: float = Field(default=0.0, ge=0)
    confidence: float = Field(default=0.5, ge=0, le=1)
    bars: int = Field(default=0, ge=0)
    is_default: bool = False
    
    model_config = ConfigDict(frozen=True)
    
    @computed_field
    @property
    def label(self) -> str:
        if self.minutes % 1440 == 0:
            return f"{self.minutes // 1440}d"
        if self.minutes % 60 == 0:
            return f"{self.minutes // 60}h"
        return f"{self.minutes}m"


class MultiTimeframeAnalysis(BaseModel):
    """Per-timeframe views plus their aggregate."""
    
    views: List[TimeframeView] = Field(default_factory=list)
    confluence: float = Field(default=0.5, ge=0, le=1)
    dominant_trend: TrendState = TrendState.SIDEWAYS
    alignment: float = Field(default=0.5, ge=0, le=1)
    trend_distribution: Dict[str, int] = Field(default_factory=dict)
    strength_average: float = Field(default=0.5, ge=0, le=1)
    strength_min: float = Field(default=0.5, ge=0, le=1)
    strength_max: float = Field(default=0.5, ge=0, le=1)
    recommendation: str = "MIXED_SIGNALS"
    
    model_config = ConfigDict(frozen=True)
    
    def view(self, minutes: int):
        for v in self.views:
            if v.minutes == minutes:
                return v
        return None
