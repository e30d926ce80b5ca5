"""
Core Market Data Models

This module contains Pydantic models for the raw observations consumed by
the prediction engine:
- MarketData: Base class with symbol and timestamp handling
- Tick: One price observation
- Candle: OHLC bar with optional volume and comprehensive validation
- Timeframe: Enumeration of supported prediction timeframes

Records are frozen once built; the feed appends new ones instead of
mutating old ones.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


PRICE_QUANTUM = Decimal('0.00000001')
SYMBOL_PATTERN = r'^[A-Z0-9_]+$'


class Timeframe(str, Enum):
    """Supported prediction timeframes."""
    
    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    THIRTY_MINUTES = "30m"
    ONE_HOUR = "1h"
    
    @property
    def seconds(self) -> int:
        """Convert timeframe to seconds."""
        mapping = {
            "1m": 60,
            "5m": 300,
            "15m": 900,
            "30m": 1800,
            "1h": 3600,
        }
        return mapping[self.value]
    
    @property
    def minutes(self) -> int:
        return self.seconds // 60


def _to_decimal(v: Any) -> Decimal:
    """Convert string/float/int to a Decimal with 8 decimal places."""
    if isinstance(v, str):
        v = v.strip()
        if 'e' in v.lower():
            v = f"{float(v):.8f}"
    decimal_val = Decimal(str(v))
    if not decimal_val.is_finite():
        raise ValueError(f"Price values must be finite: {v}")
    return decimal_val.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


class MarketData(BaseModel):
    """
    Base class for all market data models with common fields and validation.
    
    Provides consistent timestamp handling and symbol normalization.
    """
    
    symbol: str = Field(
        ...,
        description="Instrument symbol (e.g., 'R_75', 'BOOM1000')",
        min_length=1,
        max_length=20
    )
    timestamp: datetime = Field(
        ...,
        description="Observation timestamp in UTC timezone"
    )
    
    model_config = ConfigDict(
        frozen=True,
        use_enum_values=False,
        json_encoders={
            datetime: lambda v: v.isoformat(),
            Decimal: str,
        }
    )
    
    @field_validator('timestamp', mode='before')
    @classmethod
    def validate_timestamp(cls, v) -> datetime:
        """Ensure timestamp is timezone-aware UTC.
        
        Numbers are read as epoch seconds, or as milliseconds when they are
        too large to be seconds.
        """
        if isinstance(v, str):
            if v.endswith('Z'):
                v = v[:-1] + '+00:00'
            dt = datetime.fromisoformat(v)
        elif isinstance(v, bool):
            raise ValueError("Invalid timestamp format: bool")
        elif isinstance(v, (int, float)):
            seconds = v / 1000 if v > 100_000_000_000 else v
            dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
        elif isinstance(v, datetime):
            dt = v
        else:
            raise ValueError(f"Invalid timestamp format: {type(v)}")
            
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        elif dt.tzinfo != timezone.utc:
            dt = dt.astimezone(timezone.utc)
            
        return dt
    
    @field_validator('symbol')
    @classmethod
    def validate_symbol(cls, v) -> str:
        """Validate and normalize symbol format."""
        v = v.upper().strip()
        
        if not re.match(SYMBOL_PATTERN, v):
            raise ValueError(f"Symbol must contain only uppercase letters, numbers and underscores: {v}")
            
        return v
    
    @property
    def epoch(self) -> int:
        """Timestamp as integer epoch seconds."""
        return int(self.timestamp.timestamp())


class Tick(MarketData):
    """Single price observation pushed by the feed."""
    
    price: Decimal = Field(..., description="Quoted price", gt=0)
    pip_size: Decimal = Field(default=Decimal('0.001'), description="Smallest quoted increment", gt=0)
    
    @field_validator('price', 'pip_size', mode='before')
    @classmethod
    def validate_decimal_fields(cls, v) -> Decimal:
        return _to_decimal(v)
    
    @classmethod
    def from_deriv(cls, data: Dict[str, Any]) -> 'Tick':
        """
        Create a Tick from a Deriv tick payload.
        
        Expected format: {'symbol': 'R_75', 'quote': 1234.56, 'epoch': 1700000000, 'pip_size': 2}
        where pip_size is the number of decimals.
        """
        pip_size = data.get('pip_size')
        if isinstance(pip_size, int) and pip_size >= 0:
            pip_size = Decimal(1).scaleb(-pip_size)
        return cls(
            symbol=data['symbol'],
            price=data['quote'],
            timestamp=data['epoch'],
            pip_size=pip_size if pip_size is not None else Decimal('0.001'),
        )


class Candle(MarketData):
    """
    OHLC bar with optional volume.
    
    Includes validation for:
    - Price relationships (high >= low, high >= open/close, low <= open/close)
    - Positive prices and non-negative volume
    """
    
    open: Decimal = Field(..., description="Opening price", gt=0)
    high: Decimal = Field(..., description="Highest price", gt=0)
    low: Decimal = Field(..., description="Lowest price", gt=0)
    close: Decimal = Field(..., description="Closing price", gt=0)
    volume: Optional[Decimal] = Field(None, description="Traded volume, absent for synthetic indices", ge=0)
    
    @field_validator('open', 'high', 'low', 'close', 'volume', mode='before')
    @classmethod
    def validate_price_fields(cls, v) -> Optional[Decimal]:
        """Convert and validate price/volume fields."""
        if v is None:
            return v
        return _to_decimal(v)
    
    @model_validator(mode='after')
    def validate_ohlc_relationships(self):
        """Validate OHLC price relationships."""
        if self.high < max(self.open, self.close):
            raise ValueError(f"High price {self.high} must be >= max(open, close)")
        if self.high < self.low:
            raise ValueError(f"High price {self.high} must be >= low price {self.low}")
        if self.low > min(self.open, self.close):
            raise ValueError(f"Low price {self.low} must be <= min(open, close)")
        return self
    
    @classmethod
    def from_deriv(cls, data: Dict[str, Any], symbol: Optional[str] = None) -> 'Candle':
        """
        Create a Candle from a Deriv OHLC payload.
        
        Expected format: {'open': ..., 'high': ..., 'low': ..., 'close': ..., 'epoch': ...}
        """
        return cls(
            symbol=symbol or data['symbol'],
            timestamp=data['epoch'],
            open=data['open'],
            high=data['high'],
            low=data['low'],
            close=data['close'],
            volume=data.get('volume'),
        )
    
    @property
    def body_size(self) -> Decimal:
        """Absolute difference between open and close."""
        return abs(self.close - self.open)
    
    @property
    def upper_shadow(self) -> Decimal:
        return self.high - max(self.open, self.close)
    
    @property
    def lower_shadow(self) -> Decimal:
        return min(self.open, self.close) - self.low
    
    @property
    def total_range(self) -> Decimal:
        return self.high - self.low
    
    @property
    def is_bullish(self) -> bool:
        return self.close > self.open
    
    @property
    def is_bearish(self) -> bool:
        return self.close < self.open
    
    @property
    def typical_price(self) -> Decimal:
        """(high + low + close) / 3, used by VWAP."""
        return (self.high + self.low + self.close) / 3
