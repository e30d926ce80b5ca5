"""
Risk Profiles and Levels Sizing

RiskProfile bounds what a directive may claim (confidence band, minimum
risk/reward, position size limits). RiskLevelsSizer turns a direction
and confidence into entry/stop/target prices, pip distances, a position
size, price targets and a success probability.

Stops are a per-symbol base percentage scaled by timeframe and current
conditions. Targets follow a confidence-tiered risk/reward, are capped by
the largest realistic move for the symbol and timeframe, and are then
widened to at least 1.5x the stop distance.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..config_manager import ConfigManager, get_config_manager
from ..exceptions import ConfigError
from ..logger import get_logger
from ..models.features import MarketFeatures, VolatilityState
from ..models.signals import Direction, PriceTargets, TradingLevels
from ..models.symbols import (
    TIMEFRAME_STOP_MULTIPLIER,
    VolatilityProfile,
    get_symbol_spec,
    price_to_pips,
)


logger = get_logger(__name__)

PRICE_QUANTUM = Decimal('0.00000001')
MIN_TARGET_MULTIPLE = Decimal('1.5')


class RiskProfile(BaseModel):
    """Named bounds applied to every directive."""

    name: str
    min_confidence: float = Field(default=0.5, gt=0, lt=1)
    max_confidence: float = Field(default=0.85, gt=0, lt=1)
    actionable_confidence: float = Field(default=0.6, gt=0, lt=1)
    min_risk_reward: float = Field(default=1.5, ge=1.0)
    base_position: float = Field(default=0.01, gt=0, le=1)
    max_position: float = Field(default=0.03, gt=0, le=1)
    min_position: float = Field(default=0.005, gt=0, le=1)
    rejected_stop_pct: float = Field(default=0.005, gt=0, lt=0.5)
    require_external: bool = False

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def validate_bounds(self):
        if self.min_confidence > self.max_confidence:
            raise ValueError(f"min_confidence {self.min_confidence} exceeds max_confidence {self.max_confidence}")
        if self.min_position > self.max_position:
            raise ValueError(f"min_position {self.min_position} exceeds max_position {self.max_position}")
        return self

    def clamp_confidence(self, confidence: float) -> float:
        return max(self.min_confidence, min(self.max_confidence, confidence))

    def clamp_position(self, size: float) -> float:
        return max(self.min_position, min(self.max_position, size))

    @classmethod
    def load(cls, name: str = "conservative", config_manager: Optional[ConfigManager] = None) -> 'RiskProfile':
        """
        Load a named profile from risk_profiles.json, falling back to the
        built-in definitions.

        Raises:
            ConfigError: the profile is unknown or its values are invalid
        """
        config = config_manager or get_config_manager()
        section = config.get('risk_profiles', name, default=None)
        if section is None:
            section = BUILTIN_PROFILES.get(name)
        if section is None:
            raise ConfigError(f"Unknown risk profile '{name}'")
        try:
            return cls(name=name, **section)
        except ValueError as e:
            raise ConfigError(f"Invalid risk profile '{name}': {e}") from e


BUILTIN_PROFILES: Dict[str, Dict] = {
    "conservative": {
        "min_confidence": 0.5,
        "max_confidence": 0.85,
        "actionable_confidence": 0.6,
        "min_risk_reward": 1.5,
        "base_position": 0.01,
        "max_position": 0.03,
        "min_position": 0.005,
        "rejected_stop_pct": 0.005,
    },
    "standard": {
        "min_confidence": 0.5,
        "max_confidence": 0.95,
        "actionable_confidence": 0.55,
        "min_risk_reward": 1.2,
        "base_position": 0.015,
        "max_position": 0.05,
        "min_position": 0.005,
        "rejected_stop_pct": 0.005,
    },
}


def quantize(price: Decimal) -> Decimal:
    return price.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def build_levels(entry: Decimal, stop: Decimal, target: Decimal, symbol: str) -> TradingLevels:
    """Quantized levels with pip distances."""
    entry, stop, target = quantize(entry), quantize(stop), quantize(target)
    return TradingLevels(
        entry_price=entry,
        stop_loss=stop,
        take_profit=target,
        max_drawdown_pips=price_to_pips(entry - stop, symbol),
        target_pips=price_to_pips(target - entry, symbol),
    )


def confidence_risk_reward(confidence: float) -> float:
    """Risk/reward tier for a confidence level."""
    if confidence > 0.9:
        return 2.0
    if confidence > 0.85:
        return 1.8
    if confidence > 0.8:
        return 1.6
    if confidence > 0.75:
        return 1.5
    if confidence > 0.7:
        return 1.4
    if confidence > 0.65:
        return 1.3
    return 1.2


@dataclass(frozen=True)
class SizingResult:
    """Output of the sizer for one directive."""
    levels: TradingLevels
    position_size_fraction: float
    price_targets: PriceTargets
    success_probability: float
    stop_pct: float


class RiskLevelsSizer:
    """Volatility-aware stop, target and position sizing."""

    def __init__(self, profile: RiskProfile, allow_unknown_symbols: bool = True):
        self.profile = profile
        self.allow_unknown_symbols = allow_unknown_symbols

    def volatility_profile(self, symbol: str, features: MarketFeatures) -> VolatilityProfile:
        """Base profile scaled by the volatility rank and the session factor."""
        spec = get_symbol_spec(symbol, allow_unknown=self.allow_unknown_symbols)
        multiplier = (0.5 + features.indicators.volatility_rank) * features.session_volatility_factor
        return spec.volatility.scaled(multiplier)

    def volatility_adjustment(self, features: MarketFeatures, symbol: str) -> float:
        """Stop width adjustment for current conditions, clamped to [0.8, 1.3]."""
        spec = get_symbol_spec(symbol, allow_unknown=self.allow_unknown_symbols)
        adjustment = 1.0

        state = features.regime.volatility_state
        if state == VolatilityState.EXTREME:
            adjustment *= 1.3
        elif state == VolatilityState.HIGH:
            adjustment *= 1.15
        elif state == VolatilityState.LOW:
            adjustment *= 0.9

        if features.regime.trend_state.is_strong:
            adjustment *= 0.95

        if spec.is_spike_type and features.spike.probability > 0.4:
            adjustment *= 0.8

        rsi = features.indicators.rsi
        if rsi > 80 or rsi < 20:
            adjustment *= 0.95

        return max(0.8, min(1.3, adjustment))

    def stop_percentage(self, features: MarketFeatures, symbol: str, timeframe: str) -> float:
        spec = get_symbol_spec(symbol, allow_unknown=self.allow_unknown_symbols)
        multiplier = TIMEFRAME_STOP_MULTIPLIER.get(timeframe, 1.0)
        return spec.base_stop_loss * multiplier * self.volatility_adjustment(features, symbol)

    def risk_reward(self, confidence: float, volatility: VolatilityProfile) -> float:
        """Confidence tier adjusted for typical move size and spike behaviour, in [1.2, 2.5]."""
        ratio = confidence_risk_reward(confidence)
        if volatility.typical_move_size > 0.02:
            ratio *= 0.9
        elif volatility.typical_move_size < 0.01:
            ratio *= 1.1
        if volatility.spike_frequency > 0:
            ratio *= 0.85
        return max(1.2, min(2.5, ratio))

    def position_size(self, confidence: float, features: MarketFeatures, timeframe_confluence: float = 0.5) -> float:
        """Base allocation plus confluence and confidence bonuses, within the profile limits."""
        size = (
            self.profile.base_position
            + features.regime.confluence_score * 0.01
            + timeframe_confluence * 0.01
            + confidence * 0.01
        )
        return self.profile.clamp_position(size)

    def price_targets(self, entry: Decimal, direction: Direction, volatility: VolatilityProfile) -> PriceTargets:
        sign = Decimal(-1) if direction == Direction.DOWN else Decimal(1)
        move = Decimal(str(volatility.typical_move_size))
        hourly = Decimal(str(volatility.hourly_range))
        return PriceTargets(
            immediate=quantize(entry * (1 + sign * move * Decimal('0.3'))),
            short_term=quantize(entry * (1 + sign * move * Decimal('0.6'))),
            medium_term=quantize(entry * (1 + sign * hourly * Decimal('0.4'))),
        )

    @staticmethod
    def success_probability(confidence: float, volatility: VolatilityProfile) -> float:
        probability = confidence
        if volatility.typical_move_size > 0.05:
            probability *= 0.9
        if volatility.spike_frequency > 0:
            probability *= 0.95
        return max(0.5, min(0.95, probability))

    def size(
        self,
        entry: Decimal,
        direction: Direction,
        confidence: float,
        features: MarketFeatures,
        symbol: str,
        timeframe: str,
        timeframe_confluence: float = 0.5,
    ) -> SizingResult:
        """
        Compute levels and size for a directional call.

        Args:
            entry: Entry price
            direction: UP or DOWN
            confidence: Final (clamped) confidence
            features: Market features of the snapshot
            symbol: Instrument symbol
            timeframe: Timeframe label ('1m' ... '1h')
            timeframe_confluence: Multi-timeframe confluence score
        """
        if direction == Direction.NEUTRAL:
            raise ValueError("Cannot size a NEUTRAL call")

        spec = get_symbol_spec(symbol, allow_unknown=self.allow_unknown_symbols)
        volatility = self.volatility_profile(symbol, features)
        stop_pct = self.stop_percentage(features, symbol, timeframe)
        ratio = Decimal(str(self.risk_reward(confidence, volatility)))

        sign = Decimal(-1) if direction == Direction.DOWN else Decimal(1)
        stop = entry * (1 - sign * Decimal(str(stop_pct)))
        stop_distance = abs(entry - stop)

        target_distance = stop_distance * ratio
        max_gain = entry * Decimal(str(spec.max_realistic_gain(timeframe)))
        target_distance = min(target_distance, max_gain)
        target_distance = max(target_distance, stop_distance * MIN_TARGET_MULTIPLE)
        target = entry + sign * target_distance

        result = SizingResult(
            levels=build_levels(entry, stop, target, symbol),
            position_size_fraction=self.position_size(confidence, features, timeframe_confluence),
            price_targets=self.price_targets(entry, direction, volatility),
            success_probability=self.success_probability(confidence, volatility),
            stop_pct=stop_pct,
        )
        logger.debug(
            f"{symbol} {timeframe} {direction.value}: stop {stop_pct:.4%}, "
            f"RR {result.levels.risk_reward_ratio:.2f}, size {result.position_size_fraction:.3f}"
        )
        return result
