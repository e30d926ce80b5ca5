"""
Market Regime Classification

Maps an IndicatorSet to a RegimeState (volatility, trend, momentum,
overall regime and a confluence score), and adds the two context
features used by the risk sizer: spike timing for Boom/Crash indices and
trading-session strength.
"""

import math
from datetime import datetime
from typing import Optional

from ..config_manager import ConfigManager, get_config_manager
from ..logger import get_logger
from ..models.features import (
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
from ..models.symbols import get_symbol_spec


logger = get_logger(__name__)

TREND_SCORE = {"strong": 0.4, "weak": 0.25, "sideways": 0.1}
MOMENTUM_SCORE = {
    MomentumState.ACCELERATING: 0.3,
    MomentumState.STEADY: 0.2,
    MomentumState.DECELERATING: 0.1,
}
VOLATILITY_SCORE = {
    VolatilityState.NORMAL: 0.2,
    VolatilityState.LOW: 0.1,
    VolatilityState.HIGH: 0.1,
    VolatilityState.EXTREME: 0.05,
}

# (start hour, end hour exclusive, weight), UTC
TRADING_SESSIONS = {
    "london": (8, 17, 0.4),
    "new_york": (13, 22, 0.4),
    "asia": (0, 9, 0.3),
    "overlap": (13, 17, 0.2),
}


def session_strength(timestamp: Optional[datetime]) -> float:
    """Activity weight of the trading sessions open at timestamp (UTC hour)."""
    if timestamp is None:
        return 0.5
    hour = timestamp.hour
    strength = 0.0
    for start, end, weight in TRADING_SESSIONS.values():
        if start <= hour < end:
            strength += weight
    return min(1.0, strength)


def analyze_spike(symbol: str, ticks_since_spike: int, allow_unknown: bool = True) -> SpikeAnalysis:
    """
    Spike proximity for Boom/Crash indices.

    The ratio of ticks since the last spike to the expected interval maps
    to SAFE (< 0.6), WARNING (< 0.8), DANGER (< 0.95) or IMMINENT, and the
    probability is a logistic curve centered at 0.8.
    """
    spec = get_symbol_spec(symbol, allow_unknown=allow_unknown)
    if not spec.is_spike_type or spec.spike_interval <= 0:
        return SpikeAnalysis()

    ratio = ticks_since_spike / spec.spike_interval
    if ratio < 0.6:
        proximity = SpikeProximity.SAFE
    elif ratio < 0.8:
        proximity = SpikeProximity.WARNING
    elif ratio < 0.95:
        proximity = SpikeProximity.DANGER
    else:
        proximity = SpikeProximity.IMMINENT

    probability = 1.0 / (1.0 + math.exp(-10.0 * (ratio - 0.8)))

    return SpikeAnalysis(
        applicable=True,
        ticks_since_spike=ticks_since_spike,
        expected_interval=spec.spike_interval,
        proximity=proximity,
        probability=probability,
    )


class RegimeClassifier:
    """Classifies volatility, trend and momentum from an IndicatorSet."""

    def __init__(self, config_manager: Optional[ConfigManager] = None, allow_unknown_symbols: bool = True):
        config = config_manager or get_config_manager()

        def setting(key: str, default: float) -> float:
            return config.get_float('engine', 'regime', key, default=default)

        self.rank_low = setting('volatility_rank_low', 0.25)
        self.rank_normal = setting('volatility_rank_normal', 0.75)
        self.rank_high = setting('volatility_rank_high', 0.95)
        self.strong_trend = setting('strong_trend_efficiency', 0.6)
        self.weak_trend = setting('weak_trend_efficiency', 0.25)
        self.momentum_threshold = setting('momentum_change_threshold', 0.1)
        self.allow_unknown_symbols = allow_unknown_symbols

    def volatility_state(self, rank: float) -> VolatilityState:
        if rank < self.rank_low:
            return VolatilityState.LOW
        if rank < self.rank_normal:
            return VolatilityState.NORMAL
        if rank < self.rank_high:
            return VolatilityState.HIGH
        return VolatilityState.EXTREME

    def trend_state(self, efficiency: float) -> TrendState:
        if efficiency >= self.strong_trend:
            return TrendState.STRONG_UP
        if efficiency >= self.weak_trend:
            return TrendState.WEAK_UP
        if efficiency <= -self.strong_trend:
            return TrendState.STRONG_DOWN
        if efficiency <= -self.weak_trend:
            return TrendState.WEAK_DOWN
        return TrendState.SIDEWAYS

    def momentum_state(self, efficiency: float, previous: float) -> MomentumState:
        change = abs(efficiency) - abs(previous)
        if change > self.momentum_threshold:
            return MomentumState.ACCELERATING
        if change < -self.momentum_threshold:
            return MomentumState.DECELERATING
        return MomentumState.STEADY

    def classify(self, indicators: IndicatorSet, symbol: str = "") -> RegimeState:
        """Build the RegimeState for one IndicatorSet."""
        volatility = self.volatility_state(indicators.volatility_rank)
        trend = self.trend_state(indicators.trend_efficiency)
        momentum = self.momentum_state(indicators.trend_efficiency, indicators.trend_efficiency_prev)

        bias = trend.bias
        div = indicators.rsi_divergence

        if indicators.bollinger_squeeze and momentum == MomentumState.ACCELERATING:
            overall = OverallRegime.BREAKOUT
        elif bias != 0 and div != 0 and div != bias:
            overall = OverallRegime.REVERSAL
        elif bias != 0 and momentum != MomentumState.DECELERATING:
            overall = OverallRegime.TRENDING
        else:
            overall = OverallRegime.RANGING

        if trend.is_strong:
            score = TREND_SCORE["strong"]
        elif bias != 0:
            score = TREND_SCORE["weak"]
        else:
            score = TREND_SCORE["sideways"]
        score += MOMENTUM_SCORE[momentum]
        score += VOLATILITY_SCORE[volatility]
        if bias != 0 and div in (0, bias):
            score += 0.1

        regime = RegimeState(
            volatility_state=volatility,
            trend_state=trend,
            momentum_state=momentum,
            overall_regime=overall,
            confluence_score=min(1.0, score),
        )
        logger.debug(f"{symbol} regime: {overall.value} trend={trend.value} confluence={regime.confluence_score:.2f}")
        return regime

    def features(
        self,
        indicators: IndicatorSet,
        symbol: str,
        ticks_since_spike: int = 0,
        as_of: Optional[datetime] = None,
    ) -> MarketFeatures:
        """Bundle indicators, regime, spike timing and session strength."""
        return MarketFeatures(
            symbol=symbol,
            indicators=indicators,
            regime=self.classify(indicators, symbol),
            spike=analyze_spike(symbol, ticks_since_spike, self.allow_unknown_symbols),
            session_strength=session_strength(as_of),
        )
