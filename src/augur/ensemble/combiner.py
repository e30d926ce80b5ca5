"""
Ensemble Combiner

Merges the local statistical opinion with the external opinion into one
directional call, then runs the sanity guards that can veto it.

Agreement adds a bonus to the weighted sum, disagreement keeps the more
confident side and discounts the sum, and a missing or neutral external
opinion leaves the statistical signal on its own.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..config_manager import ConfigManager, get_config_manager
from ..logger import get_logger
from ..models.features import IndicatorSet
from ..models.signals import Direction, PredictionSignal, RejectionReason, SignalSource
from .risk import RiskProfile


logger = get_logger(__name__)


class CombinationMode(str, Enum):
    AGREEMENT = "agreement"
    DISAGREEMENT = "disagreement"
    STATISTICAL_NEUTRAL = "statistical_neutral"
    STATISTICAL_ONLY = "statistical_only"


@dataclass
class CombinationResult:
    """Combined call before sizing and gating."""
    signal: PredictionSignal
    raw_confidence: float
    mode: CombinationMode
    reasons: List[RejectionReason] = field(default_factory=list)

    @property
    def external_used(self) -> bool:
        return self.mode != CombinationMode.STATISTICAL_ONLY


class EnsembleCombiner:
    """
    Weighted combination of statistical and external signals.

    Weights, bonus, penalty and guard thresholds come from the 'ensemble'
    section of engine.json.
    """

    def __init__(self, profile: RiskProfile, config_manager: Optional[ConfigManager] = None):
        config = config_manager or get_config_manager()
        self.profile = profile
        self.external_weight = config.get_float('engine', 'ensemble', 'external_weight', default=0.6)
        self.statistical_weight = config.get_float('engine', 'ensemble', 'statistical_weight', default=0.4)
        self.agreement_bonus = config.get_float('engine', 'ensemble', 'agreement_bonus', default=0.05)
        self.disagreement_penalty = config.get_float('engine', 'ensemble', 'disagreement_penalty', default=0.7)
        self.signal_floor = config.get_float('engine', 'ensemble', 'signal_floor', default=0.6)
        self.rsi_high = config.get_float('engine', 'ensemble', 'rsi_exhaustion_high', default=80.0)
        self.rsi_low = config.get_float('engine', 'ensemble', 'rsi_exhaustion_low', default=20.0)
        self.macd_threshold = config.get_float('engine', 'ensemble', 'macd_guard_threshold', default=0.0005)

    def _weighted(self, statistical: PredictionSignal, external: PredictionSignal) -> float:
        return self.external_weight * external.confidence + self.statistical_weight * statistical.confidence

    def _merge(self, statistical: PredictionSignal, external: Optional[PredictionSignal]):
        if external is None or external.direction == Direction.NEUTRAL:
            return statistical.direction, statistical.confidence, CombinationMode.STATISTICAL_ONLY, statistical.rationale

        weighted = self._weighted(statistical, external)

        if statistical.direction == Direction.NEUTRAL:
            return external.direction, weighted, CombinationMode.STATISTICAL_NEUTRAL, external.rationale

        if statistical.direction == external.direction:
            rationale = f"Statistical and external agree: {external.rationale}"
            return external.direction, weighted + self.agreement_bonus, CombinationMode.AGREEMENT, rationale

        # External wins ties
        winner = external if external.confidence >= statistical.confidence else statistical
        rationale = f"Signals disagree, {winner.source.value} opinion kept: {winner.rationale}"
        return winner.direction, weighted * self.disagreement_penalty, CombinationMode.DISAGREEMENT, rationale

    def guards(
        self,
        direction: Direction,
        statistical: PredictionSignal,
        external: Optional[PredictionSignal],
        indicators: IndicatorSet,
    ) -> List[RejectionReason]:
        """Sanity checks that veto a combined call."""
        reasons = []

        if direction == Direction.UP and indicators.rsi > self.rsi_high:
            reasons.append(RejectionReason.RSI_EXHAUSTION)
        elif direction == Direction.DOWN and indicators.rsi < self.rsi_low:
            reasons.append(RejectionReason.RSI_EXHAUSTION)

        if indicators.price > 0 and direction != Direction.NEUTRAL:
            histogram = indicators.macd_histogram
            opposing = histogram * direction.sign < 0
            if opposing and abs(histogram) / indicators.price > self.macd_threshold:
                reasons.append(RejectionReason.MACD_CONFLICT)

        present = [statistical] + ([external] if external is not None else [])
        if all(s.confidence < self.signal_floor for s in present):
            reasons.append(RejectionReason.LOW_SIGNAL_CONFIDENCE)

        return reasons

    def combine(
        self,
        statistical: PredictionSignal,
        external: Optional[PredictionSignal],
        indicators: IndicatorSet,
    ) -> CombinationResult:
        """
        Combine the two opinions.

        Args:
            statistical: Local statistical signal
            external: External signal, None when unavailable
            indicators: Indicators of the snapshot, for the guards

        Returns:
            CombinationResult whose signal confidence is clamped to the
            profile band; raw_confidence keeps the unclamped value
        """
        direction, raw, mode, rationale = self._merge(statistical, external)
        raw = max(0.0, min(1.0, raw))

        reasons = self.guards(direction, statistical, external, indicators)

        signal = PredictionSignal(
            direction=direction,
            confidence=self.profile.clamp_confidence(raw),
            rationale=rationale,
            source=SignalSource.ENSEMBLE if mode != CombinationMode.STATISTICAL_ONLY else SignalSource.STATISTICAL,
        )
        logger.debug(
            f"Combined {mode.value}: {direction.value} raw={raw:.3f} "
            f"clamped={signal.confidence:.3f} guards={[r.value for r in reasons]}"
        )
        return CombinationResult(signal=signal, raw_confidence=raw, mode=mode, reasons=reasons)
