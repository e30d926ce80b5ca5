"""
Fallback and Validation Gate

Decides whether a sized call is actionable (VALID) or must be replaced by
a minimal, non-actionable directive (REJECTED). Also provides the fixed
geometry of the statistical-only fallback and of rejected directives, and
keeps per-symbol rejection counters.
"""

import threading
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from ..logger import get_logger
from ..models.signals import Direction, GateState, RejectionReason, TradingLevels
from .combiner import CombinationResult
from .risk import RiskProfile, build_levels


logger = get_logger(__name__)

RR_TOLERANCE = 1e-6

FALLBACK_STOP_PCT = Decimal('0.015')
FALLBACK_TARGET_PCT = Decimal('0.025')
FALLBACK_MAX_POSITION = 0.03
FALLBACK_CONFLUENCE_SCALE = 0.04

REJECTED_CONFIDENCE = 0.5


def fallback_levels(entry: Decimal, direction: Direction, symbol: str) -> TradingLevels:
    """Fixed statistical-only geometry: 1.5% stop, 2.5% target."""
    if direction == Direction.DOWN:
        return build_levels(entry, entry * (1 + FALLBACK_STOP_PCT), entry * (1 - FALLBACK_TARGET_PCT), symbol)
    return build_levels(entry, entry * (1 - FALLBACK_STOP_PCT), entry * (1 + FALLBACK_TARGET_PCT), symbol)


def fallback_position(confluence: float, profile: RiskProfile) -> float:
    size = min(FALLBACK_MAX_POSITION, confluence * FALLBACK_CONFLUENCE_SCALE)
    return profile.clamp_position(size)


def rejected_levels(entry: Decimal, direction: Direction, profile: RiskProfile, symbol: str) -> TradingLevels:
    """
    Minimal geometry for a REJECTED directive.

    The stop sits at the profile's rejected_stop_pct and the target at the
    stop distance times the profile's minimum risk/reward. NEUTRAL uses
    long geometry.
    """
    stop_distance = entry * Decimal(str(profile.rejected_stop_pct))
    target_distance = stop_distance * Decimal(str(profile.min_risk_reward))
    if direction == Direction.DOWN:
        return build_levels(entry, entry + stop_distance, entry - target_distance, symbol)
    return build_levels(entry, entry - stop_distance, entry + target_distance, symbol)


@dataclass
class GateDecision:
    state: GateState
    reasons: List[RejectionReason] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.state == GateState.VALID


class ValidationGate:
    """
    Final check before a directive is published.

    A call is rejected when any combiner guard fired, it has no direction,
    its raw confidence is below the profile's actionable level, its levels
    miss the minimum risk/reward, the data failed a blocking quality check,
    or the profile requires an external opinion that is missing.
    """

    def __init__(self, profile: RiskProfile):
        self.profile = profile
        self._lock = threading.Lock()
        self._rejections: Dict[str, Counter] = defaultdict(Counter)
        self._evaluations: Counter = Counter()

    def evaluate(
        self,
        symbol: str,
        combination: CombinationResult,
        levels: Optional[TradingLevels],
        data_quality_ok: bool = True,
    ) -> GateDecision:
        """
        Validate one combined, sized call.

        Args:
            symbol: Instrument symbol, for the rejection counters
            combination: Output of the ensemble combiner
            levels: Levels computed for the call, None when it has no direction
            data_quality_ok: False when a blocking data-quality check failed
        """
        reasons = list(combination.reasons)
        signal = combination.signal

        if signal.direction == Direction.NEUTRAL:
            reasons.append(RejectionReason.NO_DIRECTION)

        if combination.raw_confidence < self.profile.actionable_confidence:
            reasons.append(RejectionReason.CONFIDENCE_BELOW_FLOOR)

        if levels is not None and levels.risk_reward_ratio < self.profile.min_risk_reward - RR_TOLERANCE:
            reasons.append(RejectionReason.RISK_REWARD_BELOW_MINIMUM)

        if self.profile.require_external and not combination.external_used:
            reasons.append(RejectionReason.NO_EXTERNAL_OPINION)

        if not data_quality_ok:
            reasons.append(RejectionReason.DATA_QUALITY)

        # Keep first occurrence order, drop duplicates
        reasons = list(dict.fromkeys(reasons))
        decision = GateDecision(state=GateState.REJECTED if reasons else GateState.VALID, reasons=reasons)
        self._record(symbol, decision)

        if not decision.is_valid:
            logger.info(f"{symbol}: rejected ({', '.join(r.value for r in reasons)})")
        return decision

    def _record(self, symbol: str, decision: GateDecision) -> None:
        with self._lock:
            self._evaluations[symbol] += 1
            for reason in decision.reasons:
                self._rejections[symbol][reason] += 1
            if decision.reasons:
                self._rejections[symbol]['total'] += 1

    def rejection_count(self, symbol: str, reason: Optional[RejectionReason] = None) -> int:
        """Rejections for a symbol, in total or for one reason."""
        with self._lock:
            return self._rejections[symbol][reason if reason is not None else 'total']

    def get_statistics(self) -> Dict[str, Dict[str, int]]:
        """Evaluations and rejections per symbol."""
        with self._lock:
            stats = {}
            for symbol, evaluated in self._evaluations.items():
                counts = self._rejections.get(symbol, Counter())
                stats[symbol] = {
                    'evaluated': evaluated,
                    'rejected': counts['total'],
                    **{k.value: v for k, v in counts.items() if isinstance(k, RejectionReason)},
                }
            return stats

    def reset(self) -> None:
        with self._lock:
            self._rejections.clear()
            self._evaluations.clear()
