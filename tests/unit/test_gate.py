"""
Unit tests for the validation gate and the fallback geometry.
"""

import threading
from decimal import Decimal

import pytest

from augur.ensemble import (
    CombinationMode,
    CombinationResult,
    RiskProfile,
    ValidationGate,
    fallback_levels,
    fallback_position,
    rejected_levels,
)
from augur.ensemble.risk import build_levels
from augur.models.signals import Direction, GateState, PredictionSignal, RejectionReason, SignalSource


def combination(direction=Direction.UP, raw=0.7, mode=CombinationMode.AGREEMENT, reasons=None):
    return CombinationResult(
        signal=PredictionSignal(direction=direction, confidence=min(max(raw, 0.5), 0.85), source=SignalSource.ENSEMBLE),
        raw_confidence=raw,
        mode=mode,
        reasons=list(reasons or []),
    )


def levels(stop="99", target="102"):
    return build_levels(Decimal('100'), Decimal(stop), Decimal(target), "R_75")


class TestValidationGate:
    """Test VALID/REJECTED decisions and counters."""

    def setup_method(self):
        self.gate = ValidationGate(RiskProfile(name="conservative"))

    def test_valid_call(self):
        decision = self.gate.evaluate("R_75", combination(), levels())
        assert decision.is_valid
        assert decision.state == GateState.VALID
        assert decision.reasons == []

    def test_combiner_reasons_reject(self):
        decision = self.gate.evaluate(
            "R_75", combination(reasons=[RejectionReason.RSI_EXHAUSTION]), levels()
        )
        assert decision.state == GateState.REJECTED
        assert decision.reasons == [RejectionReason.RSI_EXHAUSTION]

    def test_neutral_has_no_direction(self):
        decision = self.gate.evaluate("R_75", combination(direction=Direction.NEUTRAL), None)
        assert decision.reasons == [RejectionReason.NO_DIRECTION]

    def test_confidence_floor_uses_raw_value(self):
        decision = self.gate.evaluate("R_75", combination(raw=0.55), levels())
        assert decision.reasons == [RejectionReason.CONFIDENCE_BELOW_FLOOR]

    def test_risk_reward_tolerance(self):
        at_minimum = self.gate.evaluate("R_75", combination(), levels(target="101.5"))
        below = self.gate.evaluate("R_75", combination(), levels(target="101.4"))

        assert at_minimum.is_valid
        assert below.reasons == [RejectionReason.RISK_REWARD_BELOW_MINIMUM]

    def test_profile_requiring_external(self):
        gate = ValidationGate(RiskProfile(name="strict", require_external=True))
        decision = gate.evaluate("R_75", combination(mode=CombinationMode.STATISTICAL_ONLY), levels())
        assert decision.reasons == [RejectionReason.NO_EXTERNAL_OPINION]

    def test_data_quality_block(self):
        decision = self.gate.evaluate("R_75", combination(), levels(), data_quality_ok=False)
        assert decision.reasons == [RejectionReason.DATA_QUALITY]

    def test_duplicate_reasons_collapsed(self):
        decision = self.gate.evaluate(
            "R_75",
            combination(direction=Direction.NEUTRAL, raw=0.5, reasons=[RejectionReason.NO_DIRECTION]),
            None,
        )
        assert decision.reasons == [RejectionReason.NO_DIRECTION, RejectionReason.CONFIDENCE_BELOW_FLOOR]

    def test_rejection_counters(self):
        self.gate.evaluate("R_75", combination(raw=0.55), levels())
        self.gate.evaluate("R_75", combination(raw=0.55), levels(), data_quality_ok=False)
        self.gate.evaluate("R_75", combination(), levels())
        self.gate.evaluate("R_10", combination(), levels())

        assert self.gate.rejection_count("R_75") == 2
        assert self.gate.rejection_count("R_75", RejectionReason.CONFIDENCE_BELOW_FLOOR) == 2
        assert self.gate.rejection_count("R_75", RejectionReason.DATA_QUALITY) == 1
        assert self.gate.rejection_count("R_10") == 0

        stats = self.gate.get_statistics()
        assert stats["R_75"]["evaluated"] == 3
        assert stats["R_75"]["rejected"] == 2
        assert stats["R_75"]["CONFIDENCE_BELOW_FLOOR"] == 2
        assert stats["R_10"] == {"evaluated": 1, "rejected": 0}

        self.gate.reset()
        assert self.gate.get_statistics() == {}

    def test_counters_are_thread_safe(self):
        def worker():
            for _ in range(100):
                self.gate.evaluate("R_75", combination(raw=0.55), levels())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert self.gate.rejection_count("R_75") == 400


class TestFallbackGeometry:
    """Test statistical-only and rejected geometry."""

    def test_fallback_levels_up(self):
        result = fallback_levels(Decimal('1000'), Direction.UP, "R_75")
        assert result.stop_loss == Decimal('985.00000000')
        assert result.take_profit == Decimal('1025.00000000')
        assert result.risk_reward_ratio == pytest.approx(25 / 15)

    def test_fallback_levels_down(self):
        result = fallback_levels(Decimal('1000'), Direction.DOWN, "R_75")
        assert result.stop_loss == Decimal('1015.00000000')
        assert result.take_profit == Decimal('975.00000000')

    @pytest.mark.parametrize("confluence,expected", [
        (0.5, 0.02),
        (0.9, 0.03),
        (0.05, 0.005),
    ])
    def test_fallback_position(self, confluence, expected):
        assert fallback_position(confluence, RiskProfile(name="conservative")) == pytest.approx(expected)

    def test_rejected_levels(self):
        profile = RiskProfile(name="conservative")
        up = rejected_levels(Decimal('1000'), Direction.UP, profile, "R_75")
        neutral = rejected_levels(Decimal('1000'), Direction.NEUTRAL, profile, "R_75")
        down = rejected_levels(Decimal('1000'), Direction.DOWN, profile, "R_75")

        assert up.stop_loss == Decimal('995.00000000')
        assert up.take_profit == Decimal('1007.50000000')
        assert neutral == up
        assert down.stop_loss == Decimal('1005.00000000')
        assert down.risk_reward_ratio == pytest.approx(profile.min_risk_reward)
