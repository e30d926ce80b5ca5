"""
Ensemble layer: signal combination, risk sizing and the validation gate.
"""

from .risk import BUILTIN_PROFILES, RiskLevelsSizer, RiskProfile, SizingResult, build_levels
from .combiner import CombinationMode, CombinationResult, EnsembleCombiner
from .gate import GateDecision, ValidationGate, fallback_levels, fallback_position, rejected_levels

__all__ = [
    "BUILTIN_PROFILES",
    "RiskLevelsSizer",
    "RiskProfile",
    "SizingResult",
    "build_levels",
    "CombinationMode",
    "CombinationResult",
    "EnsembleCombiner",
    "GateDecision",
    "ValidationGate",
    "fallback_levels",
    "fallback_position",
    "rejected_levels",
]
