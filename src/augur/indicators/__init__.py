"""
Technical indicators and market regime classification.
"""

from .engine import IndicatorEngine
from .regime import RegimeClassifier, analyze_spike, session_strength

__all__ = [
    "IndicatorEngine",
    "RegimeClassifier",
    "analyze_spike",
    "session_strength",
]
