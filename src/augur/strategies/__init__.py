"""
Analysis strategies: patterns, timeframe confluence, volume, the local
statistical signal and prompt rendering for the inference service.
"""

from .narrative_generator import NarrativeConfiguration, NarrativeStyle, PromptBuilder
from .patterns import PatternRecognizer
from .statistical_signal import StatisticalSignalGenerator
from .timeframe_analyzer import MultiTimeframeAnalyzer
from .volume_analyzer import VolumeAnalyzer

__all__ = [
    "NarrativeConfiguration",
    "NarrativeStyle",
    "PromptBuilder",
    "PatternRecognizer",
    "StatisticalSignalGenerator",
    "MultiTimeframeAnalyzer",
    "VolumeAnalyzer",
]
