"""
Candlestick and chart pattern recognition.
"""

from .candlestick import (
    CandlestickPatternDetector,
    CandlestickRecognizer,
    DojiDetector,
    EngulfingDetector,
    HammerDetector,
    ShootingStarDetector,
    ThreeCandleTrendDetector,
)
from .chart import (
    ChartPatternDetector,
    ChartPatternRecognizer,
    DoubleTopDetector,
    HeadAndShouldersDetector,
    TriangleDetector,
    find_peaks,
    find_troughs,
    support_resistance,
)
from .recognizer import PatternRecognizer, combine_signals, select_primary

__all__ = [
    "CandlestickPatternDetector",
    "CandlestickRecognizer",
    "DojiDetector",
    "EngulfingDetector",
    "HammerDetector",
    "ShootingStarDetector",
    "ThreeCandleTrendDetector",
    "ChartPatternDetector",
    "ChartPatternRecognizer",
    "DoubleTopDetector",
    "HeadAndShouldersDetector",
    "TriangleDetector",
    "find_peaks",
    "find_troughs",
    "support_resistance",
    "PatternRecognizer",
    "combine_signals",
    "select_primary",
]
