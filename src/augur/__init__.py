"""
Augur: Ensemble Trading-Prediction Engine

Turns a rolling window of ticks and candles for a synthetic index into a
bounded, risk-managed trading directive by combining technical features,
pattern recognition, multi-timeframe confluence and volume analysis with an
externally produced directional opinion.
"""

__version__ = "0.1.0"
__author__ = "Augur Team"
__description__ = "Ensemble trading-prediction engine for synthetic indices"

# Package-level imports for convenience
from .config import Config
from .logger import get_logger

__all__ = ["Config", "get_logger", "__version__"]
