"""
Market data buffering.
"""

from .buffer import BufferManager, BufferSnapshot, SymbolBuffer, candles_from_ticks

__all__ = [
    "BufferManager",
    "BufferSnapshot",
    "SymbolBuffer",
    "candles_from_ticks",
]
