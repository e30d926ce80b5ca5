"""
Time-Series Buffer

Per-symbol bounded history of ticks and candles. The feed appends, the
prediction engine reads immutable snapshots. Each symbol owns its own
lock, so readers and writers of different symbols never contend.

Capacity is fixed (default 1000 ticks and 1000 candles); overflow drops
the oldest entries.
"""

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Deque, Dict, Iterable, List, Optional, Tuple

from ..exceptions import InvalidMarketDataError
from ..logger import get_logger
from ..models.market_data import Candle, Tick
from ..models.symbols import get_symbol_spec


logger = get_logger(__name__)

MAX_BUFFER_SIZE = 1000


@dataclass(frozen=True)
class BufferSnapshot:
    """Immutable copy of one symbol's buffer at a point in time."""
    symbol: str
    ticks: Tuple[Tick, ...] = ()
    candles: Tuple[Candle, ...] = ()
    ticks_since_spike: int = 0
    last_spike_at: Optional[datetime] = None
    
    @property
    def is_empty(self) -> bool:
        return not self.ticks and not self.candles
    
    @property
    def latest_price(self) -> Optional[Decimal]:
        """Most recent observed price, preferring ticks."""
        if self.ticks:
            return self.ticks[-1].price
        if self.candles:
            return self.candles[-1].close
        return None
    
    @property
    def latest_timestamp(self) -> Optional[datetime]:
        stamps = []
        if self.ticks:
            stamps.append(self.ticks[-1].timestamp)
        if self.candles:
            stamps.append(self.candles[-1].timestamp)
        return max(stamps) if stamps else None


class SymbolBuffer:
    """
    Bounded tick and candle history for a single symbol.
    
    All access goes through the instance lock. Spike bookkeeping for
    Boom/Crash indices is updated on every tick: a move larger than the
    symbol's spike threshold (in percent) in the index's spike direction
    resets the counter.
    """
    
    def __init__(self, symbol: str, max_ticks: int = MAX_BUFFER_SIZE, max_candles: int = MAX_BUFFER_SIZE):
        self.symbol = symbol
        self._ticks: Deque[Tick] = deque(maxlen=max_ticks)
        self._candles: Deque[Candle] = deque(maxlen=max_candles)
        self._lock = threading.RLock()
        
        spec = get_symbol_spec(symbol, allow_unknown=True)
        self._spike_direction = 0
        if spec.is_spike_type:
            self._spike_direction = 1 if symbol.startswith("BOOM") else -1
        self._spike_threshold_pct = spec.parameters.spike_threshold
        self._ticks_since_spike = 0
        self._last_spike_at: Optional[datetime] = None
    
    def _check_symbol(self, record_symbol: str) -> None:
        if record_symbol != self.symbol:
            raise InvalidMarketDataError(
                f"Record for {record_symbol} appended to buffer of {self.symbol}"
            )
    
    def append_tick(self, tick: Tick) -> None:
        """Append a tick; timestamps must not go backwards."""
        self._check_symbol(tick.symbol)
        with self._lock:
            previous = self._ticks[-1] if self._ticks else None
            if previous is not None and tick.timestamp < previous.timestamp:
                raise InvalidMarketDataError(
                    f"Out-of-order tick for {self.symbol}: {tick.timestamp} < {previous.timestamp}"
                )
            self._ticks.append(tick)
            self._track_spike(previous, tick)
    
    def _track_spike(self, previous: Optional[Tick], tick: Tick) -> None:
        if self._spike_direction == 0:
            return
        if previous is None:
            return
        change_pct = float((tick.price - previous.price) / previous.price) * 100
        if change_pct * self._spike_direction > self._spike_threshold_pct:
            self._ticks_since_spike = 0
            self._last_spike_at = tick.timestamp
            logger.debug(f"Spike detected on {self.symbol}: {change_pct:+.4f}%")
        else:
            self._ticks_since_spike += 1
    
    def append_candle(self, candle: Candle) -> None:
        """
        Append a candle.
        
        A candle with the same timestamp as the latest one replaces it (the
        feed is updating the in-progress bar); an older timestamp is invalid.
        """
        self._check_symbol(candle.symbol)
        with self._lock:
            if self._candles:
                last = self._candles[-1]
                if candle.timestamp == last.timestamp:
                    self._candles[-1] = candle
                    return
                if candle.timestamp < last.timestamp:
                    raise InvalidMarketDataError(
                        f"Out-of-order candle for {self.symbol}: {candle.timestamp} < {last.timestamp}"
                    )
            self._candles.append(candle)
    
    def last_n_ticks(self, n: int) -> List[Tick]:
        with self._lock:
            if n <= 0:
                return []
            return list(self._ticks)[-n:]
    
    def last_n_candles(self, n: int) -> List[Candle]:
        with self._lock:
            if n <= 0:
                return []
            return list(self._candles)[-n:]
    
    def snapshot(self) -> BufferSnapshot:
        with self._lock:
            return BufferSnapshot(
                symbol=self.symbol,
                ticks=tuple(self._ticks),
                candles=tuple(self._candles),
                ticks_since_spike=self._ticks_since_spike,
                last_spike_at=self._last_spike_at,
            )
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._candles)


class BufferManager:
    """
    Owner of every SymbolBuffer.
    
    The manager lock only guards creation of new buffers; reads and
    appends take the per-symbol lock.
    """
    
    def __init__(self, max_ticks: int = MAX_BUFFER_SIZE, max_candles: int = MAX_BUFFER_SIZE):
        self.max_ticks = max_ticks
        self.max_candles = max_candles
        self._buffers: Dict[str, SymbolBuffer] = {}
        self._lock = threading.Lock()
    
    def get_buffer(self, symbol: str) -> SymbolBuffer:
        """Return the buffer for symbol, creating it on first use."""
        symbol = symbol.upper().strip()
        buffer = self._buffers.get(symbol)
        if buffer is not None:
            return buffer
        with self._lock:
            buffer = self._buffers.get(symbol)
            if buffer is None:
                buffer = SymbolBuffer(symbol, self.max_ticks, self.max_candles)
                self._buffers[symbol] = buffer
                logger.debug(f"Created buffer for {symbol}")
            return buffer
    
    def append_tick(self, tick: Tick) -> None:
        self.get_buffer(tick.symbol).append_tick(tick)
    
    def append_candle(self, candle: Candle) -> None:
        self.get_buffer(candle.symbol).append_candle(candle)
    
    def extend_candles(self, candles: Iterable[Candle]) -> None:
        for candle in candles:
            self.append_candle(candle)
    
    def last_n_ticks(self, symbol: str, n: int) -> List[Tick]:
        return self.get_buffer(symbol).last_n_ticks(n)
    
    def last_n_candles(self, symbol: str, n: int) -> List[Candle]:
        return self.get_buffer(symbol).last_n_candles(n)
    
    def snapshot(self, symbol: str) -> BufferSnapshot:
        """Snapshot of symbol's buffer; empty when nothing was ever appended."""
        symbol = symbol.upper().strip()
        buffer = self._buffers.get(symbol)
        if buffer is None:
            return BufferSnapshot(symbol=symbol)
        return buffer.snapshot()
    
    def symbols(self) -> List[str]:
        with self._lock:
            return sorted(self._buffers)
    
    def clear(self, symbol: Optional[str] = None) -> None:
        with self._lock:
            if symbol is None:
                self._buffers.clear()
            else:
                self._buffers.pop(symbol.upper().strip(), None)


def candles_from_ticks(ticks: Iterable[Tick], interval_seconds: int) -> List[Candle]:
    """
    Build OHLC candles from ticks by bucketing on floor(epoch / interval).
    
    Volume is the number of ticks in the bucket.
    """
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")
    
    candles: List[Candle] = []
    bucket_key = None
    bucket: List[Tick] = []
    
    def flush():
        prices = [t.price for t in bucket]
        candles.append(Candle(
            symbol=bucket[0].symbol,
            timestamp=datetime.fromtimestamp(bucket_key * interval_seconds, tz=timezone.utc),
            open=prices[0],
            high=max(prices),
            low=min(prices),
            close=prices[-1],
            volume=Decimal(len(prices)),
        ))
    
    for tick in ticks:
        key = tick.epoch // interval_seconds
        if bucket and key != bucket_key:
            flush()
            bucket = []
        bucket_key = key
        bucket.append(tick)
    
    if bucket:
        flush()
    
    return candles
