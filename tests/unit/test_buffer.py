"""
Unit tests for the per-symbol market data buffers.
"""

import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from augur.data.buffer import BufferManager, SymbolBuffer, candles_from_ticks
from augur.exceptions import InvalidMarketDataError
from augur.models.market_data import Candle, Tick


BASE_TIME = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def build_ticks(prices, symbol="R_75", step=timedelta(seconds=2)):
    return [
        Tick(symbol=symbol, price=Decimal(str(p)), timestamp=BASE_TIME + step * i)
        for i, p in enumerate(prices)
    ]


def build_candles(closes, symbol="R_75"):
    candles = []
    previous = closes[0]
    for i, close in enumerate(closes):
        candles.append(Candle(
            symbol=symbol,
            timestamp=BASE_TIME + timedelta(minutes=i),
            open=Decimal(str(previous)),
            high=Decimal(str(max(previous, close) + 1)),
            low=Decimal(str(min(previous, close) - 1)),
            close=Decimal(str(close)),
        ))
        previous = close
    return candles


class TestSymbolBuffer:
    """Test capacity, ordering and spike bookkeeping."""

    def test_drop_oldest_at_capacity(self):
        buffer = SymbolBuffer("R_75", max_ticks=10, max_candles=10)
        for tick in build_ticks([500 + i for i in range(15)]):
            buffer.append_tick(tick)

        ticks = buffer.last_n_ticks(100)
        assert len(ticks) == 10
        assert ticks[0].price == Decimal('505')
        assert ticks[-1].price == Decimal('514')

    def test_out_of_order_tick_rejected(self):
        buffer = SymbolBuffer("R_75")
        ticks = build_ticks([500, 501])
        buffer.append_tick(ticks[1])

        with pytest.raises(InvalidMarketDataError):
            buffer.append_tick(ticks[0])

    def test_wrong_symbol_rejected(self):
        buffer = SymbolBuffer("R_75")
        with pytest.raises(InvalidMarketDataError):
            buffer.append_tick(build_ticks([500], symbol="R_50")[0])

    def test_same_timestamp_candle_replaces_last(self):
        buffer = SymbolBuffer("R_75")
        first, second = build_candles([500, 501])
        buffer.append_candle(first)
        buffer.append_candle(second)

        updated = Candle(
            symbol="R_75",
            timestamp=second.timestamp,
            open=second.open,
            high=Decimal('510'),
            low=second.low,
            close=Decimal('509'),
        )
        buffer.append_candle(updated)

        candles = buffer.last_n_candles(10)
        assert len(candles) == 2
        assert candles[-1].close == Decimal('509')

    def test_older_candle_rejected(self):
        buffer = SymbolBuffer("R_75")
        first, second = build_candles([500, 501])
        buffer.append_candle(second)

        with pytest.raises(InvalidMarketDataError):
            buffer.append_candle(first)

    def test_last_n_non_positive(self):
        buffer = SymbolBuffer("R_75")
        buffer.append_tick(build_ticks([500])[0])
        assert buffer.last_n_ticks(0) == []

    def test_boom_spike_resets_counter(self):
        buffer = SymbolBuffer("BOOM1000")
        # 0.01% moves then a 0.5% up move
        prices = [1000.0, 1000.1, 1000.2, 1000.3, 1005.3, 1005.4]
        for tick in build_ticks(prices, symbol="BOOM1000"):
            buffer.append_tick(tick)

        snapshot = buffer.snapshot()
        assert snapshot.ticks_since_spike == 1
        assert snapshot.last_spike_at == BASE_TIME + timedelta(seconds=8)

    def test_crash_ignores_up_moves(self):
        buffer = SymbolBuffer("CRASH1000")
        for tick in build_ticks([1000.0, 1010.0, 1020.0], symbol="CRASH1000"):
            buffer.append_tick(tick)

        snapshot = buffer.snapshot()
        assert snapshot.ticks_since_spike == 2
        assert snapshot.last_spike_at is None

    def test_snapshot_is_immutable_copy(self):
        buffer = SymbolBuffer("R_75")
        ticks = build_ticks([500, 501, 502])
        buffer.append_tick(ticks[0])
        snapshot = buffer.snapshot()
        buffer.append_tick(ticks[1])

        assert len(snapshot.ticks) == 1
        assert isinstance(snapshot.ticks, tuple)
        assert snapshot.latest_price == Decimal('500')


class TestBufferManager:
    """Test per-symbol ownership."""

    def setup_method(self):
        self.manager = BufferManager(max_ticks=50, max_candles=50)

    def test_unknown_symbol_snapshot_is_empty(self):
        snapshot = self.manager.snapshot("r_75")
        assert snapshot.symbol == "R_75"
        assert snapshot.is_empty
        assert snapshot.latest_price is None
        assert self.manager.symbols() == []

    def test_symbols_are_isolated(self):
        self.manager.extend_candles(build_candles([500, 501, 502], symbol="R_75"))
        self.manager.append_tick(build_ticks([100], symbol="R_10")[0])

        assert self.manager.symbols() == ["R_10", "R_75"]
        assert len(self.manager.last_n_candles("R_75", 10)) == 3
        assert self.manager.last_n_candles("R_10", 10) == []
        assert len(self.manager.last_n_ticks("R_10", 10)) == 1

    def test_snapshot_latest_timestamp(self):
        candles = build_candles([500, 501, 502])
        self.manager.extend_candles(candles)
        assert self.manager.snapshot("R_75").latest_timestamp == candles[-1].timestamp

    def test_clear(self):
        self.manager.extend_candles(build_candles([500, 501]))
        self.manager.clear("R_75")
        assert self.manager.snapshot("R_75").is_empty

    def test_concurrent_appends_on_different_symbols(self):
        symbols = ["R_10", "R_25", "R_50", "R_75"]

        def feed(symbol):
            for tick in build_ticks([100 + i for i in range(40)], symbol=symbol):
                self.manager.append_tick(tick)

        threads = [threading.Thread(target=feed, args=(s,)) for s in symbols]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for symbol in symbols:
            assert len(self.manager.last_n_ticks(symbol, 100)) == 40


class TestCandlesFromTicks:
    """Test tick bucketing."""

    def test_bucketing_by_interval(self):
        ticks = build_ticks([500, 502, 499, 501, 505, 503], step=timedelta(seconds=20))
        candles = candles_from_ticks(ticks, 60)

        assert len(candles) == 2
        first, second = candles
        assert first.open == Decimal('500')
        assert first.high == Decimal('502')
        assert first.low == Decimal('499')
        assert first.close == Decimal('499')
        assert first.volume == Decimal('3')
        assert second.close == Decimal('503')
        assert second.timestamp == BASE_TIME + timedelta(minutes=1)

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            candles_from_ticks([], 0)

    def test_no_ticks(self):
        assert candles_from_ticks([], 60) == []
