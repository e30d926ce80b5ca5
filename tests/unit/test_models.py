"""
Unit tests for market data, symbol reference data and directive models.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from augur.exceptions import UnknownSymbolError
from augur.models.market_data import Candle, Tick, Timeframe
from augur.models.signals import (
    Direction,
    DirectiveMode,
    GateState,
    PredictionSignal,
    SignalSource,
    TradingDirective,
)
from augur.models.symbols import SymbolType, get_symbol_spec, price_to_pips


def create_test_candle(
    open_price: str = "500",
    high: str = "505",
    low: str = "495",
    close: str = "502",
    volume=None,
) -> Candle:
    return Candle(
        symbol="r_75",
        timestamp=datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc),
        open=open_price,
        high=high,
        low=low,
        close=close,
        volume=volume,
    )


def directive_kwargs(**overrides) -> dict:
    values = dict(
        symbol="R_75",
        timeframe="5m",
        direction=Direction.UP,
        confidence=0.7,
        entry_price=Decimal('100'),
        stop_loss=Decimal('99'),
        take_profit=Decimal('102'),
        risk_reward_ratio=2.0,
        max_drawdown_pips=1000,
        target_pips=2000,
        position_size_fraction=0.02,
        gate_state=GateState.VALID,
        mode=DirectiveMode.ENSEMBLE,
    )
    values.update(overrides)
    return values


class TestCandle:
    """Test candle validation and helpers."""

    def test_symbol_normalized(self):
        assert create_test_candle().symbol == "R_75"

    def test_helpers(self):
        candle = create_test_candle()
        assert candle.body_size == Decimal('2')
        assert candle.upper_shadow == Decimal('3')
        assert candle.lower_shadow == Decimal('5')
        assert candle.total_range == Decimal('10')
        assert candle.is_bullish
        assert candle.typical_price == (Decimal('505') + Decimal('495') + Decimal('502')) / 3

    def test_high_below_close_rejected(self):
        with pytest.raises(ValidationError):
            create_test_candle(high="501")

    def test_low_above_open_rejected(self):
        with pytest.raises(ValidationError):
            create_test_candle(low="501")

    def test_negative_volume_rejected(self):
        with pytest.raises(ValidationError):
            create_test_candle(volume="-1")

    def test_from_deriv_epoch(self):
        candle = Candle.from_deriv(
            {"open": 1, "high": 2, "low": 0.5, "close": 1.5, "epoch": 1705309200},
            symbol="R_10",
        )
        assert candle.timestamp == datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert candle.epoch == 1705309200
        assert candle.volume is None


class TestTick:
    """Test tick parsing."""

    def test_non_positive_price_rejected(self):
        with pytest.raises(ValidationError):
            Tick(symbol="R_75", price="0", timestamp=1705309200)

    def test_from_deriv_pip_size_decimals(self):
        tick = Tick.from_deriv({"symbol": "R_75", "quote": 512.3456, "epoch": 1705309200, "pip_size": 4})
        assert tick.pip_size == Decimal('0.0001')
        assert tick.price == Decimal('512.3456')

    def test_millisecond_epoch(self):
        tick = Tick(symbol="R_75", price="1", timestamp=1705309200000)
        assert tick.epoch == 1705309200


class TestTimeframe:

    def test_seconds_and_minutes(self):
        assert Timeframe("5m").seconds == 300
        assert Timeframe.ONE_HOUR.minutes == 60

    def test_unknown_label(self):
        with pytest.raises(ValueError):
            Timeframe("2h")


class TestSymbolSpec:
    """Test reference data lookup."""

    def test_known_spike_index(self):
        spec = get_symbol_spec("BOOM500")
        assert spec.symbol_type == SymbolType.BOOM
        assert spec.spike_interval == 500
        assert spec.base_stop_loss == 0.005
        assert spec.max_realistic_gain("5m") == 0.015

    def test_unknown_symbol_falls_back(self):
        spec = get_symbol_spec("stpRNG")
        assert spec.symbol == "STPRNG"
        assert spec.symbol_type == SymbolType.VOLATILITY
        reference = get_symbol_spec("R_25")
        assert spec.parameters == reference.parameters
        assert spec.volatility == reference.volatility
        assert spec.base_stop_loss == 0.004
        assert spec.max_gains == reference.max_gains
        assert spec.max_realistic_gain("5m") == 0.012

    def test_unknown_symbol_rejected_when_disabled(self):
        with pytest.raises(UnknownSymbolError):
            get_symbol_spec("STPRNG", allow_unknown=False)

    def test_volatility_profile_scaling_is_clamped(self):
        profile = get_symbol_spec("R_50").volatility
        assert profile.scaled(10).typical_move_size == pytest.approx(profile.typical_move_size * 2)
        assert profile.scaled(0.1).hourly_range == pytest.approx(profile.hourly_range * 0.5)

    def test_pip_conversion(self):
        assert price_to_pips(Decimal('0.5'), "R_75") == 500
        assert price_to_pips(Decimal('-0.5'), "CRASH1000") == 500
        assert price_to_pips(Decimal('0.5'), "FRXEURUSD") == 50


class TestTradingDirective:
    """Test the directive's geometry invariants."""

    def test_valid_up_directive(self):
        directive = TradingDirective(**directive_kwargs())
        assert directive.actionable
        assert '"direction":"UP"' in directive.model_dump_json()

    def test_up_directive_with_stop_above_entry_rejected(self):
        with pytest.raises(ValidationError):
            TradingDirective(**directive_kwargs(stop_loss=Decimal('101')))

    def test_valid_down_directive(self):
        directive = TradingDirective(**directive_kwargs(
            direction=Direction.DOWN,
            stop_loss=Decimal('101'),
            take_profit=Decimal('98'),
        ))
        assert directive.direction == Direction.DOWN

    def test_down_directive_with_long_geometry_rejected(self):
        with pytest.raises(ValidationError):
            TradingDirective(**directive_kwargs(direction=Direction.DOWN))

    def test_inconsistent_risk_reward_rejected(self):
        with pytest.raises(ValidationError):
            TradingDirective(**directive_kwargs(risk_reward_ratio=1.5))

    @pytest.mark.parametrize("confidence", [0.0, 1.0])
    def test_confidence_must_be_open_interval(self, confidence):
        with pytest.raises(ValidationError):
            TradingDirective(**directive_kwargs(confidence=confidence))

    def test_directive_is_frozen(self):
        directive = TradingDirective(**directive_kwargs())
        with pytest.raises(ValidationError):
            directive.confidence = 0.8


class TestDirection:

    def test_sign_and_opposite(self):
        assert Direction.UP.sign == 1
        assert Direction.DOWN.opposite == Direction.UP
        assert Direction.NEUTRAL.sign == 0

    def test_neutral_signal(self):
        signal = PredictionSignal.neutral(SignalSource.EXTERNAL)
        assert signal.direction == Direction.NEUTRAL
        assert signal.confidence == 0.5
