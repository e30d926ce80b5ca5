"""
Pytest configuration and fixtures for Augur tests.
"""

import os

# Keep test runs from writing log files
os.environ["AUGUR_LOG_FILE"] = ""

import math
import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Callable, Generator, List, Optional, Sequence
from unittest.mock import patch

import pytest

from augur.config import Config
from augur.config_manager import ConfigManager
from augur.models.market_data import Candle, Tick


BASE_TIME = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def build_candles(
    closes: Sequence[float],
    symbol: str = "R_75",
    volumes: Optional[Sequence[float]] = None,
    start: datetime = BASE_TIME,
    interval: timedelta = timedelta(minutes=1),
    spread: float = 0.001,
) -> List[Candle]:
    """Candles opening at the previous close, with a small wick around the body."""
    candles = []
    previous = closes[0]
    for i, close in enumerate(closes):
        open_ = previous
        body_high = max(open_, close)
        body_low = min(open_, close)
        candles.append(Candle(
            symbol=symbol,
            timestamp=start + interval * i,
            open=Decimal(str(round(open_, 6))),
            high=Decimal(str(round(body_high * (1 + spread), 6))),
            low=Decimal(str(round(body_low * (1 - spread), 6))),
            close=Decimal(str(round(close, 6))),
            volume=Decimal(str(volumes[i])) if volumes is not None else None,
        ))
        previous = close
    return candles


def build_ticks(prices: Sequence[float], symbol: str = "R_75", start: datetime = BASE_TIME,
                step: timedelta = timedelta(seconds=2)) -> List[Tick]:
    return [
        Tick(symbol=symbol, price=Decimal(str(p)), timestamp=start + step * i)
        for i, p in enumerate(prices)
    ]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def mock_env_vars() -> Generator[dict, None, None]:
    """Mock environment variables for testing."""
    test_env = {
        "AUGUR_INFERENCE_ENDPOINT": "https://inference.test/v1/complete",
        "AUGUR_INFERENCE_API_KEY": "test-key",
        "AUGUR_INFERENCE_TIMEOUT": "25",
        "AUGUR_RISK_PROFILE": "standard",
        "AUGUR_MAX_CANDLES": "500",
        "AUGUR_LOG_LEVEL": "DEBUG",
        "AUGUR_LOG_FILE": "",
    }

    with patch.dict(os.environ, test_env, clear=False):
        yield test_env


@pytest.fixture
def test_config(mock_env_vars: dict) -> Config:
    """Create a test configuration instance."""
    return Config.load_from_env()


@pytest.fixture
def config_manager() -> ConfigManager:
    """Configuration manager reading the repository's config directory."""
    return ConfigManager()


@pytest.fixture
def empty_config_manager(temp_dir: Path) -> ConfigManager:
    """Configuration manager with no files, so built-in defaults apply."""
    return ConfigManager(temp_dir)


@pytest.fixture
def candle_factory() -> Callable[..., List[Candle]]:
    return build_candles


@pytest.fixture
def tick_factory() -> Callable[..., List[Tick]]:
    return build_ticks


@pytest.fixture
def uptrend_closes() -> List[float]:
    """Steady climb with a mild oscillation."""
    return [500 + i * 0.8 + math.sin(i / 3) * 0.5 for i in range(120)]


@pytest.fixture
def downtrend_closes() -> List[float]:
    """Steady decline with a mild oscillation."""
    return [700 - i * 0.8 + math.sin(i / 3) * 0.5 for i in range(120)]


@pytest.fixture
def flat_closes() -> List[float]:
    return [500.0 + math.sin(i / 2) * 0.3 for i in range(120)]
