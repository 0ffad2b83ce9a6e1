"""Shared fixtures for the price chart tests."""

import math
from typing import List, Optional, Sequence

import pytest
import pytest_asyncio

from price_charts.database.models import Candle

DAY = 24 * 60 * 60
START = 1_700_006_400  # 2023-11-15 00:00 UTC


def make_candles(closes: Sequence[float], start: int = START, step: int = DAY,
                 volume: float = 1000.0) -> List[Candle]:
    """Candles whose open is the previous close."""
    candles = []
    for i, close in enumerate(closes):
        open_ = closes[i - 1] if i else close
        candles.append(Candle(
            time=start + i * step,
            open=open_,
            high=max(open_, close) + 1,
            low=min(open_, close) - 1,
            close=close,
            volume=volume + i,
        ))
    return candles


def wave(count: int, base: float = 100.0) -> List[float]:
    """Deterministic closes that go both up and down."""
    return [round(base + 10 * math.sin(i / 4) + i * 0.2, 4) for i in range(count)]


def to_payload(candles: Sequence[Candle]) -> dict:
    return {
        "s": "ok",
        "t": [c.time for c in candles],
        "o": [c.open for c in candles],
        "h": [c.high for c in candles],
        "l": [c.low for c in candles],
        "c": [c.close for c in candles],
        "v": [c.volume for c in candles],
    }


@pytest.fixture
def candle_factory():
    return make_candles


@pytest.fixture
def wave_closes():
    return wave


@pytest.fixture
def payload_factory():
    return to_payload


@pytest.fixture
def daily_candles() -> List[Candle]:
    return make_candles(wave(60))


@pytest.fixture
def chart_env(tmp_path, monkeypatch):
    """Point the database and .env file at a temporary directory."""
    from price_charts import config

    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "charts.db"))
    monkeypatch.setenv("DEFAULT_CHART_TYPE", "candlestick")
    monkeypatch.setenv("DEFAULT_TIMEFRAME", "6M")
    monkeypatch.setenv("REPORTS_DIR", str(tmp_path / "reports"))
    monkeypatch.setattr(config, "ENV_PATH", tmp_path / ".env")
    return tmp_path


@pytest_asyncio.fixture
async def database(chart_env):
    from price_charts.database.connection import init_database

    await init_database()
    return chart_env


class FakeFetcher:
    """Async candle fetch stand-in.

    ``payloads`` maps symbol to the payload to return; ``gates`` maps symbol
    to an asyncio.Event the fetch waits on first.
    """

    def __init__(self, payloads: Optional[dict] = None, error: Optional[Exception] = None):
        self.payloads = dict(payloads or {})
        self.gates = {}
        self.error = error
        self.calls = []

    async def __call__(self, symbol, resolution, from_ts, to_ts):
        self.calls.append((symbol, resolution, from_ts, to_ts))
        gate = self.gates.get(symbol)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return self.payloads.get(symbol, {"s": "no_data"})


@pytest.fixture
def fetcher_factory():
    return FakeFetcher
