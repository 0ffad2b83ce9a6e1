# Price Charts - Data Package
"""
Candle data collaborators.

- candle_provider: yfinance-backed candle fetch with caching
"""

from .candle_provider import (
    CandleDataProvider,
    candle_provider,
    payload_to_candles,
)

__all__ = [
    "CandleDataProvider",
    "candle_provider",
    "payload_to_candles",
]
