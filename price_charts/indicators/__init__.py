# Price Charts - Indicators Package
"""
Technical indicator calculations.

- engine: SMA, EMA, MACD, RSI, Bollinger Bands
- periods: which SMA periods suit each timeframe
- overlays: bundles of enabled series and their cache
"""

from .engine import sma, ema, macd, rsi, bollinger_bands
from .periods import available_periods, CANONICAL_PERIODS, SMA_CONFIGS
from .overlays import compute_overlays, OverlayCache

__all__ = [
    "sma",
    "ema",
    "macd",
    "rsi",
    "bollinger_bands",
    "available_periods",
    "CANONICAL_PERIODS",
    "SMA_CONFIGS",
    "compute_overlays",
    "OverlayCache",
]
