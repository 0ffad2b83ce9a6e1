# Price Charts - Main Package
"""
Price Charts: interactive price charts with technical indicator overlays.

This package provides:
- Indicator Engine: SMA, EMA, MACD, RSI and Bollinger Bands
- Chart Orchestrator: primary and subordinate panes on matplotlib
- Candle Provider: OHLCV candles from yfinance
- Web API: FastAPI endpoints for candles, indicators, images and preferences
- Database: SQLite storage for chart preferences
"""

__version__ = "1.0.0"
