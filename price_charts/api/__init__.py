# Price Charts - API Package
"""
FastAPI route handlers for the web API.

Routers:
- chart: Candles, indicators, chart images and chart preferences
- settings: Global chart defaults
"""

from . import chart
from . import settings

__all__ = [
    "chart",
    "settings"
]
