"""
Timeframe to candle request resolution.

Maps a UI timeframe (or a custom date range) onto the candle resolution and
the unix-second window to fetch.
"""

import time
from typing import Dict, Optional, Tuple

from ..database.models import FetchRequest, normalize_symbol

DAY_SECONDS = 24 * 60 * 60

# timeframe -> (lookback days, resolution)
TIMEFRAMES: Dict[str, Tuple[int, str]] = {
    '1D': (1, '15'),      # 15-minute candles
    '5D': (5, '60'),      # 1-hour candles
    '1M': (30, 'D'),
    '6M': (180, 'D'),
    '1Y': (365, 'W'),
    '5Y': (1825, 'W'),
    'Max': (7300, 'W'),
}

DEFAULT_TIMEFRAME = '6M'
INTRADAY_RESOLUTIONS = ('1', '5', '15', '30', '60')


def custom_resolution(from_ts: int, to_ts: int) -> str:
    """Pick a resolution for an arbitrary range by its span."""
    span_days = (to_ts - from_ts) / DAY_SECONDS
    if span_days <= 7:
        return '60'
    if span_days <= 730:
        return 'D'
    return 'W'


def resolve_request(symbol: str, timeframe: str,
                    custom_range: Optional[Tuple[int, int]] = None,
                    now: Optional[int] = None) -> FetchRequest:
    """Build the candle fetch request for a timeframe or custom range."""
    symbol = normalize_symbol(symbol)

    if custom_range is not None:
        from_ts, to_ts = (int(v) for v in custom_range)
        if from_ts >= to_ts:
            raise ValueError(f"Invalid custom range: {from_ts} >= {to_ts}")
        return FetchRequest(symbol=symbol, resolution=custom_resolution(from_ts, to_ts),
                            from_ts=from_ts, to_ts=to_ts)

    now = int(now if now is not None else time.time())
    days, resolution = TIMEFRAMES.get(timeframe, TIMEFRAMES[DEFAULT_TIMEFRAME])
    return FetchRequest(symbol=symbol, resolution=resolution,
                        from_ts=now - days * DAY_SECONDS, to_ts=now)


def time_format(resolution: str) -> str:
    """strftime pattern for the time axis of a given resolution."""
    if resolution in INTRADAY_RESOLUTIONS:
        return '%b %d %H:%M'
    if resolution == 'D':
        return '%b %d'
    return '%b %Y'
