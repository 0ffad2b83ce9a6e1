"""
Candle Data Provider.

Fetches OHLCV candles from yfinance for a symbol, resolution and unix-second
window, and returns them in the compact wire shape the charts consume:
``{s, t[], o[], h[], l[], c[], v[]}``.

Responses are kept in a small LRU cache whose TTL depends on the
resolution, and concurrent requests for the same window share one download.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd
import yfinance as yf
from pydantic import ValidationError

from ..charts.errors import DataUnavailable
from ..database.models import Candle, CandlePayload, normalize_symbol

logger = logging.getLogger(__name__)

# resolution -> yfinance interval
INTERVALS = {
    '1': '1m',
    '5': '5m',
    '15': '15m',
    '30': '30m',
    '60': '1h',
    'D': '1d',
    'W': '1wk',
    'M': '1mo',
}

INTRADAY = ('1', '5', '15', '30', '60')

# Cache TTL by resolution type, in seconds
CACHE_TTL = {
    'intraday': 60,
    'daily': 300,
    'weekly': 1800,
}

# Thread pool for blocking yfinance calls
_executor = ThreadPoolExecutor(max_workers=4)


def get_cache_ttl(resolution: str) -> int:
    if resolution in INTRADAY:
        return CACHE_TTL['intraday']
    if resolution == 'D':
        return CACHE_TTL['daily']
    return CACHE_TTL['weekly']


def cache_key(symbol: str, resolution: str, from_ts: int, to_ts: int) -> str:
    return f"{symbol.upper()}:{resolution}:{from_ts}:{to_ts}"


def frame_to_payload(history: pd.DataFrame) -> CandlePayload:
    """Convert a yfinance history frame to the wire shape.

    Rows missing any of open/high/low/close are dropped; missing volume is 0.
    """
    if history is None or history.empty:
        return CandlePayload(s='no_data')

    frame = history.dropna(subset=['Open', 'High', 'Low', 'Close'])
    if frame.empty:
        return CandlePayload(s='no_data')

    return CandlePayload(
        s='ok',
        t=[int(ts.timestamp()) for ts in frame.index],
        o=frame['Open'].astype(float).tolist(),
        h=frame['High'].astype(float).tolist(),
        l=frame['Low'].astype(float).tolist(),
        c=frame['Close'].astype(float).tolist(),
        v=frame['Volume'].fillna(0).astype(float).tolist() if 'Volume' in frame else [0.0] * len(frame),
    )


def payload_to_candles(payload: Union[CandlePayload, Dict[str, Any]]) -> List[Candle]:
    """Turn a fetch payload into ascending candles.

    Raises:
        DataUnavailable: if the status is not ok or no valid point remains
    """
    if payload is None:
        raise DataUnavailable("No chart data available")
    if isinstance(payload, dict):
        try:
            payload = CandlePayload(**payload)
        except ValidationError as e:
            raise DataUnavailable(f"Malformed chart data: {e.error_count()} invalid fields") from e
    if payload.s != 'ok' or not payload.t:
        raise DataUnavailable("No chart data available")

    candles = []
    volumes = payload.v or [0.0] * len(payload.t)
    for t, o, h, l, c, v in zip(payload.t, payload.o, payload.h, payload.l, payload.c, volumes):
        if None in (t, o, h, l, c):
            continue
        candles.append(Candle(time=t, open=o, high=h, low=l, close=c, volume=v or 0.0))

    if not candles:
        raise DataUnavailable("No chart data available")

    candles.sort(key=lambda candle: candle.time)
    return candles


class CandleDataProvider:
    """
    Candle fetch collaborator backed by yfinance.

    - LRU cache (TTL by resolution)
    - Request deduplication for concurrent identical requests
    - Daily fallback when an intraday request returns nothing
    """

    def __init__(self, max_cache_size: int = 20):
        self.max_cache_size = max_cache_size
        self._cache: "OrderedDict[str, Tuple[float, CandlePayload]]" = OrderedDict()
        self._pending: Dict[str, asyncio.Future] = {}

    def _download(self, symbol: str, resolution: str,
                  from_ts: int, to_ts: int) -> CandlePayload:
        """Blocking yfinance download for one resolution."""
        interval = INTERVALS.get(resolution)
        if interval is None:
            raise ValueError(f"Unknown resolution: {resolution}")

        try:
            history = yf.Ticker(symbol).history(
                interval=interval,
                start=datetime.fromtimestamp(from_ts, tz=timezone.utc),
                end=datetime.fromtimestamp(to_ts, tz=timezone.utc),
            )
        except Exception as e:
            logger.error(f"Failed to fetch {interval} candles for {symbol}: {e}")
            history = pd.DataFrame()

        return frame_to_payload(history)

    def _fetch_sync(self, symbol: str, resolution: str,
                    from_ts: int, to_ts: int) -> CandlePayload:
        payload = self._download(symbol, resolution, from_ts, to_ts)

        # OTC/foreign symbols often lack intraday data
        if payload.s != 'ok' and resolution in INTRADAY:
            logger.info(f"Intraday ({resolution}) failed for {symbol}, trying daily fallback...")
            payload = self._download(symbol, 'D', from_ts, to_ts)
            if payload.s == 'ok':
                payload.fallback = True
                payload.original_resolution = resolution
                logger.info(f"Using daily fallback for {symbol} ({len(payload.t)} candles)")

        return payload

    def _get_cached(self, key: str, resolution: str) -> Optional[CandlePayload]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, payload = entry
        if time.time() - stored_at > get_cache_ttl(resolution):
            return None
        self._cache.move_to_end(key)
        return payload

    def _set_cached(self, key: str, payload: CandlePayload) -> None:
        if key in self._cache:
            del self._cache[key]
        elif len(self._cache) >= self.max_cache_size:
            self._cache.popitem(last=False)
        self._cache[key] = (time.time(), payload)

    async def fetch_candles(self, symbol: str, resolution: str, from_ts: int,
                            to_ts: int, force: bool = False) -> CandlePayload:
        """Fetch candles, serving from cache unless stale or ``force`` is set."""
        symbol = normalize_symbol(symbol)
        key = cache_key(symbol, resolution, from_ts, to_ts)

        if not force:
            cached = self._get_cached(key, resolution)
            if cached is not None:
                logger.debug(f"Cache hit for {key}")
                return cached

        pending = self._pending.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(_executor, self._fetch_sync, symbol, resolution, from_ts, to_ts)
        self._pending[key] = future
        try:
            payload = await asyncio.shield(future)
        finally:
            self._pending.pop(key, None)

        if payload.s == 'ok':
            self._set_cached(key, payload)
        return payload

    def clear_cache(self, symbol: Optional[str] = None) -> None:
        if symbol is None:
            self._cache.clear()
            return
        prefix = f"{symbol.upper()}:"
        for key in [k for k in self._cache if k.startswith(prefix)]:
            del self._cache[key]


# Global instance
candle_provider = CandleDataProvider()
