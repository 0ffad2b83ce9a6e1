"""
Overlay series bundles and their memoization.

An overlay set holds every enabled indicator series for one candle dataset,
keyed by indicator id. The cache is keyed by the dataset identity plus the
enabled set, so redraw-only changes (visibility) never reach the engine.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Sequence, Tuple, FrozenSet

from ..database.models import Candle, SeriesPoint
from . import engine

logger = logging.getLogger(__name__)

RSI_ID = 'rsi'
VOLUME_ID = 'volume'
BB_IDS = ('bb_upper', 'bb_middle', 'bb_lower')
MACD_IDS = ('macd_line', 'macd_signal', 'macd_histogram')

# Visibility groups that address several series at once
GROUPS: Dict[str, Tuple[str, ...]] = {
    'bb': BB_IDS,
    'macd': MACD_IDS,
}

RSI_PERIOD = 14
MACD_FAST, MACD_SLOW, MACD_SIGNAL = 12, 26, 9
BB_PERIOD, BB_K = 20, 2

# Minimum bars before a subordinate pane is worth creating
RSI_MIN_BARS = RSI_PERIOD + 1
MACD_MIN_BARS = MACD_SLOW + MACD_SIGNAL


def sma_id(period: int) -> str:
    return f"sma_{period}"


def expand_ids(indicator_id: str) -> Tuple[str, ...]:
    """Resolve a group name into its member ids."""
    return GROUPS.get(indicator_id, (indicator_id,))


OverlayKey = Tuple[int, FrozenSet[int], bool, bool, bool]


def compute_overlays(candles: Sequence[Candle], periods: Iterable[int],
                     rsi_enabled: bool = False, macd_enabled: bool = False,
                     bb_enabled: bool = False) -> Dict[str, List[SeriesPoint]]:
    """Compute every enabled indicator series for ``candles``."""
    series: Dict[str, List[SeriesPoint]] = {}

    for period in sorted(set(periods)):
        series[sma_id(period)] = engine.sma(candles, period)

    if bb_enabled:
        bands = engine.bollinger_bands(candles, BB_PERIOD, BB_K)
        series['bb_upper'] = bands.upper
        series['bb_middle'] = bands.middle
        series['bb_lower'] = bands.lower

    if rsi_enabled:
        series[RSI_ID] = engine.rsi(candles, RSI_PERIOD)

    if macd_enabled:
        result = engine.macd(candles, MACD_FAST, MACD_SLOW, MACD_SIGNAL)
        series['macd_line'] = result.macd_line
        series['macd_signal'] = result.signal_line
        series['macd_histogram'] = result.histogram

    return series


class OverlayCache:
    """Small LRU of computed overlay sets."""

    def __init__(self, max_size: int = 8):
        self.max_size = max_size
        self._entries: "OrderedDict[OverlayKey, Dict[str, List[SeriesPoint]]]" = OrderedDict()
        self.computations = 0

    def get(self, dataset_id: int, candles: Sequence[Candle], periods: Iterable[int],
            rsi_enabled: bool = False, macd_enabled: bool = False,
            bb_enabled: bool = False) -> Dict[str, List[SeriesPoint]]:
        """Return the overlay set for this dataset and enabled set, computing it once."""
        key: OverlayKey = (dataset_id, frozenset(periods), rsi_enabled, macd_enabled, bb_enabled)

        if key in self._entries:
            self._entries.move_to_end(key)
            return self._entries[key]

        overlays = compute_overlays(candles, key[1], rsi_enabled, macd_enabled, bb_enabled)
        self.computations += 1
        logger.debug(f"Computed overlays for dataset {dataset_id}: {sorted(overlays)}")

        self._entries[key] = overlays
        if len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
        return overlays

    def clear(self) -> None:
        self._entries.clear()
