"""
Moving-average period policy.

Which of the canonical SMA periods are worth drawing depends on how many
bars a timeframe produces. A 15-minute intraday day has ~26 bars, so only
the 10-period average makes sense; twenty years of weekly bars support all
four.
"""

from typing import Dict, List

CANONICAL_PERIODS = (10, 20, 50, 200)

# Each SMA has a distinct colour
SMA_CONFIGS: Dict[int, Dict[str, str]] = {
    10: {'color': '#F59E0B', 'label': 'SMA 10'},    # Amber - fast
    20: {'color': '#FF6B00', 'label': 'SMA 20'},    # Orange
    50: {'color': '#8B5CF6', 'label': 'SMA 50'},    # Purple
    200: {'color': '#06B6D4', 'label': 'SMA 200'},  # Cyan - slow
}

_PERIODS_BY_TIMEFRAME: Dict[str, List[int]] = {
    '1D': [10],               # 15-min bars
    '5D': [10, 20],           # hourly bars
    '1M': [10, 20],           # daily bars, 20 is marginal
    '6M': [10, 20, 50],       # daily bars
    '1Y': [10, 20, 50],       # weekly bars
    '5Y': [10, 20, 50, 200],  # weekly bars
    'Max': [10, 20, 50, 200], # weekly bars
    'custom': [10, 20, 50],
}

_DEFAULT_PERIODS = [10, 20, 50]


def available_periods(timeframe: str) -> List[int]:
    """Return the SMA periods that produce a meaningful line for ``timeframe``."""
    return list(_PERIODS_BY_TIMEFRAME.get(timeframe, _DEFAULT_PERIODS))
