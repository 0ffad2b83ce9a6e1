"""
Technical indicator engine.

Pure functions that turn an ordered candle sequence into derived series:
- SMA / EMA
- MACD (line, signal, histogram)
- RSI (Wilder smoothing)
- Bollinger Bands (population standard deviation)

None of these raise on short input. When there is not enough history for
the warm-up period the result is simply empty.
"""

from typing import Sequence, List
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..database.models import Candle, SeriesPoint, MACDResult, BollingerBandsResult


def _closes(data: Sequence[Candle]) -> np.ndarray:
    return np.fromiter((c.close for c in data), dtype=float, count=len(data))


def _points(times: Sequence[int], values: Sequence[float]) -> List[SeriesPoint]:
    return [SeriesPoint(time=t, value=float(v)) for t, v in zip(times, values)]


def _window_means(values: np.ndarray, period: int) -> np.ndarray:
    """Mean of every trailing window of ``period`` values."""
    return sliding_window_view(values, period).mean(axis=1)


def _ema_values(values: np.ndarray, period: int) -> np.ndarray:
    """EMA seeded with the mean of the first ``period`` values.

    Returns ``len(values) - period + 1`` values; the first is the seed.
    """
    multiplier = 2 / (period + 1)
    out = np.empty(len(values) - period + 1)
    ema = float(_window_means(values[:period], period)[0])
    out[0] = ema
    for i in range(period, len(values)):
        ema = (values[i] - ema) * multiplier + ema
        out[i - period + 1] = ema
    return out


def sma(data: Sequence[Candle], period: int) -> List[SeriesPoint]:
    """Simple moving average of closes."""
    if period <= 0 or not data or len(data) < period:
        return []
    means = _window_means(_closes(data), period)
    return _points([c.time for c in data[period - 1:]], means)


def ema(data: Sequence[Candle], period: int) -> List[SeriesPoint]:
    """Exponential moving average of closes, first point at ``data[period-1]``."""
    if period <= 0 or not data or len(data) < period:
        return []
    values = _ema_values(_closes(data), period)
    return _points([c.time for c in data[period - 1:]], values)


def macd(data: Sequence[Candle], fast: int = 12, slow: int = 26,
         signal: int = 9) -> MACDResult:
    """Moving Average Convergence Divergence.

    The fast EMA starts ``slow - fast`` bars earlier than the slow EMA, so
    index ``i`` of the slow series lines up with ``i + offset`` of the fast
    one. The signal line is an EMA of the MACD line with the same
    seed-then-recurrence rule, and ``histogram[i]`` is
    ``macd_line[i + signal - 1] - signal_line[i]``.
    """
    if min(fast, slow, signal) <= 0 or fast >= slow:
        return MACDResult()
    if not data or len(data) < slow + signal:
        return MACDResult()

    closes = _closes(data)
    fast_values = _ema_values(closes, fast)
    slow_values = _ema_values(closes, slow)
    offset = slow - fast

    line = fast_values[offset:offset + len(slow_values)] - slow_values
    line_times = [c.time for c in data[slow - 1:]]

    signal_values = _ema_values(line, signal)
    signal_offset = signal - 1
    histogram = line[signal_offset:] - signal_values
    signal_times = line_times[signal_offset:]

    return MACDResult(
        macd_line=_points(line_times, line),
        signal_line=_points(signal_times, signal_values),
        histogram=_points(signal_times, histogram),
    )


def rsi(data: Sequence[Candle], period: int = 14) -> List[SeriesPoint]:
    """Relative Strength Index using Wilder's smoothing.

    When the average loss is zero, RS is taken as 100 rather than infinity,
    which puts RSI at 100 - 100/101 (about 99.0099), not 100.
    """
    if period <= 0 or not data or len(data) < period + 1:
        return []

    changes = np.diff(_closes(data))
    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes < 0, -changes, 0.0)

    avg_gain = float(gains[:period].mean())
    avg_loss = float(losses[:period].mean())

    def _value(gain: float, loss: float) -> float:
        rs = 100 if loss == 0 else gain / loss
        return 100 - (100 / (1 + rs))

    values = [_value(avg_gain, avg_loss)]
    for i in range(period, len(gains)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        values.append(_value(avg_gain, avg_loss))

    return _points([c.time for c in data[period:]], values)


def bollinger_bands(data: Sequence[Candle], period: int = 20,
                    k: float = 2) -> BollingerBandsResult:
    """Bollinger Bands around an SMA, using the population standard deviation."""
    if period <= 0 or not data or len(data) < period:
        return BollingerBandsResult()

    windows = sliding_window_view(_closes(data), period)
    middle = windows.mean(axis=1)
    std = np.sqrt(((windows - middle[:, None]) ** 2).sum(axis=1) / period)
    times = [c.time for c in data[period - 1:]]

    return BollingerBandsResult(
        upper=_points(times, middle + k * std),
        middle=_points(times, middle),
        lower=_points(times, middle - k * std),
    )
