# Price Charts - Chart Surface
"""
Rendering surfaces built on matplotlib.

A surface is one figure with one price/value axis (and an optional
secondary volume scale). Series drawn on it are tracked through handles so
they can be hidden, looked up or removed without redrawing anything else.

The x axis is in unix seconds throughout.
"""

import io
import os
import base64
import bisect
import logging
import math
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Sequence, Callable, Tuple, Union
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
from matplotlib.collections import PolyCollection, LineCollection
import numpy as np

from ..database.models import Candle, SeriesPoint
from .errors import RenderSurfaceDisposed

logger = logging.getLogger(__name__)

VisibleRange = Tuple[float, float]
RangeCallback = Callable[[VisibleRange], None]
PointerCallback = Callable[[Optional[int]], None]

COLORS = {
    'price': '#3B82F6',          # Primary blue
    'area_fill': '#3B82F6',
    'candle_up': '#10B981',      # Success green
    'candle_down': '#EF4444',    # Danger red
    'volume_up': '#10B981',
    'volume_down': '#EF4444',
    'rsi': '#8B5CF6',            # Purple
    'macd': '#3B82F6',           # Blue
    'signal': '#F59E0B',         # Yellow
    'histogram_pos': '#10B981',  # Green
    'histogram_neg': '#EF4444',  # Red
    'bollinger': '#6B7280',      # Gray
}


def ranges_equal(a: Optional[VisibleRange], b: Optional[VisibleRange],
                 tolerance: float = 1e-6) -> bool:
    """Compare two visible ranges, allowing for float round-off."""
    if a is None or b is None:
        return a is b
    return (math.isclose(a[0], b[0], rel_tol=0, abs_tol=tolerance)
            and math.isclose(a[1], b[1], rel_tol=0, abs_tol=tolerance))


def bar_width(times: Sequence[float]) -> float:
    """Width of one bar in x units: 60% of the typical bar spacing."""
    if len(times) < 2:
        return 60.0
    return float(np.median(np.diff(times))) * 0.6


def _bar_collection(x: np.ndarray, bottom: np.ndarray, top: np.ndarray,
                    width: float, colors: List[str], **kwargs) -> PolyCollection:
    """One collection of rectangles, so a whole bar series is a single artist."""
    half = width / 2
    verts = np.stack([
        np.column_stack([x - half, bottom]),
        np.column_stack([x - half, top]),
        np.column_stack([x + half, top]),
        np.column_stack([x + half, bottom]),
    ], axis=1)
    return PolyCollection(verts, facecolors=colors, edgecolors=colors, **kwargs)


class SeriesHandle:
    """A series attached to a surface.

    The data is kept as an immutable tuple indexed by time. Draw options
    (visibility) are applied straight to the matplotlib artists.
    """

    def __init__(self, surface: "ChartSurface", series_id: str,
                 data: Sequence[Union[Candle, SeriesPoint]], artists: List[Any]):
        self.surface = surface
        self.series_id = series_id
        self.data = tuple(data)
        self._index = {point.time: point for point in self.data}
        self._artists = artists
        self.visible = True
        self.removed = False

    def point_at(self, time: int) -> Optional[Union[Candle, SeriesPoint]]:
        """Exact-time lookup; no nearest-neighbour matching."""
        return self._index.get(time)

    def value_at(self, time: int) -> Optional[float]:
        point = self._index.get(time)
        if point is None:
            return None
        return point.close if isinstance(point, Candle) else point.value

    def apply_options(self, visible: Optional[bool] = None) -> None:
        """Change draw options only."""
        self.surface._ensure_live()
        if visible is not None:
            self.visible = visible
            for artist in self._artists:
                artist.set_visible(visible)

    def remove(self) -> None:
        if self.removed:
            return
        self.removed = True
        self.surface._detach(self)


class ChartSurface:
    """One independently rendered chart pane."""

    def __init__(self, name: str, width: int, height: int, dpi: int = 100,
                 title: Optional[str] = None, date_format: str = '%b %Y'):
        """Initialize a surface.

        Args:
            name: Pane name (primary, rsi, macd)
            width: Width in pixels
            height: Height in pixels
            dpi: Figure resolution
            title: Optional axes title
            date_format: strftime pattern for the time axis
        """
        self.name = name
        self.dpi = dpi
        self.disposed = False
        self.series: Dict[str, SeriesHandle] = {}
        self.bar_times: List[int] = []

        # Style settings
        plt.style.use('seaborn-v0_8-whitegrid')
        self.fig = plt.figure(figsize=(width / dpi, height / dpi), dpi=dpi)
        self.ax = self.fig.add_subplot(111)
        self._volume_ax = None

        if title:
            self.ax.set_title(title, fontsize=12, fontweight='bold')
        self.ax.grid(True, alpha=0.3)
        self.ax.xaxis.set_major_formatter(plt.FuncFormatter(
            lambda x, p: datetime.fromtimestamp(x, tz=timezone.utc).strftime(date_format)))

        self._range_listeners: Dict[int, RangeCallback] = {}
        self._next_token = 0
        self._xlim_cid = self.ax.callbacks.connect('xlim_changed', self._on_xlim_changed)
        self._canvas_cids: List[int] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _ensure_live(self) -> None:
        if self.disposed:
            raise RenderSurfaceDisposed(f"Surface '{self.name}' has been disposed")

    def dispose(self) -> None:
        """Tear the surface down. Safe to call more than once."""
        if self.disposed:
            return
        self.disposed = True
        self._range_listeners.clear()
        try:
            self.ax.callbacks.disconnect(self._xlim_cid)
            for cid in self._canvas_cids:
                self.fig.canvas.mpl_disconnect(cid)
            plt.close(self.fig)
        except Exception as e:
            logger.debug(f"Ignoring error while disposing surface '{self.name}': {e}")
        for handle in self.series.values():
            handle.removed = True
        self.series.clear()

    def redraw(self) -> None:
        if not self.disposed:
            self.fig.canvas.draw_idle()

    # ------------------------------------------------------------------
    # Size
    # ------------------------------------------------------------------

    @property
    def size(self) -> Tuple[int, int]:
        width, height = self.fig.get_size_inches() * self.dpi
        return int(round(width)), int(round(height))

    def resize(self, width: int, height: int) -> None:
        """Apply a new pixel size to the live figure."""
        self._ensure_live()
        if width <= 0 or height <= 0:
            return
        self.fig.set_size_inches(width / self.dpi, height / self.dpi, forward=False)

    # ------------------------------------------------------------------
    # Visible range
    # ------------------------------------------------------------------

    @property
    def visible_range(self) -> VisibleRange:
        left, right = self.ax.get_xlim()
        return float(left), float(right)

    def set_visible_range(self, visible_range: VisibleRange) -> bool:
        """Apply a visible time range.

        Returns False without firing anything if the range is already current.
        """
        self._ensure_live()
        if ranges_equal(self.visible_range, visible_range):
            return False
        self.ax.set_xlim(visible_range[0], visible_range[1])
        return True

    def subscribe_visible_range(self, callback: RangeCallback) -> int:
        self._ensure_live()
        token = self._next_token
        self._next_token += 1
        self._range_listeners[token] = callback
        return token

    def unsubscribe_visible_range(self, token: int) -> None:
        self._range_listeners.pop(token, None)

    def _on_xlim_changed(self, ax) -> None:
        visible_range = self.visible_range
        for callback in list(self._range_listeners.values()):
            callback(visible_range)

    def set_value_range(self, low: float, high: float) -> None:
        self._ensure_live()
        self.ax.set_ylim(low, high)

    # ------------------------------------------------------------------
    # Pointer
    # ------------------------------------------------------------------

    def time_at(self, x: Optional[float]) -> Optional[int]:
        """Snap an x coordinate to the nearest bar time."""
        if x is None or not self.bar_times:
            return None
        i = bisect.bisect_left(self.bar_times, x)
        candidates = self.bar_times[max(0, i - 1):i + 1]
        return min(candidates, key=lambda t: abs(t - x))

    def on_pointer_move(self, callback: PointerCallback) -> None:
        """Report the hovered bar time (or None when the pointer leaves)."""
        self._ensure_live()

        def _moved(event) -> None:
            if event.inaxes is None or event.inaxes not in (self.ax, self._volume_ax):
                callback(None)
            else:
                callback(self.time_at(event.xdata))

        def _left(event) -> None:
            callback(None)

        self._canvas_cids.append(self.fig.canvas.mpl_connect('motion_notify_event', _moved))
        self._canvas_cids.append(self.fig.canvas.mpl_connect('axes_leave_event', _left))

    # ------------------------------------------------------------------
    # Series
    # ------------------------------------------------------------------

    def _attach(self, series_id: str, data, artists: List[Any]) -> SeriesHandle:
        if series_id in self.series:
            self.series[series_id].remove()
        handle = SeriesHandle(self, series_id, data, artists)
        self.series[series_id] = handle
        self.ax.autoscale_view(scalex=False)
        return handle

    def _detach(self, handle: SeriesHandle) -> None:
        if self.disposed:
            return
        for artist in handle._artists:
            try:
                artist.remove()
            except (ValueError, NotImplementedError) as e:
                logger.debug(f"Ignoring error while removing {handle.series_id}: {e}")
        if self.series.get(handle.series_id) is handle:
            del self.series[handle.series_id]

    def add_primary_series(self, chart_type: str, candles: Sequence[Candle]) -> SeriesHandle:
        """Draw the price series in the representation chosen by ``chart_type``."""
        self._ensure_live()
        try:
            draw = _PRIMARY_RENDERERS[chart_type]
        except KeyError:
            raise ValueError(f"Unknown chart type: {chart_type}")

        self.bar_times = [c.time for c in candles]
        data, artists = draw(self.ax, candles)
        self.ax.set_ylabel('Price ($)', fontsize=10)
        return self._attach('primary', data, artists)

    def add_line_series(self, series_id: str, points: Sequence[SeriesPoint],
                        color: str, label: Optional[str] = None,
                        linewidth: float = 1.0, linestyle: str = '-',
                        alpha: float = 1.0) -> SeriesHandle:
        self._ensure_live()
        times = [p.time for p in points]
        values = [p.value for p in points]
        line, = self.ax.plot(times, values, color=color, linewidth=linewidth,
                             linestyle=linestyle, alpha=alpha, label=label)
        return self._attach(series_id, points, [line])

    def add_histogram_series(self, series_id: str, points: Sequence[SeriesPoint],
                             width: float) -> SeriesHandle:
        self._ensure_live()
        x = np.array([p.time for p in points], dtype=float)
        values = np.array([p.value for p in points], dtype=float)
        colors = [COLORS['histogram_pos'] if v >= 0 else COLORS['histogram_neg'] for v in values]
        bars = _bar_collection(x, np.zeros_like(values), values, width, colors, alpha=0.5)
        self.ax.add_collection(bars)
        return self._attach(series_id, points, [bars])

    def add_volume_series(self, candles: Sequence[Candle]) -> SeriesHandle:
        """Volume bars on a secondary scale, colored by close-over-close direction."""
        self._ensure_live()
        if self._volume_ax is None:
            self._volume_ax = self.ax.twinx()
            self._volume_ax.set_yticks([])
            self._volume_ax.grid(False)

        x = np.array([c.time for c in candles], dtype=float)
        volumes = np.array([c.volume for c in candles], dtype=float)
        colors = []
        for i, candle in enumerate(candles):
            previous = candles[i - 1].close if i > 0 else candle.open
            colors.append(COLORS['volume_up'] if candle.close >= previous else COLORS['volume_down'])

        bars = _bar_collection(x, np.zeros_like(volumes), volumes, bar_width(x), colors, alpha=0.4)
        self._volume_ax.add_collection(bars)
        # Keep volume in the bottom quarter of the pane
        self._volume_ax.set_ylim(0, max(float(volumes.max()), 1.0) * 4)

        data = [SeriesPoint(time=c.time, value=c.volume) for c in candles]
        return self._attach('volume', data, [bars])

    def add_guide_line(self, y: float, color: str, linestyle: str = '--',
                       alpha: float = 0.5, label: Optional[str] = None) -> None:
        self._ensure_live()
        self.ax.axhline(y=y, color=color, linestyle=linestyle, alpha=alpha, label=label)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_png(self, filepath: Optional[str] = None) -> str:
        """Snapshot the current pixels.

        Args:
            filepath: Where to write the PNG; when omitted a base64 data URL is returned

        Returns:
            File path or base64 encoded image
        """
        self._ensure_live()
        if filepath:
            os.makedirs(os.path.dirname(filepath) or '.', exist_ok=True)
            self.fig.savefig(filepath, dpi=self.dpi, facecolor='white', edgecolor='none')
            return filepath

        buf = io.BytesIO()
        self.fig.savefig(buf, format='png', dpi=self.dpi,
                         facecolor='white', edgecolor='none')
        buf.seek(0)
        img_base64 = base64.b64encode(buf.read()).decode('utf-8')
        return f"data:image/png;base64,{img_base64}"


# ----------------------------------------------------------------------
# Primary series renderers, one per chart type
# ----------------------------------------------------------------------

def _draw_candlestick(ax, candles: Sequence[Candle]):
    x = np.array([c.time for c in candles], dtype=float)
    opens = np.array([c.open for c in candles], dtype=float)
    closes = np.array([c.close for c in candles], dtype=float)
    highs = np.array([c.high for c in candles], dtype=float)
    lows = np.array([c.low for c in candles], dtype=float)

    colors = [COLORS['candle_up'] if c >= o else COLORS['candle_down']
              for o, c in zip(opens, closes)]

    wicks = LineCollection(
        [[(t, lo), (t, hi)] for t, lo, hi in zip(x, lows, highs)],
        colors=colors, linewidths=1)
    bodies = _bar_collection(x, np.minimum(opens, closes), np.maximum(opens, closes),
                             bar_width(x), colors)
    ax.add_collection(wicks)
    ax.add_collection(bodies)
    return list(candles), [wicks, bodies]


def _draw_line(ax, candles: Sequence[Candle]):
    data = [SeriesPoint(time=c.time, value=c.close) for c in candles]
    line, = ax.plot([p.time for p in data], [p.value for p in data],
                    color=COLORS['price'], linewidth=2, label='Close Price')
    return data, [line]


def _draw_area(ax, candles: Sequence[Candle]):
    data = [SeriesPoint(time=c.time, value=c.close) for c in candles]
    times = [p.time for p in data]
    values = [p.value for p in data]
    line, = ax.plot(times, values, color=COLORS['price'], linewidth=2, label='Close Price')
    baseline = min(values) if values else 0
    fill = ax.fill_between(times, baseline, values, color=COLORS['area_fill'], alpha=0.2)
    return data, [line, fill]


_PRIMARY_RENDERERS = {
    'candlestick': _draw_candlestick,
    'line': _draw_line,
    'area': _draw_area,
}
