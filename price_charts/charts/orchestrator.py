# Price Charts - Chart Orchestrator
"""
Lifecycle of one chart: a primary price pane plus optional RSI and MACD panes.

The orchestrator resolves a timeframe into a candle request, fetches it,
binds the candles to a primary series, attaches overlays and keeps the
panes sized and time-aligned. Loads are guarded by a generation counter:
starting a new load makes any in-flight one stale, and a stale load drops
its result instead of touching the live surfaces.

States: idle -> loading -> ready, loading -> error, any -> disposed.
"""

import asyncio
import logging
import os
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from .. import config
from ..data.candle_provider import payload_to_candles
from ..database.models import (
    Candle, ChartPreferences, FetchRequest, TooltipRecord, CHART_TYPES, normalize_symbol
)
from ..indicators.overlays import (
    OverlayCache, sma_id, BB_IDS, MACD_IDS, RSI_ID, VOLUME_ID, RSI_MIN_BARS, MACD_MIN_BARS
)
from ..indicators.periods import available_periods, SMA_CONFIGS
from .container import ChartContainer
from .errors import ChartError, DataUnavailable, LayoutUnready, RenderSurfaceDisposed
from .surface import ChartSurface, SeriesHandle, VisibleRange, COLORS, bar_width
from .sync import PaneSynchronizer
from .timeframes import resolve_request, time_format, DEFAULT_TIMEFRAME
from .tooltip import CrosshairTooltipAggregator
from .visibility import OverlayVisibilityController

logger = logging.getLogger(__name__)

FetchCandles = Callable[[str, str, int, int], Awaitable[Any]]
PreferencesListener = Callable[[ChartPreferences], None]

SUB_PANE_HEIGHT = 150
MIN_PRIMARY_HEIGHT = 200


class ChartState(str, Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    READY = 'ready'
    ERROR = 'error'
    DISPOSED = 'disposed'


def _is_price_overlay(indicator_id: str) -> bool:
    return indicator_id.startswith('sma_') or indicator_id in BB_IDS


class ChartOrchestrator:
    """Owns the surfaces of one chart view."""

    def __init__(self, fetch_candles: FetchCandles,
                 container: Optional[ChartContainer] = None,
                 preferences: Optional[ChartPreferences] = None,
                 visibility_flags: Optional[Dict[str, bool]] = None,
                 dpi: Optional[int] = None,
                 layout_retry_delay: Optional[float] = None,
                 reports_dir: Optional[str] = None,
                 on_preferences_change: Optional[PreferencesListener] = None):
        """Initialize the orchestrator.

        Args:
            fetch_candles: async ``(symbol, resolution, from_ts, to_ts)`` candle fetch
            container: Layout box the panes live in
            preferences: Initial chart preferences
            visibility_flags: Initial per-indicator visibility
            dpi: Figure resolution
            layout_retry_delay: Seconds to wait once for a zero-width container
            reports_dir: Directory for exported images
            on_preferences_change: Called with a snapshot after every user change
        """
        self.fetch_candles = fetch_candles
        self.container = container or ChartContainer(
            config.get_int('CHART_WIDTH'), config.get_int('CHART_HEIGHT'))
        self.dpi = dpi or config.get_int('CHART_DPI')
        self.layout_retry_delay = (layout_retry_delay if layout_retry_delay is not None
                                   else config.get_float('LAYOUT_RETRY_DELAY'))
        self.reports_dir = reports_dir or config.get_setting('REPORTS_DIR')
        self.on_preferences_change = on_preferences_change

        self.state = ChartState.IDLE
        self.error: Optional[str] = None
        self.symbol: Optional[str] = None
        self.timeframe = DEFAULT_TIMEFRAME
        self.chart_type = 'candlestick'
        self.custom_range: Optional[Tuple[int, int]] = None
        self.enabled_periods: Set[int] = set()
        self.rsi_enabled = False
        self.macd_enabled = False
        self.bb_enabled = False
        self.volume_enabled = True
        if preferences is not None:
            self._apply_preferences(preferences)

        self.request: Optional[FetchRequest] = None
        self.candles: List[Candle] = []
        self.primary: Optional[ChartSurface] = None
        self.panes: Dict[str, ChartSurface] = {}
        self._handles: Dict[str, SeriesHandle] = {}
        self._date_format = '%b %Y'
        self._fullscreen = False
        self._generation = 0
        self._dataset_id = 0

        self.visibility = OverlayVisibilityController(visibility_flags)
        self.synchronizer = PaneSynchronizer()
        self.tooltip = CrosshairTooltipAggregator()
        self.overlay_cache = OverlayCache()
        self._unobserve = self.container.observe(self._on_container_resize)

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def _apply_preferences(self, preferences: ChartPreferences) -> None:
        self.symbol = preferences.symbol
        self.chart_type = preferences.chart_type
        self.timeframe = preferences.timeframe
        self.enabled_periods = set(preferences.enabled_periods)
        self.rsi_enabled = preferences.rsi_enabled
        self.macd_enabled = preferences.macd_enabled
        self.bb_enabled = preferences.bb_enabled
        self.volume_enabled = preferences.volume_enabled

    @property
    def preferences(self) -> ChartPreferences:
        return ChartPreferences(
            symbol=self.symbol,
            chart_type=self.chart_type,
            timeframe=self.timeframe,
            enabled_periods=sorted(self.enabled_periods),
            rsi_enabled=self.rsi_enabled,
            macd_enabled=self.macd_enabled,
            bb_enabled=self.bb_enabled,
            volume_enabled=self.volume_enabled,
        )

    def _notify_preferences(self) -> None:
        if self.on_preferences_change is None or not self.symbol:
            return
        try:
            self.on_preferences_change(self.preferences)
        except Exception as e:
            logger.warning(f"Failed to record chart preferences for {self.symbol}: {e}")

    @property
    def period_timeframe(self) -> str:
        return 'custom' if self.custom_range is not None else self.timeframe

    @property
    def active_periods(self) -> List[int]:
        """Enabled SMA periods that make sense for the current timeframe."""
        allowed = available_periods(self.period_timeframe)
        return [p for p in allowed if p in self.enabled_periods]

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self.state != ChartState.DISPOSED

    async def _fetch(self, request: FetchRequest) -> Any:
        try:
            return await self.fetch_candles(
                request.symbol, request.resolution, request.from_ts, request.to_ts)
        except ChartError:
            raise
        except Exception as e:
            raise DataUnavailable(f"Failed to fetch chart data: {e}") from e

    @staticmethod
    def _to_candles(payload: Any) -> List[Candle]:
        try:
            return payload_to_candles(payload)
        except ChartError:
            raise
        except Exception as e:
            raise DataUnavailable(f"Unreadable chart data: {e}") from e

    async def _wait_for_layout(self, generation: int) -> None:
        if self.container.width > 0:
            return
        logger.info("Chart container has no width yet, retrying once")
        await asyncio.sleep(self.layout_retry_delay)
        if self._is_current(generation) and self.container.width <= 0:
            raise LayoutUnready("Chart container has zero width")

    async def load(self, symbol: Optional[str] = None, timeframe: Optional[str] = None,
                   chart_type: Optional[str] = None,
                   custom_range: Optional[Tuple[int, int]] = None) -> bool:
        """Load candles and (re)build the chart.

        Returns True when the result was bound, False when the load was
        superseded or the chart is disposed.

        Raises:
            DataUnavailable: no usable candles for the range
            LayoutUnready: the container stayed at zero width
        """
        if self.state == ChartState.DISPOSED:
            logger.debug("Ignoring load on a disposed chart")
            return False
        if chart_type is not None and chart_type not in CHART_TYPES:
            raise ValueError(f"Unknown chart type: {chart_type}")

        symbol = normalize_symbol(symbol or self.symbol or '')
        next_timeframe = timeframe if timeframe is not None else self.timeframe
        if custom_range is not None:
            next_range = (int(custom_range[0]), int(custom_range[1]))
        else:
            next_range = None if timeframe is not None else self.custom_range
        request = resolve_request(symbol, next_timeframe, next_range)

        changed = (symbol == self.symbol and (
            next_timeframe != self.timeframe
            or (chart_type is not None and chart_type != self.chart_type)))

        self.symbol = symbol
        self.timeframe = next_timeframe
        self.custom_range = next_range
        if chart_type is not None:
            self.chart_type = chart_type
        if changed:
            self._notify_preferences()

        self._generation += 1
        generation = self._generation
        self.state = ChartState.LOADING
        self.error = None
        logger.info(f"Loading {symbol} {request.resolution} candles ({self.period_timeframe})")

        try:
            payload = await self._fetch(request)
            if not self._is_current(generation):
                logger.info(f"Discarding superseded load for {symbol}")
                return False

            candles = self._to_candles(payload)
            await self._wait_for_layout(generation)
            if not self._is_current(generation):
                logger.info(f"Discarding superseded load for {symbol}")
                return False
        except ChartError as e:
            if not self._is_current(generation):
                return False
            self.state = ChartState.ERROR
            self.error = str(e)
            logger.warning(f"Chart load failed for {symbol}: {e}")
            raise

        self.request = request
        self._bind(candles)
        self.state = ChartState.READY
        logger.info(f"Chart ready for {symbol}: {len(candles)} candles")
        return True

    async def retry(self) -> bool:
        """Run the last load again."""
        return await self.load()

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def _bind(self, candles: List[Candle]) -> None:
        self._teardown_surfaces()
        self.candles = candles
        self._dataset_id += 1
        self._date_format = time_format(self.request.resolution)

        width, height = self._target_size()
        self.primary = ChartSurface('primary', width, height, self.dpi,
                                    title=f"{self.symbol} - Price History",
                                    date_format=self._date_format)
        primary_handle = self.primary.add_primary_series(self.chart_type, candles)
        self.tooltip.bind(candles, primary_handle)
        self.primary.on_pointer_move(self.tooltip.on_pointer_move)

        self.synchronizer.set_primary(self.primary)
        self.primary.set_visible_range(self.default_range())

        self._sync_volume()
        self._sync_overlays()
        self._apply_size()
        self.primary.redraw()

    def _register(self, indicator_id: str, handle: SeriesHandle) -> None:
        self._handles[indicator_id] = handle
        self.visibility.register(indicator_id, handle)
        if indicator_id != VOLUME_ID:
            self.tooltip.attach(indicator_id, handle)

    def _unregister(self, indicator_id: str) -> None:
        handle = self._handles.pop(indicator_id, None)
        if handle is None:
            return
        self.visibility.unregister(indicator_id, handle)
        self.tooltip.detach(indicator_id)
        handle.remove()

    def _sync_volume(self) -> None:
        wanted = self.volume_enabled and any(c.volume > 0 for c in self.candles)
        present = VOLUME_ID in self._handles
        if wanted and not present:
            self._register(VOLUME_ID, self.primary.add_volume_series(self.candles))
        elif present and not wanted:
            self._unregister(VOLUME_ID)

    def _sync_overlays(self) -> None:
        """Attach newly enabled overlays and detach disabled ones in place."""
        periods = self.active_periods
        overlays = self.overlay_cache.get(
            self._dataset_id, self.candles, periods,
            self.rsi_enabled, self.macd_enabled, self.bb_enabled)

        wanted = {sma_id(p) for p in periods}
        if self.bb_enabled:
            wanted.update(BB_IDS)

        for indicator_id in list(self._handles):
            if _is_price_overlay(indicator_id) and indicator_id not in wanted:
                self._unregister(indicator_id)

        for period in periods:
            indicator_id = sma_id(period)
            if indicator_id in self._handles:
                continue
            style = SMA_CONFIGS.get(period, {'color': COLORS['price'], 'label': f'SMA {period}'})
            self._register(indicator_id, self.primary.add_line_series(
                indicator_id, overlays[indicator_id], color=style['color'],
                label=style['label'], linewidth=1.5))

        if self.bb_enabled:
            labels = ('BB Upper', 'BB Middle', 'BB Lower')
            for indicator_id, label, linestyle in zip(BB_IDS, labels, ('--', '-', '--')):
                if indicator_id in self._handles:
                    continue
                self._register(indicator_id, self.primary.add_line_series(
                    indicator_id, overlays[indicator_id], color=COLORS['bollinger'],
                    label=label, linestyle=linestyle, alpha=0.8))

        self._sync_pane('rsi', self.rsi_enabled and len(self.candles) >= RSI_MIN_BARS,
                        lambda: self._build_rsi_pane(overlays))
        self._sync_pane('macd', self.macd_enabled and len(self.candles) >= MACD_MIN_BARS,
                        lambda: self._build_macd_pane(overlays))

    # ------------------------------------------------------------------
    # Subordinate panes
    # ------------------------------------------------------------------

    def _sync_pane(self, name: str, wanted: bool, build: Callable[[], ChartSurface]) -> None:
        pane = self.panes.get(name)
        if wanted and pane is None:
            pane = build()
            self.panes[name] = pane
            self.synchronizer.add_pane(name, pane)
        elif pane is not None and not wanted:
            self._remove_pane(name)

    def _new_pane(self, name: str, title: str) -> ChartSurface:
        width, _ = self._target_size()
        pane = ChartSurface(name, width, SUB_PANE_HEIGHT, self.dpi, title=title,
                            date_format=self._date_format)
        pane.bar_times = list(self.primary.bar_times)
        pane.on_pointer_move(self.tooltip.on_pointer_move)
        return pane

    def _build_rsi_pane(self, overlays) -> ChartSurface:
        pane = self._new_pane('rsi', 'RSI (14)')
        pane.add_guide_line(70, 'red', label='Overbought (70)')
        pane.add_guide_line(30, 'green', label='Oversold (30)')
        pane.add_guide_line(50, 'gray', linestyle=':', alpha=0.3)
        pane.set_value_range(0, 100)
        self._register(RSI_ID, pane.add_line_series(
            RSI_ID, overlays[RSI_ID], color=COLORS['rsi'], linewidth=1.5))
        return pane

    def _build_macd_pane(self, overlays) -> ChartSurface:
        pane = self._new_pane('macd', 'MACD (12, 26, 9)')
        pane.add_guide_line(0, 'gray', linestyle='-')
        line_id, signal_id, histogram_id = MACD_IDS
        self._register(histogram_id, pane.add_histogram_series(
            histogram_id, overlays[histogram_id], bar_width(self.primary.bar_times)))
        self._register(line_id, pane.add_line_series(
            line_id, overlays[line_id], color=COLORS['macd'], label='MACD', linewidth=1.5))
        self._register(signal_id, pane.add_line_series(
            signal_id, overlays[signal_id], color=COLORS['signal'], label='Signal', linewidth=1.5))
        return pane

    def _remove_pane(self, name: str) -> None:
        self.synchronizer.remove_pane(name)
        pane = self.panes.pop(name, None)
        if pane is None:
            return
        for indicator_id in [i for i, h in self._handles.items() if h.surface is pane]:
            self._unregister(indicator_id)
        self._dispose_surface(pane)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def _dispose_surface(self, surface: ChartSurface) -> None:
        try:
            surface.dispose()
        except Exception as e:
            logger.debug(f"Ignoring error while disposing '{surface.name}': {e}")

    def _teardown_surfaces(self) -> None:
        for name in list(self.panes):
            self._remove_pane(name)
        self.synchronizer.clear()
        self.visibility.clear()
        self.tooltip.unbind()
        self._handles.clear()
        if self.primary is not None:
            self._dispose_surface(self.primary)
            self.primary = None

    def dispose(self) -> None:
        """Unmount the chart. Repeated calls are no-ops."""
        if self.state == ChartState.DISPOSED:
            return
        self._generation += 1
        self._teardown_surfaces()
        self._unobserve()
        self.state = ChartState.DISPOSED
        logger.info(f"Chart disposed for {self.symbol}")

    # ------------------------------------------------------------------
    # Overlay toggles
    # ------------------------------------------------------------------

    def _refresh_overlays(self) -> None:
        if self.primary is None or self.primary.disposed:
            return
        self._sync_volume()
        self._sync_overlays()
        self._apply_size()

    def set_enabled_periods(self, periods: Iterable[int]) -> None:
        self.enabled_periods = set(periods)
        self._notify_preferences()
        self._refresh_overlays()

    def set_rsi_enabled(self, enabled: bool) -> None:
        self.rsi_enabled = enabled
        self._notify_preferences()
        self._refresh_overlays()

    def set_macd_enabled(self, enabled: bool) -> None:
        self.macd_enabled = enabled
        self._notify_preferences()
        self._refresh_overlays()

    def set_bb_enabled(self, enabled: bool) -> None:
        self.bb_enabled = enabled
        self._notify_preferences()
        self._refresh_overlays()

    def set_volume_enabled(self, enabled: bool) -> None:
        self.volume_enabled = enabled
        self._notify_preferences()
        self._refresh_overlays()

    def set_visibility(self, indicator_id: str, visible: bool) -> None:
        """Show or hide an existing series; never recomputes anything."""
        self.visibility.set_visible(indicator_id, visible)

    def series(self, indicator_id: str) -> Optional[SeriesHandle]:
        return self._handles.get(indicator_id)

    # ------------------------------------------------------------------
    # Size, zoom, export
    # ------------------------------------------------------------------

    @property
    def is_fullscreen(self) -> bool:
        return self._fullscreen

    def _target_size(self) -> Tuple[int, int]:
        if self._fullscreen:
            width = self.container.screen_width
            height = self.container.screen_height - SUB_PANE_HEIGHT * len(self.panes)
        else:
            width, height = self.container.width, self.container.height
        return width, max(height, MIN_PRIMARY_HEIGHT)

    def _apply_size(self) -> None:
        if self.primary is None:
            return
        width, height = self._target_size()
        try:
            self.primary.resize(width, height)
            for pane in self.panes.values():
                pane.resize(width, SUB_PANE_HEIGHT)
        except RenderSurfaceDisposed:
            logger.debug("Skipped resize of a disposed surface")

    def _on_container_resize(self, width: int, height: int) -> None:
        if not self._fullscreen:
            self._apply_size()

    def set_fullscreen(self, fullscreen: bool) -> None:
        self._fullscreen = fullscreen
        self._apply_size()

    def toggle_fullscreen(self) -> bool:
        self.set_fullscreen(not self._fullscreen)
        return self._fullscreen

    def default_range(self) -> Optional[VisibleRange]:
        """Visible range covering the whole dataset."""
        if not self.candles:
            return None
        times = [c.time for c in self.candles]
        pad = bar_width(times)
        return float(times[0] - pad), float(times[-1] + pad)

    def reset_zoom(self) -> None:
        if self.primary is None or not self.candles:
            return
        try:
            self.primary.set_visible_range(self.default_range())
        except RenderSurfaceDisposed:
            logger.debug("Skipped reset zoom on a disposed surface")

    def set_visible_range(self, visible_range: VisibleRange) -> None:
        if self.primary is None:
            return
        try:
            self.primary.set_visible_range(visible_range)
        except RenderSurfaceDisposed:
            logger.debug("Skipped range change on a disposed surface")

    def export_image(self, save_to_file: bool = False) -> Optional[str]:
        """Snapshot the primary pane.

        Returns:
            File path or base64 data URL, or None when nothing is rendered
        """
        if self.primary is None or self.primary.disposed:
            return None
        filepath = None
        if save_to_file:
            date_str = datetime.now().strftime("%Y-%m-%d")
            filepath = os.path.join(self.reports_dir, self.symbol,
                                    f"{self.symbol}_chart_{date_str}.png")
        try:
            return self.primary.export_png(filepath)
        except RenderSurfaceDisposed:
            return None

    # ------------------------------------------------------------------
    # Crosshair
    # ------------------------------------------------------------------

    def on_pointer_move(self, time: Optional[int]) -> Optional[TooltipRecord]:
        return self.tooltip.on_pointer_move(time)

    def subscribe_tooltip(self, listener: Callable[[Optional[TooltipRecord]], None]):
        return self.tooltip.subscribe(listener)
