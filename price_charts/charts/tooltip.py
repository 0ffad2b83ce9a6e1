"""
Crosshair tooltip aggregation.

Builds one immutable record per hovered bar from the primary series, the
raw candles and every enabled overlay, and publishes it whole.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from ..database.models import Candle, TooltipRecord
from .surface import SeriesHandle

logger = logging.getLogger(__name__)

TooltipListener = Callable[[Optional[TooltipRecord]], None]


class CrosshairTooltipAggregator:
    """Combines OHLC, volume and overlay values at the hovered time."""

    def __init__(self):
        self.current: Optional[TooltipRecord] = None
        self._listeners: List[TooltipListener] = []
        self._candles: Dict[int, Candle] = {}
        self._primary: Optional[SeriesHandle] = None
        self._overlays: Dict[str, SeriesHandle] = {}

    def bind(self, candles: Sequence[Candle], primary: SeriesHandle) -> None:
        self._candles = {c.time: c for c in candles}
        self._primary = primary
        self._overlays = {}
        self._publish(None)

    def unbind(self) -> None:
        self._candles = {}
        self._primary = None
        self._overlays = {}
        self._publish(None)

    def attach(self, indicator_id: str, handle: SeriesHandle) -> None:
        self._overlays[indicator_id] = handle

    def detach(self, indicator_id: str) -> None:
        self._overlays.pop(indicator_id, None)

    def subscribe(self, listener: TooltipListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_pointer_move(self, time: Optional[int]) -> Optional[TooltipRecord]:
        """Handle a crosshair move to ``time`` (None when the pointer left)."""
        if time is None or self._primary is None or self._primary.removed:
            self._publish(None)
            return None

        if self._primary.point_at(time) is None:
            self._publish(None)
            return None

        candle = self._candles.get(time)
        # Overlays still in warm-up have no point here and are left out
        indicators = {}
        for indicator_id, handle in sorted(self._overlays.items()):
            value = None if handle.removed else handle.value_at(time)
            if value is not None:
                indicators[indicator_id] = value
        record = TooltipRecord(
            time=time,
            open=candle.open if candle else None,
            high=candle.high if candle else None,
            low=candle.low if candle else None,
            close=candle.close if candle else None,
            volume=candle.volume if candle else None,
            indicators=indicators,
        )
        self._publish(record)
        return record

    def _publish(self, record: Optional[TooltipRecord]) -> None:
        if record is None and self.current is None:
            return
        self.current = record
        for listener in list(self._listeners):
            listener(record)
