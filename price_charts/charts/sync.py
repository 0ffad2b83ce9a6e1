"""
Visible-range synchronization between the primary pane and its subordinates.

Every pane listens to the primary and the primary listens to every pane.
A range received from a peer is applied only when it differs from the
receiver's current range; applying it fires the receiver's own event once,
which reaches the sender as an identical range and stops there.
"""

import logging
from typing import Dict, Optional, Tuple

from .errors import RenderSurfaceDisposed
from .surface import ChartSurface, VisibleRange, ranges_equal

logger = logging.getLogger(__name__)


class PaneSynchronizer:
    """Keeps the time axis of several surfaces in lockstep."""

    def __init__(self):
        self.primary: Optional[ChartSurface] = None
        self.panes: Dict[str, ChartSurface] = {}
        self._subscriptions: Dict[str, Tuple[int, int]] = {}
        self.propagations = 0

    def set_primary(self, primary: ChartSurface) -> None:
        """Use a new primary surface; existing panes are dropped."""
        self.clear()
        self.primary = primary

    def add_pane(self, name: str, pane: ChartSurface) -> None:
        """Link a subordinate pane and align it with the primary right away."""
        if self.primary is None:
            raise RuntimeError("No primary surface to synchronize with")
        self.remove_pane(name)

        primary = self.primary
        pane.set_visible_range(primary.visible_range)

        to_pane = primary.subscribe_visible_range(
            lambda visible_range: self._propagate(visible_range, pane))
        to_primary = pane.subscribe_visible_range(
            lambda visible_range: self._propagate(visible_range, primary))

        self.panes[name] = pane
        self._subscriptions[name] = (to_pane, to_primary)
        logger.debug(f"Linked pane '{name}' to primary range {primary.visible_range}")

    def remove_pane(self, name: str) -> Optional[ChartSurface]:
        pane = self.panes.pop(name, None)
        tokens = self._subscriptions.pop(name, None)
        if pane is not None and tokens is not None:
            to_pane, to_primary = tokens
            if self.primary is not None:
                self.primary.unsubscribe_visible_range(to_pane)
            pane.unsubscribe_visible_range(to_primary)
        return pane

    def clear(self) -> None:
        for name in list(self.panes):
            self.remove_pane(name)
        self.primary = None

    def _propagate(self, visible_range: VisibleRange, receiver: ChartSurface) -> None:
        if receiver.disposed:
            return
        try:
            if ranges_equal(receiver.visible_range, visible_range):
                return
            self.propagations += 1
            receiver.set_visible_range(visible_range)
        except RenderSurfaceDisposed:
            logger.debug(f"Skipped range update for disposed surface '{receiver.name}'")
