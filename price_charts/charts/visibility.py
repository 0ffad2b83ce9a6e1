"""
Overlay visibility control.

"Enabled" decides whether a series is computed and exists; "visible" only
decides whether an existing series is drawn. This controller owns the
second axis: a table of live series handles by indicator id, and the flags
that new handles start from.
"""

import logging
from typing import Dict, List, Optional

from ..indicators.overlays import GROUPS, expand_ids
from .errors import RenderSurfaceDisposed
from .surface import SeriesHandle

logger = logging.getLogger(__name__)


class OverlayVisibilityController:
    """Pushes visibility flags to live series handles."""

    def __init__(self, flags: Optional[Dict[str, bool]] = None):
        self.flags: Dict[str, bool] = dict(flags or {})
        self._handles: Dict[str, List[SeriesHandle]] = {}

    def is_visible(self, indicator_id: str) -> bool:
        if indicator_id in self.flags:
            return self.flags[indicator_id]
        for group, members in GROUPS.items():
            if indicator_id in members and group in self.flags:
                return self.flags[group]
        return True

    def snapshot(self) -> Dict[str, bool]:
        return dict(self.flags)

    def register(self, indicator_id: str, handle: SeriesHandle) -> None:
        """Track a new handle and give it the current visibility."""
        self._handles.setdefault(indicator_id, []).append(handle)
        visible = self.is_visible(indicator_id)
        if not visible:
            handle.apply_options(visible=False)

    def unregister(self, indicator_id: str, handle: SeriesHandle) -> None:
        handles = self._handles.get(indicator_id, [])
        if handle in handles:
            handles.remove(handle)
        if not handles:
            self._handles.pop(indicator_id, None)

    def handles(self, indicator_id: str) -> List[SeriesHandle]:
        return list(self._handles.get(indicator_id, []))

    def set_visible(self, indicator_id: str, visible: bool) -> int:
        """Record a flag and apply it to every live handle for that id.

        ``indicator_id`` may be a group name (``bb``, ``macd``). Ids with no
        live handle just keep the flag. Returns the number of handles touched.
        """
        touched = 0
        for member in expand_ids(indicator_id):
            self.flags[member] = visible
            for handle in self._handles.get(member, []):
                try:
                    handle.apply_options(visible=visible)
                    touched += 1
                except RenderSurfaceDisposed:
                    logger.debug(f"Skipped visibility change on disposed series {member}")
        if indicator_id in GROUPS:
            self.flags[indicator_id] = visible
        return touched

    def toggle(self, indicator_id: str) -> bool:
        visible = not self.is_visible(expand_ids(indicator_id)[0])
        self.set_visible(indicator_id, visible)
        return visible

    def clear(self) -> None:
        """Forget all handles; flags are kept for the next surface."""
        self._handles.clear()
