"""
Layout container for chart surfaces.

Stands in for the page element a chart is mounted into: it has a layout box
that may start at zero width and changes over time, and observers are told
about every change.
"""

import logging
from typing import Callable, Dict

logger = logging.getLogger(__name__)

ResizeCallback = Callable[[int, int], None]


class ChartContainer:
    """Observable layout box, in pixels."""

    def __init__(self, width: int = 0, height: int = 500,
                 screen_width: int = 1920, screen_height: int = 1080):
        self.width = width
        self.height = height
        self.screen_width = screen_width
        self.screen_height = screen_height
        self._observers: Dict[int, ResizeCallback] = {}
        self._next_token = 0

    def observe(self, callback: ResizeCallback) -> Callable[[], None]:
        """Register a resize observer. Returns a function that unregisters it."""
        token = self._next_token
        self._next_token += 1
        self._observers[token] = callback

        def unobserve() -> None:
            self._observers.pop(token, None)

        return unobserve

    def resize(self, width: int, height: int = None) -> None:
        """Change the layout box and notify observers."""
        if height is None:
            height = self.height
        if (width, height) == (self.width, self.height):
            return
        self.width, self.height = width, height
        for callback in list(self._observers.values()):
            callback(width, height)
