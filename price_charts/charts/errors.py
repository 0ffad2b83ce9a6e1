"""
Chart error taxonomy.

Too little history for an indicator is not an error: the engine returns an
empty series instead.
"""


class ChartError(Exception):
    """Base class for chart lifecycle errors."""


class DataUnavailable(ChartError):
    """No usable candles for the requested range."""


class LayoutUnready(ChartError):
    """The chart container still had zero width after the retry."""


class RenderSurfaceDisposed(ChartError):
    """An operation reached a surface that was already torn down."""
