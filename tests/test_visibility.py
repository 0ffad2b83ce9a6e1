"""Tests for overlay visibility control."""

import pytest

from price_charts.charts.surface import ChartSurface
from price_charts.charts.visibility import OverlayVisibilityController
from price_charts.indicators import sma, bollinger_bands


@pytest.fixture
def surface():
    surface = ChartSurface("primary", 400, 200, dpi=50)
    yield surface
    surface.dispose()


def _artist_visible(handle) -> bool:
    return all(artist.get_visible() for artist in handle._artists)


class TestOverlayVisibilityController:

    def test_hide_and_show_keeps_data(self, surface, daily_candles):
        handle = surface.add_line_series("sma_10", sma(daily_candles, 10), "#F59E0B")
        controller = OverlayVisibilityController()
        controller.register("sma_10", handle)
        data = handle.data
        values = [p.value for p in data]

        assert controller.set_visible("sma_10", False) == 1
        assert handle.visible is False
        assert not _artist_visible(handle)

        controller.set_visible("sma_10", True)
        controller.toggle("sma_10")
        controller.toggle("sma_10")

        assert handle.visible is True
        assert _artist_visible(handle)
        assert handle.data is data
        assert [p.value for p in handle.data] == values

    def test_group_toggle_hits_all_bands(self, surface, daily_candles):
        bands = bollinger_bands(daily_candles, 20, 2)
        controller = OverlayVisibilityController()
        handles = []
        for indicator_id, points in (("bb_upper", bands.upper), ("bb_middle", bands.middle),
                                     ("bb_lower", bands.lower)):
            handle = surface.add_line_series(indicator_id, points, "#6B7280")
            controller.register(indicator_id, handle)
            handles.append(handle)

        assert controller.set_visible("bb", False) == 3
        assert all(not h.visible for h in handles)
        assert controller.is_visible("bb_middle") is False
        assert controller.snapshot()["bb"] is False

    def test_initial_flags_apply_on_register(self, surface, daily_candles):
        controller = OverlayVisibilityController({"sma_20": False})
        handle = surface.add_line_series("sma_20", sma(daily_candles, 20), "#FF6B00")
        controller.register("sma_20", handle)

        assert handle.visible is False
        assert not _artist_visible(handle)

    def test_flag_without_handle_is_kept(self, surface, daily_candles):
        controller = OverlayVisibilityController()
        assert controller.set_visible("rsi", False) == 0
        assert controller.is_visible("rsi") is False

        handle = surface.add_line_series("rsi", sma(daily_candles, 5), "#8B5CF6")
        controller.register("rsi", handle)
        assert handle.visible is False

    def test_group_flag_is_fallback(self):
        controller = OverlayVisibilityController({"macd": False})
        assert controller.is_visible("macd_signal") is False
        assert controller.is_visible("sma_10") is True

    def test_unregister_and_clear(self, surface, daily_candles):
        controller = OverlayVisibilityController()
        handle = surface.add_line_series("sma_10", sma(daily_candles, 10), "#F59E0B")
        controller.register("sma_10", handle)

        controller.unregister("sma_10", handle)
        assert controller.handles("sma_10") == []
        assert controller.set_visible("sma_10", False) == 0
        assert handle.visible is True

        controller.register("sma_10", handle)
        controller.clear()
        assert controller.handles("sma_10") == []
        assert controller.is_visible("sma_10") is False

    def test_disposed_surface_is_ignored(self, daily_candles):
        surface = ChartSurface("primary", 400, 200, dpi=50)
        controller = OverlayVisibilityController()
        controller.register("sma_10", surface.add_line_series(
            "sma_10", sma(daily_candles, 10), "#F59E0B"))
        surface.dispose()

        assert controller.set_visible("sma_10", False) == 0
        assert controller.is_visible("sma_10") is False
