"""Tests for visible-range synchronization between panes."""

import pytest

from price_charts.charts.errors import RenderSurfaceDisposed
from price_charts.charts.surface import ChartSurface, ranges_equal
from price_charts.charts.sync import PaneSynchronizer


def _surface(name: str) -> ChartSurface:
    return ChartSurface(name, 400, 150, dpi=50)


class TestPaneSynchronizer:

    def setup_method(self):
        self.primary = _surface("primary")
        self.rsi = _surface("rsi")
        self.macd = _surface("macd")
        self.primary.set_visible_range((0.0, 1000.0))

        self.sync = PaneSynchronizer()
        self.sync.set_primary(self.primary)
        self.sync.add_pane("rsi", self.rsi)
        self.sync.add_pane("macd", self.macd)

    def teardown_method(self):
        for surface in (self.primary, self.rsi, self.macd):
            surface.dispose()

    def test_new_pane_is_aligned_immediately(self):
        assert self.rsi.visible_range == (0.0, 1000.0)
        assert self.macd.visible_range == (0.0, 1000.0)

    def test_primary_change_reaches_every_pane_in_one_step(self):
        self.sync.propagations = 0
        assert self.primary.set_visible_range((100.0, 200.0))

        assert self.rsi.visible_range == (100.0, 200.0)
        assert self.macd.visible_range == (100.0, 200.0)
        assert self.sync.propagations == 2

    def test_same_range_fires_nothing(self):
        self.primary.set_visible_range((100.0, 200.0))
        self.sync.propagations = 0

        assert self.primary.set_visible_range((100.0, 200.0)) is False
        assert self.sync.propagations == 0

    def test_pane_change_converges_everywhere(self):
        self.sync.propagations = 0
        self.rsi.set_visible_range((150.0, 250.0))

        for surface in (self.primary, self.rsi, self.macd):
            assert ranges_equal(surface.visible_range, (150.0, 250.0))
        # rsi -> primary, then primary -> macd
        assert self.sync.propagations == 2

    def test_removed_pane_is_not_updated(self):
        self.sync.remove_pane("macd")
        self.primary.set_visible_range((300.0, 400.0))

        assert self.rsi.visible_range == (300.0, 400.0)
        assert self.macd.visible_range == (0.0, 1000.0)

    def test_disposed_pane_is_skipped(self):
        self.macd.dispose()
        self.primary.set_visible_range((300.0, 400.0))
        assert self.rsi.visible_range == (300.0, 400.0)

    def test_set_primary_drops_old_panes(self):
        other = _surface("other")
        try:
            self.sync.set_primary(other)
            assert self.sync.panes == {}
            self.primary.set_visible_range((5.0, 6.0))
            assert self.rsi.visible_range == (0.0, 1000.0)
        finally:
            other.dispose()

    def test_add_pane_without_primary(self):
        sync = PaneSynchronizer()
        with pytest.raises(RuntimeError):
            sync.add_pane("rsi", self.rsi)


class TestSurfaceRange:

    def test_ranges_equal_tolerance(self):
        assert ranges_equal((1.0, 2.0), (1.0 + 1e-9, 2.0))
        assert not ranges_equal((1.0, 2.0), (1.1, 2.0))
        assert ranges_equal(None, None)
        assert not ranges_equal(None, (1.0, 2.0))

    def test_disposed_surface_rejects_range(self):
        surface = _surface("primary")
        surface.dispose()
        surface.dispose()
        with pytest.raises(RenderSurfaceDisposed):
            surface.set_visible_range((1.0, 2.0))
