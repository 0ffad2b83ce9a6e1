"""Tests for the chart preference and settings DAOs."""

import pytest
from pydantic import ValidationError

from price_charts.database.connection import get_database_stats
from price_charts.database.dao import ChartPreferencesDAO, SettingsDAO
from price_charts.database.models import ChartPreferences


class TestChartPreferencesDAO:

    @pytest.mark.asyncio
    async def test_unknown_symbol_gets_defaults(self, database):
        prefs = await ChartPreferencesDAO.get("aapl")

        assert prefs.symbol == "AAPL"
        assert prefs.chart_type == "candlestick"
        assert prefs.timeframe == "6M"
        assert prefs.enabled_periods == []
        assert prefs.volume_enabled is True
        assert await ChartPreferencesDAO.find("AAPL") is None

    @pytest.mark.asyncio
    async def test_save_and_get(self, database):
        await ChartPreferencesDAO.save(ChartPreferences(
            symbol="MSFT", chart_type="line", timeframe="1Y",
            enabled_periods=[50, 10, 10], rsi_enabled=True))

        prefs = await ChartPreferencesDAO.get("msft")

        assert prefs.chart_type == "line"
        assert prefs.timeframe == "1Y"
        assert prefs.enabled_periods == [10, 50]
        assert prefs.rsi_enabled is True
        assert prefs.macd_enabled is False
        assert prefs.updated_at is not None

    @pytest.mark.asyncio
    async def test_partial_update(self, database):
        await ChartPreferencesDAO.save(ChartPreferences(symbol="TSLA", enabled_periods=[20]))

        prefs = await ChartPreferencesDAO.update("TSLA", bb_enabled=True, timeframe=None)

        assert prefs.bb_enabled is True
        assert prefs.enabled_periods == [20]
        assert prefs.timeframe == "6M"

    @pytest.mark.asyncio
    async def test_update_creates_record(self, database):
        await ChartPreferencesDAO.update("NVDA", chart_type="area")

        stored = await ChartPreferencesDAO.find("NVDA")
        assert stored is not None
        assert stored.chart_type == "area"

    @pytest.mark.asyncio
    async def test_update_ignores_unknown_fields(self, database):
        prefs = await ChartPreferencesDAO.update("AMD", colour="red", updated_at=None)
        assert prefs.symbol == "AMD"
        assert await ChartPreferencesDAO.find("AMD") is None

    @pytest.mark.asyncio
    async def test_clear_all(self, database):
        await ChartPreferencesDAO.save(ChartPreferences(symbol="AAA", rsi_enabled=True))
        await ChartPreferencesDAO.save(ChartPreferences(symbol="BBB", macd_enabled=True))

        assert await ChartPreferencesDAO.clear_all() == 2

        assert await ChartPreferencesDAO.get_all() == []
        assert (await ChartPreferencesDAO.get("AAA")).rsi_enabled is False

    @pytest.mark.asyncio
    async def test_delete(self, database):
        await ChartPreferencesDAO.save(ChartPreferences(symbol="AAA"))
        assert await ChartPreferencesDAO.delete("AAA") is True
        assert await ChartPreferencesDAO.delete("AAA") is False

    @pytest.mark.asyncio
    async def test_stats(self, database):
        await ChartPreferencesDAO.save(ChartPreferences(symbol="AAA"))
        stats = await get_database_stats()
        assert stats["chart_preferences_count"] == 1


class TestChartDefaults:

    @pytest.mark.asyncio
    async def test_environment_defaults(self, database, monkeypatch):
        monkeypatch.setenv("DEFAULT_TIMEFRAME", "1Y")
        settings = await SettingsDAO.get_chart_defaults()
        assert settings.default_timeframe == "1Y"

    @pytest.mark.asyncio
    async def test_stored_settings_win(self, database, monkeypatch):
        monkeypatch.setenv("DEFAULT_CHART_TYPE", "area")
        await SettingsDAO.set("default_chart_type", "line")

        prefs = await ChartPreferencesDAO.get("AAPL")
        assert prefs.chart_type == "line"

    @pytest.mark.asyncio
    async def test_settings_crud(self, database):
        await SettingsDAO.set("default_timeframe", "5Y")
        assert await SettingsDAO.get("default_timeframe") == "5Y"
        assert await SettingsDAO.get_all() == {"default_timeframe": "5Y"}

        await SettingsDAO.delete("default_timeframe")
        assert await SettingsDAO.get("default_timeframe", "6M") == "6M"


class TestChartPreferencesModel:

    def test_legacy_chart_type(self):
        assert ChartPreferences(symbol="AAPL", chart_type="candle").chart_type == "candlestick"

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            ChartPreferences(symbol="AAPL", chart_type="bars")
        with pytest.raises(ValidationError):
            ChartPreferences(symbol="AAPL", enabled_periods=[0])
        with pytest.raises(ValidationError):
            ChartPreferences(symbol="bad symbol")
