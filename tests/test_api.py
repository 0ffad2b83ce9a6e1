"""Tests for the HTTP API."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from price_charts.database.models import CandlePayload
from price_charts.main import app


@pytest.fixture
def client(chart_env):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def provider(candle_factory, wave_closes, payload_factory):
    payload = CandlePayload(**payload_factory(candle_factory(wave_closes(60))))
    with patch("price_charts.api.chart.candle_provider") as provider:
        provider.fetch_candles = AsyncMock(return_value=payload)
        yield provider


class TestChartEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_periods(self, client):
        response = client.get("/api/chart/periods/1D")
        assert response.json() == {"timeframe": "1D", "periods": [10]}

    def test_candles(self, client, provider):
        response = client.get("/api/chart/aapl/candles",
                              params={"resolution": "D", "from": 100, "to": 200})

        assert response.status_code == 200
        body = response.json()
        assert body["s"] == "ok"
        assert len(body["t"]) == 60
        provider.fetch_candles.assert_awaited_once_with("AAPL", "D", 100, 200)

    def test_candles_unavailable(self, client, provider):
        provider.fetch_candles.return_value = CandlePayload(s="no_data")

        response = client.get("/api/chart/AAPL/candles",
                              params={"resolution": "D", "from": 100, "to": 200})

        assert response.status_code == 404
        assert response.json()["success"] is False
        assert "AAPL" in response.json()["message"]

    @pytest.mark.parametrize("params", [
        {"resolution": "2H", "from": 100, "to": 200},
        {"resolution": "D", "from": 300, "to": 200},
    ])
    def test_candles_bad_request(self, client, provider, params):
        response = client.get("/api/chart/AAPL/candles", params=params)
        assert response.status_code == 400

    def test_indicators(self, client, provider):
        response = client.get("/api/chart/AAPL/indicators", params={
            "timeframe": "6M", "periods": "10,20,200", "rsi": "true", "bb": "true"})

        assert response.status_code == 200
        body = response.json()
        assert body["periods"] == [10, 20]
        assert set(body["series"]) == {
            "sma_10", "sma_20", "rsi", "bb_upper", "bb_middle", "bb_lower"}
        assert len(body["series"]["sma_10"]) == 60 - 10 + 1
        assert set(body["series"]["rsi"][0]) == {"time", "value"}

    def test_indicators_unavailable(self, client, provider):
        provider.fetch_candles.return_value = CandlePayload(s="no_data")
        response = client.get("/api/chart/AAPL/indicators")
        assert response.status_code == 404

    def test_indicators_bad_periods(self, client, provider):
        response = client.get("/api/chart/AAPL/indicators", params={"periods": "ten"})
        assert response.status_code == 400

    def test_image(self, client, provider):
        response = client.get("/api/chart/AAPL/image", params={"chart_type": "candle"})

        assert response.status_code == 200
        body = response.json()
        assert body["chart_type"] == "candlestick"
        assert body["timeframe"] == "6M"
        assert body["image"].startswith("data:image/png;base64,")

    def test_image_unknown_chart_type(self, client, provider):
        response = client.get("/api/chart/AAPL/image", params={"chart_type": "renko"})
        assert response.status_code == 400

    def test_image_unavailable(self, client, provider):
        provider.fetch_candles.return_value = CandlePayload(s="no_data")
        response = client.get("/api/chart/AAPL/image")
        assert response.status_code == 404

    def test_invalid_symbol(self, client):
        response = client.get("/api/chart/$$$/preferences")
        assert response.status_code == 400


class TestPreferenceEndpoints:

    def test_defaults_then_update(self, client):
        response = client.get("/api/chart/aapl/preferences")
        assert response.status_code == 200
        assert response.json()["symbol"] == "AAPL"
        assert response.json()["rsi_enabled"] is False

        response = client.put("/api/chart/AAPL/preferences", json={
            "rsi_enabled": True, "enabled_periods": [50, 10], "chart_type": "candle"})
        assert response.status_code == 200
        assert response.json()["success"] is True

        prefs = client.get("/api/chart/AAPL/preferences").json()
        assert prefs["rsi_enabled"] is True
        assert prefs["enabled_periods"] == [10, 50]
        assert prefs["chart_type"] == "candlestick"

    def test_invalid_update(self, client):
        response = client.put("/api/chart/AAPL/preferences", json={"enabled_periods": [-5]})
        assert response.status_code == 400

    def test_clear_all(self, client):
        client.put("/api/chart/AAPL/preferences", json={"macd_enabled": True})

        response = client.delete("/api/chart/preferences")
        assert response.status_code == 200
        assert response.json()["data"]["removed"] == 1

        assert client.get("/api/chart/AAPL/preferences").json()["macd_enabled"] is False

    def test_list_saved(self, client):
        assert client.get("/api/chart/preferences").json() == []

        client.put("/api/chart/msft/preferences", json={"bb_enabled": True})
        client.put("/api/chart/AAPL/preferences", json={"chart_type": "line"})

        saved = client.get("/api/chart/preferences").json()
        assert [prefs["symbol"] for prefs in saved] == ["AAPL", "MSFT"]
        assert saved[1]["bb_enabled"] is True

    def test_delete_one(self, client):
        client.put("/api/chart/AAPL/preferences", json={"rsi_enabled": True})
        client.put("/api/chart/MSFT/preferences", json={"rsi_enabled": True})

        response = client.delete("/api/chart/aapl/preferences")
        assert response.status_code == 200
        assert response.json()["success"] is True

        assert client.get("/api/chart/AAPL/preferences").json()["rsi_enabled"] is False
        assert client.get("/api/chart/MSFT/preferences").json()["rsi_enabled"] is True

        response = client.delete("/api/chart/AAPL/preferences")
        assert response.status_code == 404
        assert response.json()["success"] is False


class TestSettingsEndpoints:

    def test_update_and_reset(self, client, chart_env):
        response = client.put("/api/settings", json={"default_timeframe": "1Y"})
        assert response.status_code == 200
        assert response.json()["data"]["default_timeframe"] == "1Y"

        assert client.get("/api/settings").json()["default_timeframe"] == "1Y"
        assert client.get("/api/chart/ZZZ/preferences").json()["timeframe"] == "1Y"
        assert "DEFAULT_TIMEFRAME" in (chart_env / ".env").read_text()

        response = client.post("/api/settings/reset")
        assert response.status_code == 200
        assert client.get("/api/settings").json() == {
            "default_chart_type": "candlestick",
            "default_timeframe": "6M",
        }

    def test_unknown_timeframe(self, client):
        response = client.put("/api/settings", json={"default_timeframe": "3W"})
        assert response.status_code == 400
