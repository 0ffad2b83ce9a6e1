"""Tests for timeframe to candle request resolution."""

import pytest

from price_charts.charts.timeframes import (
    DAY_SECONDS, TIMEFRAMES, custom_resolution, resolve_request, time_format
)

NOW = 1_720_000_000


@pytest.mark.parametrize("timeframe, days, resolution", [
    ("1D", 1, "15"),
    ("5D", 5, "60"),
    ("1M", 30, "D"),
    ("6M", 180, "D"),
    ("1Y", 365, "W"),
    ("5Y", 1825, "W"),
    ("Max", 7300, "W"),
])
def test_timeframe_table(timeframe, days, resolution):
    request = resolve_request("aapl", timeframe, now=NOW)

    assert request.symbol == "AAPL"
    assert request.resolution == resolution
    assert request.to_ts == NOW
    assert request.from_ts == NOW - days * DAY_SECONDS


def test_unknown_timeframe_behaves_like_six_months():
    request = resolve_request("AAPL", "2W", now=NOW)
    assert (request.resolution, request.from_ts) == ("D", NOW - 180 * DAY_SECONDS)


@pytest.mark.parametrize("days, resolution", [
    (1, "60"),
    (7, "60"),
    (8, "D"),
    (730, "D"),
    (731, "W"),
])
def test_custom_resolution_thresholds(days, resolution):
    assert custom_resolution(0, days * DAY_SECONDS) == resolution


def test_custom_range_wins_over_timeframe():
    request = resolve_request("AAPL", "Max", custom_range=(1000, 1000 + 2 * DAY_SECONDS))
    assert request.resolution == "60"
    assert (request.from_ts, request.to_ts) == (1000, 1000 + 2 * DAY_SECONDS)


def test_inverted_custom_range():
    with pytest.raises(ValueError):
        resolve_request("AAPL", "6M", custom_range=(2000, 1000))


def test_invalid_symbol():
    with pytest.raises(ValueError):
        resolve_request("not a symbol!", "6M")


def test_time_format():
    assert time_format("15") == "%b %d %H:%M"
    assert time_format("D") == "%b %d"
    assert time_format("W") == "%b %Y"


def test_every_timeframe_has_periods():
    from price_charts.indicators import available_periods

    for timeframe in TIMEFRAMES:
        assert available_periods(timeframe)
