"""
Chart API endpoints.

Serves candles, indicator series, rendered chart images and per-symbol
chart preferences.
"""

import logging
from fastapi import APIRouter, HTTPException, Query
from typing import List, Optional

from ..charts.container import ChartContainer
from ..charts.errors import DataUnavailable, LayoutUnready
from ..charts.orchestrator import ChartOrchestrator
from ..charts.timeframes import resolve_request
from ..data.candle_provider import candle_provider, payload_to_candles
from ..database.dao import ChartPreferencesDAO
from ..database.models import (
    ChartPreferences, ChartPreferencesUpdate, APIResponse, CHART_TYPES, RESOLUTIONS,
    normalize_chart_type, normalize_symbol
)
from ..indicators.overlays import compute_overlays
from ..indicators.periods import available_periods
from .. import config

router = APIRouter()
logger = logging.getLogger(__name__)


def _symbol_or_400(symbol: str) -> str:
    try:
        return normalize_symbol(symbol)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _parse_periods(periods: Optional[str]) -> list:
    if not periods:
        return []
    try:
        return sorted({int(p) for p in periods.split(',') if p.strip()})
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid periods: {periods}")


@router.get("/periods/{timeframe}")
async def get_available_periods(timeframe: str):
    """Get the SMA periods that suit a timeframe."""
    return {"timeframe": timeframe, "periods": available_periods(timeframe)}


@router.get("/preferences", response_model=List[ChartPreferences])
async def list_preferences():
    """List every symbol with stored chart preferences."""
    return await ChartPreferencesDAO.get_all()


@router.delete("/preferences", response_model=APIResponse)
async def clear_preferences():
    """Forget every stored chart preference."""
    try:
        removed = await ChartPreferencesDAO.clear_all()
        return APIResponse(
            success=True,
            message="Chart preferences cleared",
            data={"removed": removed}
        )
    except Exception as e:
        logger.error(f"Error clearing chart preferences: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to clear preferences: {str(e)}")


@router.get("/{symbol}/candles")
async def get_candles(
    symbol: str,
    resolution: str = "D",
    from_ts: int = Query(..., alias="from"),
    to_ts: int = Query(..., alias="to"),
):
    """Get OHLCV candles in the compact ``{s, t, o, h, l, c, v}`` shape."""
    symbol = _symbol_or_400(symbol)
    if resolution not in RESOLUTIONS:
        raise HTTPException(status_code=400, detail=f"Unknown resolution: {resolution}")
    if from_ts >= to_ts:
        raise HTTPException(status_code=400, detail="'from' must be before 'to'")

    try:
        payload = await candle_provider.fetch_candles(symbol, resolution, from_ts, to_ts)
    except Exception as e:
        logger.error(f"Error fetching candles for {symbol}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch candles: {str(e)}")

    if payload.s != 'ok':
        raise HTTPException(status_code=404, detail=f"No chart data available for {symbol}")
    return payload.model_dump()


@router.get("/{symbol}/indicators")
async def get_indicators(
    symbol: str,
    timeframe: str = "6M",
    periods: Optional[str] = None,
    rsi: bool = False,
    macd: bool = False,
    bb: bool = False,
):
    """Compute indicator series for a symbol and timeframe.

    ``periods`` is a comma separated list; periods that do not suit the
    timeframe are dropped.
    """
    symbol = _symbol_or_400(symbol)
    requested = _parse_periods(periods)
    allowed = available_periods(timeframe)
    active = [p for p in requested if p in allowed]

    try:
        request = resolve_request(symbol, timeframe)
        payload = await candle_provider.fetch_candles(
            request.symbol, request.resolution, request.from_ts, request.to_ts)
        candles = payload_to_candles(payload)
        series = compute_overlays(candles, active, rsi, macd, bb)

        return {
            "symbol": symbol,
            "timeframe": timeframe,
            "resolution": request.resolution,
            "periods": active,
            "series": {
                indicator_id: [point.model_dump() for point in points]
                for indicator_id, points in series.items()
            },
        }

    except DataUnavailable as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error computing indicators for {symbol}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to compute indicators: {str(e)}")


@router.get("/{symbol}/image")
async def get_chart_image(
    symbol: str,
    timeframe: Optional[str] = None,
    chart_type: Optional[str] = None,
    save: bool = False,
):
    """Render the primary pane with the symbol's preferences.

    Returns a base64 data URL, or the file path when ``save`` is set.
    """
    symbol = _symbol_or_400(symbol)
    if chart_type is not None:
        chart_type = normalize_chart_type(chart_type)
        if chart_type not in CHART_TYPES:
            raise HTTPException(
                status_code=400,
                detail=f"Unknown chart type: {chart_type}. Valid types: {', '.join(CHART_TYPES)}"
            )

    prefs = await ChartPreferencesDAO.get(symbol)
    container = ChartContainer(config.get_int('CHART_WIDTH'), config.get_int('CHART_HEIGHT'))
    orchestrator = ChartOrchestrator(candle_provider.fetch_candles, container, preferences=prefs)

    try:
        await orchestrator.load(symbol, timeframe=timeframe or prefs.timeframe,
                                chart_type=chart_type or prefs.chart_type)
        image = orchestrator.export_image(save_to_file=save)
        result = {
            "symbol": symbol,
            "timeframe": orchestrator.timeframe,
            "chart_type": orchestrator.chart_type,
        }
        result["path" if save else "image"] = image
        return result

    except DataUnavailable as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LayoutUnready as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error generating chart image for {symbol}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate chart image: {str(e)}")
    finally:
        orchestrator.dispose()


@router.get("/{symbol}/preferences", response_model=ChartPreferences)
async def get_preferences(symbol: str):
    """Get a symbol's chart preferences (defaults when never saved)."""
    symbol = _symbol_or_400(symbol)
    return await ChartPreferencesDAO.get(symbol)


@router.put("/{symbol}/preferences", response_model=APIResponse)
async def update_preferences(symbol: str, update: ChartPreferencesUpdate):
    """Update a symbol's chart preferences."""
    symbol = _symbol_or_400(symbol)

    try:
        prefs = await ChartPreferencesDAO.update(symbol, **update.model_dump(exclude_none=True))
        return APIResponse(
            success=True,
            message=f"Chart preferences saved for {symbol}",
            data=prefs.model_dump(mode="json")
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error saving chart preferences for {symbol}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save preferences: {str(e)}")


@router.delete("/{symbol}/preferences", response_model=APIResponse)
async def delete_preferences(symbol: str):
    """Forget a symbol's stored preferences so it falls back to the defaults."""
    symbol = _symbol_or_400(symbol)

    if not await ChartPreferencesDAO.delete(symbol):
        raise HTTPException(status_code=404, detail=f"No saved chart preferences for {symbol}")
    logger.info(f"Deleted chart preferences for {symbol}")
    return APIResponse(success=True, message=f"Chart preferences removed for {symbol}")
