"""
Pydantic models for data validation and serialization.

These models are used for:
- Candle and indicator series passed between the engine and the charts
- Request/response validation in the API
- Chart preference records in the database
"""

from pydantic import BaseModel, Field, field_serializer, field_validator
from typing import Optional, List, Literal, Mapping
from types import MappingProxyType
from datetime import datetime
import re


ChartType = Literal['candlestick', 'line', 'area']
Resolution = Literal['1', '5', '15', '30', '60', 'D', 'W', 'M']

CHART_TYPES = ('candlestick', 'line', 'area')
RESOLUTIONS = ('1', '5', '15', '30', '60', 'D', 'W', 'M')

SYMBOL_PATTERN = re.compile(r'^[A-Z0-9.\-^=]+$')


def normalize_symbol(value: str) -> str:
    """Validate and normalize a ticker symbol."""
    value = value.strip().upper()
    if not value or not SYMBOL_PATTERN.match(value):
        raise ValueError('Invalid ticker symbol format')
    return value


def normalize_chart_type(value: str) -> str:
    """Map legacy chart type names onto the current ones."""
    if value == 'candle':
        return 'candlestick'
    return value


# ===========================================
# Candle Models
# ===========================================

class Candle(BaseModel):
    """One OHLCV bar. ``time`` is unix seconds."""
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    class Config:
        frozen = True


class CandlePayload(BaseModel):
    """Wire shape returned by the candle fetch collaborator."""
    s: str = 'ok'
    t: List[Optional[int]] = Field(default_factory=list)
    o: List[Optional[float]] = Field(default_factory=list)
    h: List[Optional[float]] = Field(default_factory=list)
    l: List[Optional[float]] = Field(default_factory=list)
    c: List[Optional[float]] = Field(default_factory=list)
    v: List[Optional[float]] = Field(default_factory=list)
    fallback: bool = False
    original_resolution: Optional[str] = None


class FetchRequest(BaseModel):
    """A resolved candle request for one chart load."""
    symbol: str
    resolution: Resolution
    from_ts: int
    to_ts: int

    class Config:
        frozen = True


# ===========================================
# Indicator Models
# ===========================================

class SeriesPoint(BaseModel):
    """A single point of an indicator series."""
    time: int
    value: float

    class Config:
        frozen = True


class MACDResult(BaseModel):
    """MACD line, signal line and histogram."""
    macd_line: List[SeriesPoint] = Field(default_factory=list)
    signal_line: List[SeriesPoint] = Field(default_factory=list)
    histogram: List[SeriesPoint] = Field(default_factory=list)


class BollingerBandsResult(BaseModel):
    """Upper, middle and lower Bollinger bands."""
    upper: List[SeriesPoint] = Field(default_factory=list)
    middle: List[SeriesPoint] = Field(default_factory=list)
    lower: List[SeriesPoint] = Field(default_factory=list)


# ===========================================
# Chart Preference Models
# ===========================================

class ChartPreferences(BaseModel):
    """Per-symbol chart preferences."""
    symbol: str
    chart_type: ChartType = 'candlestick'
    timeframe: str = '6M'
    enabled_periods: List[int] = Field(default_factory=list)
    rsi_enabled: bool = False
    macd_enabled: bool = False
    bb_enabled: bool = False
    volume_enabled: bool = True
    updated_at: Optional[datetime] = None

    @field_validator('symbol')
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        return normalize_symbol(v)

    @field_validator('chart_type', mode='before')
    @classmethod
    def validate_chart_type(cls, v: str) -> str:
        return normalize_chart_type(v)

    @field_validator('enabled_periods')
    @classmethod
    def validate_periods(cls, v: List[int]) -> List[int]:
        """Periods behave as a set: unique, positive, sorted."""
        if any(p <= 0 for p in v):
            raise ValueError('Periods must be positive')
        return sorted(set(v))

    class Config:
        from_attributes = True


class ChartPreferencesUpdate(BaseModel):
    """Partial update of a symbol's chart preferences."""
    chart_type: Optional[ChartType] = None
    timeframe: Optional[str] = None
    enabled_periods: Optional[List[int]] = None
    rsi_enabled: Optional[bool] = None
    macd_enabled: Optional[bool] = None
    bb_enabled: Optional[bool] = None
    volume_enabled: Optional[bool] = None

    @field_validator('chart_type', mode='before')
    @classmethod
    def validate_chart_type(cls, v: Optional[str]) -> Optional[str]:
        return normalize_chart_type(v) if v is not None else v


# ===========================================
# Tooltip Models
# ===========================================

class TooltipRecord(BaseModel):
    """Everything shown in the crosshair tooltip for one bar."""
    time: int
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    volume: Optional[float] = None
    indicators: Mapping[str, float] = Field(default_factory=dict, validate_default=True)

    @field_validator('indicators')
    @classmethod
    def freeze_indicators(cls, v):
        return MappingProxyType(dict(v))

    @field_serializer('indicators')
    def serialize_indicators(self, v):
        return dict(v)

    class Config:
        frozen = True


# ===========================================
# Settings Models
# ===========================================

class SettingsUpdate(BaseModel):
    """Model for updating global chart defaults."""
    default_chart_type: Optional[ChartType] = None
    default_timeframe: Optional[str] = None


class Settings(BaseModel):
    """Model for global chart defaults."""
    default_chart_type: str = 'candlestick'
    default_timeframe: str = '6M'


# ===========================================
# API Response Models
# ===========================================

class APIResponse(BaseModel):
    """Generic API response model."""
    success: bool
    message: Optional[str] = None
    data: Optional[dict] = None
