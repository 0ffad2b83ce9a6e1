"""
Data Access Objects (DAOs) for database operations.

Provides async CRUD operations for chart preferences and settings.
"""

import json
from typing import Optional, List, Dict
import aiosqlite
from .. import config
from .connection import get_db_connection
from .models import ChartPreferences, Settings, normalize_symbol
import logging

logger = logging.getLogger(__name__)

PREFERENCE_FIELDS = (
    'chart_type', 'timeframe', 'enabled_periods', 'rsi_enabled',
    'macd_enabled', 'bb_enabled', 'volume_enabled'
)


# ===========================================
# Chart Preferences DAO
# ===========================================

def _row_to_preferences(row: aiosqlite.Row) -> ChartPreferences:
    return ChartPreferences(
        symbol=row['symbol'],
        chart_type=row['chart_type'],
        timeframe=row['timeframe'],
        enabled_periods=json.loads(row['enabled_periods'] or '[]'),
        rsi_enabled=bool(row['rsi_enabled']),
        macd_enabled=bool(row['macd_enabled']),
        bb_enabled=bool(row['bb_enabled']),
        volume_enabled=bool(row['volume_enabled']),
        updated_at=row['updated_at']
    )


class ChartPreferencesDAO:
    """Data Access Object for chart_preferences table."""

    @staticmethod
    async def defaults(symbol: str) -> ChartPreferences:
        """Preferences for a symbol that has never been customized."""
        settings = await SettingsDAO.get_chart_defaults()
        return ChartPreferences(
            symbol=symbol,
            chart_type=settings.default_chart_type,
            timeframe=settings.default_timeframe
        )

    @staticmethod
    async def find(symbol: str) -> Optional[ChartPreferences]:
        """Get stored preferences, or None if the symbol has none."""
        async with get_db_connection() as db:
            async with db.execute(
                "SELECT * FROM chart_preferences WHERE symbol = ?",
                (normalize_symbol(symbol),)
            ) as cursor:
                row = await cursor.fetchone()
                return _row_to_preferences(row) if row else None

    @staticmethod
    async def get(symbol: str) -> ChartPreferences:
        """Get preferences for a symbol, falling back to the global defaults."""
        prefs = await ChartPreferencesDAO.find(symbol)
        if prefs is None:
            return await ChartPreferencesDAO.defaults(symbol)
        return prefs

    @staticmethod
    async def get_all() -> List[ChartPreferences]:
        async with get_db_connection() as db:
            async with db.execute("SELECT * FROM chart_preferences ORDER BY symbol") as cursor:
                rows = await cursor.fetchall()
                return [_row_to_preferences(row) for row in rows]

    @staticmethod
    async def save(prefs: ChartPreferences) -> ChartPreferences:
        """Insert or replace a symbol's preferences."""
        async with get_db_connection() as db:
            await db.execute(
                """
                INSERT INTO chart_preferences (
                    symbol, chart_type, timeframe, enabled_periods,
                    rsi_enabled, macd_enabled, bb_enabled, volume_enabled
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(symbol) DO UPDATE SET
                    chart_type = excluded.chart_type,
                    timeframe = excluded.timeframe,
                    enabled_periods = excluded.enabled_periods,
                    rsi_enabled = excluded.rsi_enabled,
                    macd_enabled = excluded.macd_enabled,
                    bb_enabled = excluded.bb_enabled,
                    volume_enabled = excluded.volume_enabled,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (
                    prefs.symbol, prefs.chart_type, prefs.timeframe,
                    json.dumps(prefs.enabled_periods),
                    int(prefs.rsi_enabled), int(prefs.macd_enabled),
                    int(prefs.bb_enabled), int(prefs.volume_enabled)
                )
            )
            await db.commit()
        logger.debug(f"Saved chart preferences for {prefs.symbol}")
        return await ChartPreferencesDAO.get(prefs.symbol)

    @staticmethod
    async def update(symbol: str, **kwargs) -> ChartPreferences:
        """Apply a partial change on top of the current preferences."""
        current = await ChartPreferencesDAO.get(symbol)
        changes = {
            key: value for key, value in kwargs.items()
            if key in PREFERENCE_FIELDS and value is not None
        }
        if not changes:
            return current
        merged = current.model_dump()
        merged.update(changes)
        return await ChartPreferencesDAO.save(ChartPreferences(**merged))

    @staticmethod
    async def delete(symbol: str) -> bool:
        async with get_db_connection() as db:
            result = await db.execute(
                "DELETE FROM chart_preferences WHERE symbol = ?",
                (normalize_symbol(symbol),)
            )
            await db.commit()
            return result.rowcount > 0

    @staticmethod
    async def clear_all() -> int:
        """Drop every stored preference; symbols fall back to defaults."""
        async with get_db_connection() as db:
            result = await db.execute("DELETE FROM chart_preferences")
            await db.commit()
            logger.info(f"Cleared {result.rowcount} chart preference records")
            return result.rowcount


# ===========================================
# Settings DAO
# ===========================================

class SettingsDAO:
    """Data Access Object for settings table."""

    @staticmethod
    async def get(key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a setting value."""
        async with get_db_connection() as db:
            async with db.execute(
                "SELECT value FROM settings WHERE key = ?",
                (key,)
            ) as cursor:
                row = await cursor.fetchone()
                return row['value'] if row else default

    @staticmethod
    async def set(key: str, value: str) -> None:
        """Set a setting value."""
        async with get_db_connection() as db:
            await db.execute(
                """
                INSERT INTO settings (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, value)
            )
            await db.commit()

    @staticmethod
    async def get_all() -> Dict[str, str]:
        """Get all settings."""
        async with get_db_connection() as db:
            async with db.execute("SELECT key, value FROM settings") as cursor:
                rows = await cursor.fetchall()
                return {row['key']: row['value'] for row in rows}

    @staticmethod
    async def delete(key: str) -> None:
        """Delete a setting."""
        async with get_db_connection() as db:
            await db.execute("DELETE FROM settings WHERE key = ?", (key,))
            await db.commit()

    @staticmethod
    async def get_chart_defaults() -> Settings:
        """Global chart defaults: stored settings first, then the environment."""
        stored = await SettingsDAO.get_all()
        return Settings(
            default_chart_type=stored.get(
                'default_chart_type', config.get_setting('DEFAULT_CHART_TYPE')),
            default_timeframe=stored.get(
                'default_timeframe', config.get_setting('DEFAULT_TIMEFRAME'))
        )
