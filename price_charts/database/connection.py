"""
Database connection and initialization module.

Provides SQLite connection management with async support using aiosqlite.
"""

import aiosqlite
from pathlib import Path
from contextlib import asynccontextmanager
import logging

from .. import config

# Configure logging
logger = logging.getLogger(__name__)


def get_database_path() -> Path:
    """Database file location, read from config on every call."""
    return Path(config.get_setting("DATABASE_PATH"))


@asynccontextmanager
async def get_db_connection():
    """
    Async context manager for database connections.

    Usage:
        async with get_db_connection() as db:
            await db.execute("SELECT * FROM chart_preferences")
    """
    path = get_database_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    db.row_factory = aiosqlite.Row
    try:
        yield db
    finally:
        await db.close()


async def init_database():
    """Initialize the database with all required tables."""
    logger.info("Initializing database...")

    async with get_db_connection() as db:
        # Per-symbol chart preferences
        await db.execute("""
            CREATE TABLE IF NOT EXISTS chart_preferences (
                symbol TEXT PRIMARY KEY,
                chart_type TEXT NOT NULL DEFAULT 'candlestick'
                    CHECK (chart_type IN ('candlestick', 'line', 'area')),
                timeframe TEXT NOT NULL DEFAULT '6M',
                enabled_periods TEXT NOT NULL DEFAULT '[]',
                rsi_enabled INTEGER NOT NULL DEFAULT 0,
                macd_enabled INTEGER NOT NULL DEFAULT 0,
                bb_enabled INTEGER NOT NULL DEFAULT 0,
                volume_enabled INTEGER NOT NULL DEFAULT 1,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Create settings table
        await db.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_chart_preferences_updated ON chart_preferences(updated_at)
        """)

        await db.commit()

    logger.info("Database initialized successfully")


async def check_database_exists() -> bool:
    """Check if the database file exists."""
    return get_database_path().exists()


async def get_database_stats() -> dict:
    """Get statistics about the database."""
    async with get_db_connection() as db:
        stats = {}

        async with db.execute("SELECT COUNT(*) FROM chart_preferences") as cursor:
            row = await cursor.fetchone()
            stats["chart_preferences_count"] = row[0] if row else 0

        async with db.execute("SELECT COUNT(*) FROM settings") as cursor:
            row = await cursor.fetchone()
            stats["settings_count"] = row[0] if row else 0

        return stats
