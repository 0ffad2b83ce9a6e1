"""
Application configuration.

Values come from the process environment, with a project-level .env file
loaded first. The settings API writes back to the same file.
"""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Path to .env file
PROJECT_ROOT = Path(__file__).parent.parent
ENV_PATH = PROJECT_ROOT / ".env"

DEFAULTS = {
    "DEFAULT_CHART_TYPE": "candlestick",
    "DEFAULT_TIMEFRAME": "6M",
    "CHART_WIDTH": "1200",
    "CHART_HEIGHT": "500",
    "CHART_DPI": "100",
    "LAYOUT_RETRY_DELAY": "0.1",
    "REPORTS_DIR": "reports",
    "DATABASE_PATH": str(PROJECT_ROOT / "data" / "price_charts.db"),
}

load_dotenv(ENV_PATH)


def get_setting(name: str, default: Optional[str] = None) -> str:
    """Read a setting from the environment, falling back to built-in defaults."""
    if default is None:
        default = DEFAULTS.get(name, "")
    return os.getenv(name, default)


def get_int(name: str) -> int:
    return int(get_setting(name))


def get_float(name: str) -> float:
    return float(get_setting(name))


def reload() -> None:
    """Re-read the .env file after it was changed."""
    load_dotenv(ENV_PATH, override=True)
