"""
Settings API endpoints.

Provides endpoints for managing the global chart defaults.
"""

from fastapi import APIRouter, HTTPException
from dotenv import set_key
import logging

from .. import config
from ..charts.timeframes import TIMEFRAMES
from ..database.dao import SettingsDAO
from ..database.models import Settings, SettingsUpdate, APIResponse

router = APIRouter()
logger = logging.getLogger(__name__)

# settings table key -> .env key
SETTING_KEYS = {
    "default_chart_type": "DEFAULT_CHART_TYPE",
    "default_timeframe": "DEFAULT_TIMEFRAME",
}


def _write_env(env_key: str, value: str) -> None:
    env_path = config.ENV_PATH
    if not env_path.exists():
        env_path.touch()
    set_key(str(env_path), env_key, value)


@router.get("", response_model=Settings)
async def get_settings():
    """Get current chart defaults."""
    return await SettingsDAO.get_chart_defaults()


@router.put("", response_model=APIResponse)
async def update_settings(settings: SettingsUpdate):
    """Update chart defaults."""
    if settings.default_timeframe and settings.default_timeframe not in TIMEFRAMES:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown timeframe: {settings.default_timeframe}"
        )

    try:
        for key, value in settings.model_dump(exclude_none=True).items():
            await SettingsDAO.set(key, value)
            _write_env(SETTING_KEYS[key], value)

        # Reload environment
        config.reload()

        return APIResponse(
            success=True,
            message="Settings saved successfully",
            data=(await SettingsDAO.get_chart_defaults()).model_dump()
        )

    except Exception as e:
        logger.error(f"Error saving settings: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save settings: {str(e)}")


@router.post("/reset", response_model=APIResponse)
async def reset_settings():
    """Reset chart defaults to the built-in values."""
    try:
        for key, env_key in SETTING_KEYS.items():
            await SettingsDAO.delete(key)
            _write_env(env_key, config.DEFAULTS[env_key])

        # Reload environment
        config.reload()

        return APIResponse(success=True, message="Settings reset to defaults")

    except Exception as e:
        logger.error(f"Error resetting settings: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to reset settings: {str(e)}")
