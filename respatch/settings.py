import logging
import sys
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.yml"


class Settings(BaseModel):
    """Represents saved settings"""

    game_dir: Optional[str] = None
    config_path: Optional[str] = None
    selected_app: Optional[str] = None
    width: Optional[int] = Field(default=None, ge=0, le=0xFFFF)
    height: Optional[int] = Field(default=None, ge=0, le=0xFFFF)


def default_settings_path() -> Path:
    """Return the settings file location.

    Next to the executable when running as compiled executable, otherwise
    in the current directory.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent / SETTINGS_FILE
    return Path(SETTINGS_FILE)


def load_settings(path: Union[str, Path]) -> Settings:
    """Load settings, falling back to defaults when missing or invalid"""
    path = Path(path)
    if not path.exists():
        return Settings()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not data:
            return Settings()
        if not isinstance(data, dict):
            raise ValueError("settings must be a mapping")
        return Settings(**data)
    except (IOError, OSError, yaml.YAMLError, ValidationError, ValueError) as e:
        logger.warning("Failed to load settings from %s: %s", path, e)
        return Settings()


def save_settings(path: Union[str, Path], settings: Settings) -> bool:
    """Write settings to disk.

    Returns:
        True if the settings were written, False otherwise
    """
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(settings.model_dump(exclude_none=True), f, default_flow_style=False)
        return True
    except (IOError, OSError, yaml.YAMLError) as e:
        logger.warning("Failed to save settings to %s: %s", path, e)
        return False
