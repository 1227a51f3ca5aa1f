"""Per-user directories for credentials and cached data."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "modcheck"
API_KEY_FILENAME: Final[str] = "apikey.txt"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


def get_config_dir() -> Path:
    """Return the directory holding user configuration such as the API key."""

    env_dir = os.getenv("MODCHECK_CONFIG_DIR")
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    if os.name == "nt":
        base = os.getenv("APPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Roaming")
    else:
        base = os.getenv("XDG_CONFIG_HOME")
        base_path = Path(base) if base else (Path.home() / ".config")

    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_data_dir() -> Path:
    """Return the directory where modcheck stores cached data."""

    env_dir = os.getenv("MODCHECK_DATA_DIR")
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")

    return (base_path / APP_DIR_NAME).expanduser().resolve()


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_api_key_path() -> Path:
    return get_config_dir() / API_KEY_FILENAME


def get_http_cache_path() -> Path:
    """Return the sqlite HTTP cache path, ensuring the data directory exists."""

    return ensure_dir(get_data_dir()) / HTTP_CACHE_FILENAME
