"""Platform-aware configuration: data directory, store URL and gateway endpoints."""

import os
import sys
from pathlib import Path

DEFAULT_HISTORY_WINDOW = 20
DEFAULT_API_URL = "http://127.0.0.1:8080"
REQUEST_TIMEOUT = 60.0  # seconds

DEFAULT_VOICE = "alloy"
TTS_MODEL = "tts-1"


def get_data_path() -> Path:
    """Return the directory where conversations and settings are stored."""
    env = os.environ.get("CHATRELAY_DATA_PATH")
    if env:
        return Path(env)

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "chatrelay"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "chatrelay"
    else:  # Linux
        return Path.home() / ".local" / "share" / "chatrelay"


def get_store_url() -> str:
    """Return the store URL, e.g. ``file:/path``, ``sqlite:/path/db`` or ``memory:``."""
    env = os.environ.get("CHATRELAY_STORE")
    if env:
        return env
    return f"file:{get_data_path()}"


def get_api_url() -> str:
    """Return the base URL of the proxy handlers."""
    return os.environ.get("CHATRELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def get_openai_api_key() -> str | None:
    """Return the upstream API key used by the proxy server."""
    return os.environ.get("OPENAI_API_KEY")
