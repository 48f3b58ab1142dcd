"""Static configuration for afscope.

All user-editable settings (stream, buffer, verification windows, logging)
live in a single JSON file for quick edits without touching Python. Secrets
such as DEV_KEY and APP_ID come from the environment (.env supported).
"""

import json
import os

from dotenv import load_dotenv

from core.config import AssistantConfig, StreamConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits next to the project root unless AFSCOPE_CONFIG points elsewhere.
CONFIG_PATH = os.getenv("AFSCOPE_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


load_dotenv()

_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Log acquisition: the tag prefix to keep and an optional default device serial.
_stream = _CONFIG.get("stream", {})
STREAM_PREFIX = _stream.get("prefix", "AppsFlyer_")
DEVICE_ID = _stream.get("device_id") or None
LOGCAT_FORMAT = _stream.get("logcat_format", "threadtime")
ADB_PATH = _stream.get("adb_path", "adb")

# Buffer sizing. record_window caps how many matching lines a query parses.
_buffer = _CONFIG.get("buffer", {})
BUFFER_CAPACITY = int(_buffer.get("capacity", 5000))
RECORD_WINDOW = int(_buffer.get("record_window", 700))

# Verification timing and the marker every product log line carries.
_verification = _CONFIG.get("verification", {})
POLL_TIMEOUT_MS = int(_verification.get("poll_timeout_ms", 2000))
RECENT_WINDOW_MINUTES = int(_verification.get("recent_window_minutes", 5))
PRODUCT_MARKER = _verification.get("product_marker", "AppsFlyer")

_install_data = _CONFIG.get("install_data", {})
INSTALL_DATA_URL = _install_data.get("base_url", "https://gcdsdk.appsflyer.com/install_data/v4.0")
INSTALL_DATA_TIMEOUT = float(_install_data.get("timeout_seconds", 10))

ERROR_KEYWORDS = tuple(_CONFIG.get("error_keywords", ["ERROR", "Exception", "FAILURE"]))

# Credentials are environment-only to keep them out of config.json.
DEV_KEY = (os.getenv("DEV_KEY") or "").strip() or None
APP_ID = (os.getenv("APP_ID") or "").strip() or None

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})


def stream_config() -> StreamConfig:
    return StreamConfig(
        prefix=STREAM_PREFIX,
        device_id=DEVICE_ID,
        logcat_format=LOGCAT_FORMAT,
        adb_path=ADB_PATH,
    )


def assistant_config() -> AssistantConfig:
    return AssistantConfig(
        product_marker=PRODUCT_MARKER,
        record_window=RECORD_WINDOW,
        recent_window_ms=RECENT_WINDOW_MINUTES * 60 * 1000,
        poll_timeout=POLL_TIMEOUT_MS / 1000,
        error_keywords=ERROR_KEYWORDS,
        app_id=APP_ID,
    )
