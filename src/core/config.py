"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StreamConfig:
    """Log acquisition settings consumed by the line source adapter."""

    prefix: str = "AppsFlyer_"
    device_id: Optional[str] = None
    logcat_format: str = "threadtime"
    adb_path: str = "adb"


@dataclass(frozen=True)
class AssistantConfig:
    """Settings for record filtering and verification windows."""

    product_marker: str = "AppsFlyer"
    record_window: int = 700
    recent_window_ms: int = 5 * 60 * 1000
    poll_timeout: float = 2.0
    error_keywords: tuple[str, ...] = ("ERROR", "Exception", "FAILURE")
    app_id: Optional[str] = None
