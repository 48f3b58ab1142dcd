"""Ports (interfaces) used by the core verification flows.

Ports define the minimal contracts for log acquisition and the install-data
lookup so that the core can be exercised with fakes in tests.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol


class LineSourcePort(Protocol):
    """Live device log acquisition feeding the shared LogBuffer."""

    async def ensure_streaming(self, prefix: str, device_id: Optional[str] = None) -> None:
        ...


class InstallDataPort(Protocol):
    """Install attribution lookup against the attribution backend."""

    async def fetch_install_data(self, app_id: str, dev_key: str, device_id: str) -> dict[str, Any]:
        ...
