"""Install-data lookup adapter.

Uses the attribution backend's install_data endpoint so the CLI can confirm
that a device uid seen in the logs was attributed server-side.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from core.errors import InstallDataError

DEFAULT_BASE_URL = "https://gcdsdk.appsflyer.com/install_data/v4.0"


class InstallDataClient:
    """Adapter that satisfies the core InstallDataPort over HTTPS."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _endpoint(self, app_id: str, dev_key: str, device_id: str) -> str:
        query = urllib.parse.urlencode({"devkey": dev_key, "device_id": device_id})
        return f"{self._base_url}/{urllib.parse.quote(app_id)}?{query}"

    def _fetch(self, url: str) -> dict[str, Any]:
        request = urllib.request.Request(url, method="GET")
        request.add_header("accept", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                body = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace")
            raise InstallDataError(f"install_data error {e.code}: {detail}") from e
        except urllib.error.URLError as e:
            raise InstallDataError(f"install_data unreachable: {e.reason}") from e

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise InstallDataError("install_data returned a non-JSON body") from e
        if not isinstance(payload, dict):
            raise InstallDataError("install_data returned an unexpected payload")
        return payload

    async def fetch_install_data(self, app_id: str, dev_key: str, device_id: str) -> dict[str, Any]:
        """Fetch the install attribution record for one device."""

        # urllib is blocking; run it off the event loop so logcat keeps flowing.
        return await asyncio.to_thread(self._fetch, self._endpoint(app_id, dev_key, device_id))
