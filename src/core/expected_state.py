"""Expected deep-link state shared between OneLink creation and verification."""

from __future__ import annotations

import time
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlsplit

from core.models import ExpectedDeepLinkData


class ExpectedStateStore:
    """Holds the latest expected deep-link payload (last write wins)."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._latest: Optional[ExpectedDeepLinkData] = None

    def set(self, source_url: str, payload: dict[str, Any]) -> ExpectedDeepLinkData:
        captured_at_ms = int(self._clock() * 1000)
        # Update stamps never go backwards, even if the wall clock does.
        if self._latest and captured_at_ms < self._latest.captured_at_ms:
            captured_at_ms = self._latest.captured_at_ms
        self._latest = ExpectedDeepLinkData(
            source_url=source_url,
            payload=dict(payload),
            captured_at_ms=captured_at_ms,
        )
        return self._latest

    def get(self) -> Optional[ExpectedDeepLinkData]:
        return self._latest

    def clear(self) -> None:
        self._latest = None


def payload_from_onelink_url(url: str) -> dict[str, Any]:
    """Build an expected payload from a long-form OneLink query string.

    Repeated parameters keep every value as a list; single ones are flattened.
    """

    query = parse_qs(urlsplit(url).query, keep_blank_values=True)
    return {key: values[0] if len(values) == 1 else values for key, values in query.items()}
