"""Verification assistant facade.

This module is integration-agnostic. It owns the shared buffer and expected
state for the lifetime of the process and relies on ports for log acquisition
and install-data lookups, so the CLI and the TUI drive the same operations.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional

from core.config import AssistantConfig
from core.deep_link import DEEP_LINK_KEYWORD, DeepLinkVerifier
from core.expected_state import ExpectedStateStore, payload_from_onelink_url
from core.in_app_events import EventCorrelator
from core.insights import (
    DeepLinkHandledSignals,
    DeepLinkSignals,
    deep_link_handled_signals,
    detect_deep_link_signals,
    error_records,
    summarize_latest,
)
from core.install_check import CONVERSION_KEYWORD, LAUNCH_KEYWORD, InstallChecker
from core.log_buffer import LogBuffer
from core.models import (
    DeepLinkReport,
    ExpectedDeepLinkData,
    InAppEventReport,
    InstallReport,
    ParsedRecord,
)
from core.ports import InstallDataPort, LineSourcePort
from core.records import filter_records

LOGGER = logging.getLogger(__name__)

SUMMARY_KEYWORDS = {CONVERSION_KEYWORD, LAUNCH_KEYWORD, DEEP_LINK_KEYWORD}


class VerificationAssistant:
    """Entry point for every log and verification operation."""

    def __init__(
        self,
        buffer: LogBuffer,
        line_source: LineSourcePort,
        install_data: InstallDataPort,
        config: AssistantConfig,
        stream_prefix: str,
        default_device_id: Optional[str] = None,
        expected_state: Optional[ExpectedStateStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.buffer = buffer
        self.expected_state = expected_state or ExpectedStateStore(clock)
        self._line_source = line_source
        self._config = config
        self._stream_prefix = stream_prefix
        self._default_device_id = default_device_id
        self._deep_links = DeepLinkVerifier(
            buffer, line_source, self.expected_state, config, stream_prefix, clock
        )
        self._events = EventCorrelator(buffer, line_source, config, stream_prefix, clock)
        self._installs = InstallChecker(
            buffer, line_source, install_data, config, stream_prefix, clock
        )

    def _device(self, device_id: Optional[str]) -> Optional[str]:
        return device_id or self._default_device_id

    async def fetch_logs(self, device_id: Optional[str] = None) -> tuple[str, ...]:
        """Start streaming and return whatever arrives within the poll window."""

        await self._line_source.ensure_streaming(self._stream_prefix, self._device(device_id))
        await self.buffer.wait_for(bool, self._config.poll_timeout)
        return self.buffer.snapshot()

    def records(self, keyword: Optional[str] = None) -> List[ParsedRecord]:
        return filter_records(
            self.buffer.snapshot(),
            keyword,
            marker=self._config.product_marker,
            window=self._config.record_window,
        )

    async def records_for(
        self, keyword: Optional[str] = None, device_id: Optional[str] = None
    ) -> List[ParsedRecord]:
        await self._line_source.ensure_streaming(self._stream_prefix, self._device(device_id))
        await self.buffer.wait_for(
            lambda lines: bool(
                filter_records(lines, keyword, marker=self._config.product_marker)
            ),
            self._config.poll_timeout,
        )
        return self.records(keyword)

    async def latest_summary(
        self, keyword: str, device_id: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        """Identifying keys of the newest record for a log family."""

        if keyword not in SUMMARY_KEYWORDS:
            raise ValueError(f"Unsupported summary keyword: {keyword}")
        return summarize_latest(await self.records_for(keyword, device_id))

    def errors(self) -> List[ParsedRecord]:
        return error_records(
            self.buffer.snapshot(),
            self._config.error_keywords,
            marker=self._config.product_marker,
            window=self._config.record_window,
        )

    def detect_deep_link(self) -> DeepLinkSignals:
        return detect_deep_link_signals(self.buffer.snapshot())

    def deep_link_handled(self) -> DeepLinkHandledSignals:
        return deep_link_handled_signals(self.buffer.snapshot())

    def set_expected(
        self, one_link_url: str, payload: Optional[dict[str, Any]] = None
    ) -> ExpectedDeepLinkData:
        """Record what the next deep-link verification should observe."""

        if payload is None:
            payload = payload_from_onelink_url(one_link_url)
        LOGGER.info("Expected deep link data set from %s (%s keys)", one_link_url, len(payload))
        return self.expected_state.set(one_link_url, payload)

    async def verify_deep_link(self, device_id: Optional[str] = None) -> DeepLinkReport:
        return await self._deep_links.verify(self._device(device_id))

    async def verify_in_app_event(
        self, event_name: str, device_id: Optional[str] = None
    ) -> InAppEventReport:
        return await self._events.verify(event_name, self._device(device_id))

    async def verify_install(
        self,
        dev_key: Optional[str],
        app_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> InstallReport:
        return await self._installs.verify(dev_key, app_id, self._device(device_id))
