"""SDK install attribution check (core domain)."""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Iterable, Optional

from core.acquire import acquire
from core.config import AssistantConfig
from core.errors import Failure, InstallDataError, StreamUnavailable
from core.log_buffer import LogBuffer
from core.models import InstallReport, ParsedRecord
from core.ports import InstallDataPort, LineSourcePort
from core.records import extract_json, filter_records, recent

LOGGER = logging.getLogger(__name__)

CONVERSION_KEYWORD = "CONVERSION-"
LAUNCH_KEYWORD = "LAUNCH-"

_APP_ID_PATTERN = re.compile(r"app_id=([a-zA-Z0-9._]+)")


def find_app_id(lines: Iterable[str]) -> Optional[str]:
    """Return the newest app id mentioned in the buffer, if any."""

    for line in reversed(list(lines)):
        payload = extract_json(line)
        if payload:
            value = payload.get("app_id") or payload.get("appId")
            if isinstance(value, str) and value:
                return value
        match = _APP_ID_PATTERN.search(line)
        if match:
            return match.group(1)
    return None


def device_id_of(record: ParsedRecord) -> Optional[str]:
    value = record.json.get("uid") or record.json.get("device_id")
    return str(value) if value else None


class InstallChecker:
    """Confirms the SDK reported an install and the backend attributed it."""

    def __init__(
        self,
        buffer: LogBuffer,
        line_source: LineSourcePort,
        install_data: InstallDataPort,
        config: AssistantConfig,
        stream_prefix: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._buffer = buffer
        self._line_source = line_source
        self._install_data = install_data
        self._config = config
        self._stream_prefix = stream_prefix
        self._clock = clock

    def _recent(self, lines, keyword: str) -> list[ParsedRecord]:
        records = filter_records(
            lines,
            keyword,
            marker=self._config.product_marker,
            window=self._config.record_window,
        )
        return recent(records, int(self._clock() * 1000), self._config.recent_window_ms)

    async def verify(
        self,
        dev_key: Optional[str],
        app_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> InstallReport:
        if not dev_key:
            return InstallReport(
                passed=False,
                failure=Failure.MISSING_CREDENTIALS,
                message="Missing DEV_KEY. Set it in the environment or pass it explicitly.",
            )

        try:
            lines = await acquire(
                self._buffer,
                self._line_source,
                self._stream_prefix,
                device_id,
                lambda snapshot: bool(snapshot),
                self._config.poll_timeout,
            )
        except StreamUnavailable as exc:
            LOGGER.warning("Install check aborted: %s", exc)
            return InstallReport(
                passed=False,
                failure=Failure.STREAM_UNAVAILABLE,
                message=f"Could not read device logs: {exc}",
            )

        conversions = self._recent(lines, CONVERSION_KEYWORD)
        launches = self._recent(lines, LAUNCH_KEYWORD)
        record = conversions[-1] if conversions else (launches[-1] if launches else None)
        if record is None:
            return InstallReport(
                passed=False,
                failure=Failure.STALE_OR_MISSING_EVIDENCE,
                message="No CONVERSION- or LAUNCH- logs from the last 5 minutes were found.",
            )

        uid = device_id_of(record)
        if not uid:
            return InstallReport(
                passed=False,
                failure=Failure.MISSING_DEVICE_ID,
                message="Log found but missing uid or device_id.",
                timestamp=record.timestamp,
                record=record,
            )

        resolved_app_id = app_id or self._config.app_id or find_app_id(lines)
        if not resolved_app_id:
            return InstallReport(
                passed=False,
                failure=Failure.MISSING_APP_ID,
                message="Could not find app_id in logs. Set APP_ID or pass it explicitly.",
                device_id=uid,
                timestamp=record.timestamp,
                record=record,
            )

        try:
            data = await self._install_data.fetch_install_data(resolved_app_id, dev_key, uid)
        except InstallDataError as exc:
            LOGGER.warning("Install data lookup failed for %s: %s", resolved_app_id, exc)
            return InstallReport(
                passed=False,
                failure=Failure.INSTALL_LOOKUP_FAILED,
                message=f"Error fetching SDK data: {exc}",
                app_id=resolved_app_id,
                device_id=uid,
                timestamp=record.timestamp,
                record=record,
            )

        LOGGER.info("Install data received for %s (%s)", resolved_app_id, uid)
        return InstallReport(
            passed=True,
            message="The AppsFlyer SDK verification succeeded. SDK is active and responding.",
            app_id=resolved_app_id,
            device_id=uid,
            timestamp=record.timestamp,
            af_status=str(data.get("af_status") or "Unknown"),
            install_time=str(data.get("install_time") or "N/A"),
            record=record,
        )
