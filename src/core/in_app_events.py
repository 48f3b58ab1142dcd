"""In-app event correlation (core domain).

The SDK logs an event twice under the same task id: once when the payload is
prepared, once when the send task finishes. Lines in between may omit the id,
so the scan carries the last seen task id forward.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable, Iterable, List, Mapping, Optional

from core.acquire import acquire
from core.config import AssistantConfig
from core.errors import Failure, StreamUnavailable
from core.log_buffer import LogBuffer
from core.models import CorrelatedEvent, InAppEventReport, PreparedEvent
from core.ports import LineSourcePort
from core.records import DEFAULT_MARKER, extract_json, filter_records, recent

LOGGER = logging.getLogger(__name__)

INAPP_KEYWORD = "INAPP-"
PREPARED = "prepared"
SENT = "sent"
SEND_SUCCESS_EVIDENCE = "execution finished with result: SUCCESS"

_TASK_PATTERN = re.compile(r"(INAPP-\d+)", re.IGNORECASE)


def extract_task_id(line: str, payload: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Return the task id from the JSON payload, else from an INAPP-<n> token."""

    if payload:
        for key in ("task_id", "taskId"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    match = _TASK_PATTERN.search(line)
    return match.group(1) if match else None


def event_name_of(payload: Mapping[str, Any]) -> Optional[str]:
    for key in ("eventName", "event_name"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def correlate_events(
    lines: Iterable[str],
    marker: str = DEFAULT_MARKER,
    keyword: str = INAPP_KEYWORD,
) -> List[CorrelatedEvent]:
    """Pair "preparing data" payloads with "execution finished" successes."""

    prepared: dict[str, PreparedEvent] = {}
    succeeded: set[str] = set()
    last_seen_task_id: Optional[str] = None

    for line in lines:
        if marker not in line or keyword not in line:
            continue

        lowered = line.lower()
        payload = extract_json(line)
        task_id = extract_task_id(line, payload)
        if task_id:
            last_seen_task_id = task_id
        effective_task_id = task_id or last_seen_task_id
        if not effective_task_id:
            continue

        if "preparing data" in lowered:
            if payload is None:
                continue
            prepared[effective_task_id] = PreparedEvent(
                task_id=effective_task_id,
                payload=payload,
                event_name=event_name_of(payload),
            )
            continue

        if "execution finished" in lowered and "result: success" in lowered:
            succeeded.add(effective_task_id)

    correlated: List[CorrelatedEvent] = []
    for event in prepared.values():
        sent = event.task_id in succeeded
        evidence = [f"preparing data logged for {event.task_id}"]
        if sent:
            evidence.append(SEND_SUCCESS_EVIDENCE)
        correlated.append(
            CorrelatedEvent(
                task_id=event.task_id,
                payload=event.payload,
                event_name=event.event_name,
                sent=sent,
                status=SENT if sent else PREPARED,
                evidence=evidence,
            )
        )
    return correlated


class EventCorrelator:
    """Verifies that a named in-app event was prepared and sent."""

    def __init__(
        self,
        buffer: LogBuffer,
        line_source: LineSourcePort,
        config: AssistantConfig,
        stream_prefix: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._buffer = buffer
        self._line_source = line_source
        self._config = config
        self._stream_prefix = stream_prefix
        self._clock = clock

    def _records(self, lines):
        return filter_records(
            lines,
            INAPP_KEYWORD,
            marker=self._config.product_marker,
            window=self._config.record_window,
        )

    async def verify(self, event_name: str, device_id: Optional[str] = None) -> InAppEventReport:
        """Run one verification attempt for ``event_name``."""

        try:
            lines = await acquire(
                self._buffer,
                self._line_source,
                self._stream_prefix,
                device_id,
                lambda snapshot: bool(self._records(snapshot)),
                self._config.poll_timeout,
            )
        except StreamUnavailable as exc:
            LOGGER.warning("In-app event verification aborted: %s", exc)
            return InAppEventReport(
                event_name=event_name,
                passed=False,
                failure=Failure.STREAM_UNAVAILABLE,
                message=f"Could not read device logs: {exc}",
            )

        logs = self._records(lines)
        if not logs:
            return InAppEventReport(
                event_name=event_name,
                passed=False,
                failure=Failure.STALE_OR_MISSING_EVIDENCE,
                message="No in-app event logs found.",
            )

        now_ms = int(self._clock() * 1000)
        recent_logs = recent(logs, now_ms, self._config.recent_window_ms)
        if not recent_logs:
            return InAppEventReport(
                event_name=event_name,
                passed=False,
                failure=Failure.STALE_OR_MISSING_EVIDENCE,
                message="No in-app event logs from the last 5 minutes were found.",
            )

        recent_task_ids = {
            task_id
            for task_id in (extract_task_id("", log.json) for log in recent_logs)
            if task_id
        }
        events = correlate_events(lines, marker=self._config.product_marker)
        if recent_task_ids:
            events = [event for event in events if event.task_id in recent_task_ids]

        matching = [event for event in events if event.event_name == event_name]
        latest_sent = next((event for event in reversed(matching) if event.sent), None)
        if latest_sent:
            LOGGER.info("Event %s sent (task %s)", event_name, latest_sent.task_id)
            return InAppEventReport(
                event_name=event_name,
                passed=True,
                message=f'Event "{event_name}" was successfully sent.',
                event=latest_sent,
            )

        if matching:
            return InAppEventReport(
                event_name=event_name,
                passed=False,
                failure=Failure.EVENT_NOT_SENT,
                message=(
                    f'Event "{event_name}" was prepared but no send success marker '
                    "was found for the same task."
                ),
                event=matching[-1],
            )

        return InAppEventReport(
            event_name=event_name,
            passed=False,
            failure=Failure.EVENT_NOT_FOUND,
            message=f'Event "{event_name}" was not found in recent INAPP preparing-data payloads.',
            record=recent_logs[-1],
        )
