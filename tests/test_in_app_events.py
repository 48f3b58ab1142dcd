from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta
from typing import Optional

from core.config import AssistantConfig
from core.errors import Failure
from core.in_app_events import EventCorrelator, correlate_events, extract_task_id
from core.log_buffer import LogBuffer
from core.models import InAppEventReport


class FakeLineSource:
    async def ensure_streaming(self, prefix: str, device_id: Optional[str] = None) -> None:
        return None


def _stamp(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now()
    return moment.strftime("%Y-%m-%d %H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def _prepared(task: str, payload: dict, moment: Optional[datetime] = None) -> str:
    return f"{_stamp(moment)} D AppsFlyer_6.12: [{task}] preparing data: {json.dumps(payload)}"


def _success(task: str, moment: Optional[datetime] = None) -> str:
    return f"{_stamp(moment)} D AppsFlyer_6.12: [{task}] execution finished, result: SUCCESS"


def _verify(lines: list[str], event_name: str) -> InAppEventReport:
    buffer = LogBuffer()
    buffer.extend(lines)
    correlator = EventCorrelator(buffer, FakeLineSource(), AssistantConfig(poll_timeout=0.05), "AppsFlyer_")
    return asyncio.run(correlator.verify(event_name))


def test_prepared_then_success_is_sent() -> None:
    lines = [_prepared("INAPP-7", {"eventName": "purchase"}), _success("INAPP-7")]

    events = correlate_events(lines)

    assert len(events) == 1
    event = events[0]
    assert (event.task_id, event.event_name, event.status, event.sent) == ("INAPP-7", "purchase", "sent", True)
    assert "execution finished with result: SUCCESS" in event.evidence


def test_prepared_without_success_stays_prepared() -> None:
    events = correlate_events([_prepared("INAPP-8", {"eventName": "purchase"})])

    assert len(events) == 1
    assert events[0].status == "prepared"
    assert events[0].sent is False


def test_lines_without_task_id_use_last_seen_one() -> None:
    lines = [
        _prepared("INAPP-9", {"event_name": "login"}),
        f"{_stamp()} D AppsFlyer_6.12: [INAPP-] execution finished, result: success",
    ]

    events = correlate_events(lines)

    assert events[0].task_id == "INAPP-9"
    assert events[0].event_name == "login"
    assert events[0].sent


def test_json_task_id_takes_precedence() -> None:
    assert extract_task_id("INAPP-3 something", {"task_id": " custom-1 "}) == "custom-1"
    assert extract_task_id("INAPP-3 something", {"taskId": ""}) == "INAPP-3"
    assert extract_task_id("inapp-12 lower", None) == "inapp-12"
    assert extract_task_id("nothing here", None) is None


def test_failed_execution_is_not_sent() -> None:
    lines = [
        _prepared("INAPP-4", {"eventName": "purchase"}),
        f"{_stamp()} D AppsFlyer_6.12: [INAPP-4] execution finished, result: FAILURE",
    ]

    assert correlate_events(lines)[0].status == "prepared"


def test_later_prepare_overwrites_same_task() -> None:
    lines = [
        _prepared("INAPP-5", {"eventName": "first"}),
        _prepared("INAPP-5", {"eventName": "second"}),
    ]

    events = correlate_events(lines)

    assert [event.event_name for event in events] == ["second"]


def test_verify_reports_sent_event() -> None:
    report = _verify([_prepared("INAPP-7", {"eventName": "purchase"}), _success("INAPP-7")], "purchase")

    assert report.passed
    assert report.event is not None and report.event.task_id == "INAPP-7"


def test_verify_prefers_sent_over_newer_prepared() -> None:
    lines = [
        _prepared("INAPP-1", {"eventName": "purchase"}),
        _success("INAPP-1"),
        _prepared("INAPP-2", {"eventName": "purchase"}),
    ]

    report = _verify(lines, "purchase")

    assert report.passed
    assert report.event is not None and report.event.task_id == "INAPP-1"


def test_verify_reports_prepared_only_event() -> None:
    report = _verify([_prepared("INAPP-8", {"eventName": "purchase"})], "purchase")

    assert not report.passed
    assert report.failure == Failure.EVENT_NOT_SENT
    assert report.event is not None and report.event.status == "prepared"


def test_verify_unknown_event_reports_latest_record() -> None:
    report = _verify([_prepared("INAPP-8", {"eventName": "purchase"})], "signup")

    assert report.failure == Failure.EVENT_NOT_FOUND
    assert report.record is not None
    assert report.record.json == {"eventName": "purchase"}


def test_verify_without_inapp_logs() -> None:
    report = _verify([], "purchase")

    assert report.failure == Failure.STALE_OR_MISSING_EVIDENCE
    assert report.message == "No in-app event logs found."


def test_verify_with_only_old_inapp_logs() -> None:
    old = datetime.now() - timedelta(minutes=10)
    report = _verify([_prepared("INAPP-1", {"eventName": "purchase"}, old), _success("INAPP-1", old)], "purchase")

    assert report.failure == Failure.STALE_OR_MISSING_EVIDENCE


def test_verify_scopes_to_recent_task_ids() -> None:
    old = datetime.now() - timedelta(minutes=10)
    lines = [
        _prepared("INAPP-1", {"task_id": "INAPP-1", "eventName": "purchase"}, old),
        _success("INAPP-1", old),
        _prepared("INAPP-2", {"task_id": "INAPP-2", "eventName": "other"}),
    ]

    report = _verify(lines, "purchase")

    assert report.failure == Failure.EVENT_NOT_FOUND
