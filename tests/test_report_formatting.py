from __future__ import annotations

import json

import pytest

from adapters.report_formatting import format_handled, format_records, format_report, format_signals
from core.errors import Failure
from core.insights import DeepLinkHandledSignals, DeepLinkSignals
from core.models import (
    DIRECT,
    CorrelatedEvent,
    DeepLinkReport,
    ExpectedDeepLinkData,
    FieldCheck,
    InAppEventReport,
    InstallReport,
    ParsedRecord,
)

RECORD = ParsedRecord("2025-06-01 10:00:00.000", 1748772000000, "deepLink", {"status": "FOUND"})


def _mismatch_report() -> DeepLinkReport:
    check = FieldCheck("deep_link_value", "y", "x", True, True, False, False)
    return DeepLinkReport(
        passed=False,
        message="Deep link verification failed.",
        failure=Failure.FIELD_MISMATCH,
        evaluation_type=DIRECT,
        deferred_label=DIRECT,
        summary={"status": "FOUND", "deep_link_value": "x"},
        fields=[check],
        mismatches=[check],
        expected=ExpectedDeepLinkData("https://a.onelink.me/1", {"deep_link_value": "y"}, 1),
        record=RECORD,
    )


def test_deep_link_text_lists_mismatches() -> None:
    text = format_report(_mismatch_report())

    assert text.startswith("[FAIL] Deep link verification failed.")
    assert "Reason: FIELD_MISMATCH" in text
    assert "deep_link_value: expected 'y', received 'x'" in text
    assert "Expected values source: https://a.onelink.me/1" in text


def test_deep_link_json_serializes_enums() -> None:
    payload = json.loads(format_report(_mismatch_report(), mode="json"))

    assert payload["failure"] == "FIELD_MISMATCH"
    assert payload["mismatches"][0]["key"] == "deep_link_value"
    assert payload["record"]["json"] == {"status": "FOUND"}


def test_terminal_deep_link_report_shows_latest_log() -> None:
    report = DeepLinkReport(
        passed=False,
        message="Deep link status is not FOUND.",
        failure=Failure.STATUS_NOT_FOUND,
        record=RECORD,
    )

    text = format_report(report)

    assert "Latest log:" in text
    assert "Deep link type" not in text


def test_event_report_shows_evidence() -> None:
    event = CorrelatedEvent(
        task_id="INAPP-7",
        payload={"eventName": "purchase"},
        event_name="purchase",
        sent=True,
        status="sent",
        evidence=["preparing data logged for INAPP-7"],
    )
    report = InAppEventReport("purchase", True, 'Event "purchase" was successfully sent.', event=event)

    text = format_report(report)

    assert text.startswith("[PASS]")
    assert '"task_id": "INAPP-7"' in text
    assert "preparing data logged for INAPP-7" in text


def test_install_report_skips_empty_details() -> None:
    report = InstallReport(
        passed=True,
        message="Install data found.",
        app_id="com.example.app",
        device_id="1700000000000-123",
        af_status="Organic",
    )

    text = format_report(report)

    assert "App ID: com.example.app" in text
    assert 'Status: Organic install (af_status: "Organic")' in text
    assert "Install time" not in text


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        format_report(_mismatch_report(), mode="xml")


def test_format_signals() -> None:
    assert "not detected" in format_signals(DeepLinkSignals(sdk_detected=False))

    text = format_signals(DeepLinkSignals(sdk_detected=True, direct=True, entries=["af_dp=x"]))

    assert "Direct deep link detected." in text
    assert "Found 1 deep link entries:\naf_dp=x" in text
    assert "No deep link errors detected." in text


def test_format_records() -> None:
    assert format_records([], "Nothing yet.") == "Nothing yet."
    assert json.loads(format_records([RECORD], "Nothing yet."))[0]["type"] == "deepLink"


def test_format_handled() -> None:
    assert format_handled(DeepLinkHandledSignals(has_logs=False)) == "No logs available for analysis."
    assert "triggered the in-app flow" in format_handled(
        DeepLinkHandledSignals(has_logs=True, activity_started=True, routed=True, value_found=True)
    )

    text = format_handled(DeepLinkHandledSignals(has_logs=True, activity_started=True))

    assert "- Found routing: False" in text
