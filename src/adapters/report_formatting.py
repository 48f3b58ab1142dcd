"""Shared report formatting helpers.

Keeping formatting here prevents drift between the CLI and the TUI and keeps
verification output consistent regardless of where it is shown.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Sequence, Union

from core.insights import DeepLinkHandledSignals, DeepLinkSignals
from core.models import DeepLinkReport, InAppEventReport, InstallReport, ParsedRecord

Report = Union[DeepLinkReport, InAppEventReport, InstallReport]

DIVIDER = "──────────────"


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Unserializable value: {value!r}")


def to_json(value: Any) -> str:
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    elif isinstance(value, (list, tuple)):
        value = [asdict(item) if is_dataclass(item) else item for item in value]
    return json.dumps(value, indent=2, ensure_ascii=False, default=_json_default)


def _verdict(passed: bool) -> str:
    return "[PASS]" if passed else "[FAIL]"


def _format_deep_link(report: DeepLinkReport) -> str:
    lines = [f"{_verdict(report.passed)} {report.message}"]
    if report.failure:
        lines.append(f"Reason: {report.failure.value}")

    if report.evaluation_type is None:
        if report.record:
            lines.extend(["", "Latest log:", to_json(report.record)])
        return "\n".join(lines)

    status = report.summary.get("status", "UNKNOWN")
    lines.append(f"Status check: {'ok' if status == 'FOUND' else 'failed'} (status={status})")
    lines.append(f"Deep link type: {report.deferred_label}")

    if report.expected:
        lines.append(f"Expected values source: {report.expected.source_url}")
        compared = [check.key for check in report.fields if check.compared]
        if not compared:
            lines.append("No comparable expected keys were found in the stored OneLink data.")
        elif report.mismatches:
            lines.append("Mismatches:")
            for check in report.mismatches:
                lines.append(f"  {check.key}: expected {check.expected!r}, received {check.received!r}")
        else:
            lines.append(f"Expected/received comparison passed for: {', '.join(compared)}")
    else:
        lines.append("Expected values source: not available, comparison skipped.")

    if report.missing:
        lines.append(f"Missing required fields: {', '.join(report.missing)}")

    lines.extend([DIVIDER, "Summary:", to_json(report.summary)])
    if report.record:
        lines.extend(["", "Full log:", to_json(report.record)])
    return "\n".join(lines)


def _format_event(report: InAppEventReport) -> str:
    lines = [f"{_verdict(report.passed)} {report.message}"]
    if report.failure:
        lines.append(f"Reason: {report.failure.value}")
    if report.event:
        snapshot = {
            "task_id": report.event.task_id,
            "status": report.event.status,
            "evidence": report.event.evidence,
            "payload_snapshot": report.event.payload,
        }
        lines.extend(["", to_json(snapshot)])
    elif report.record:
        lines.extend(["", "Latest INAPP log:", to_json(report.record)])
    return "\n".join(lines)


def _format_install(report: InstallReport) -> str:
    lines = [f"{_verdict(report.passed)} {report.message}"]
    if report.failure:
        lines.append(f"Reason: {report.failure.value}")
    details = [
        ("App ID", report.app_id),
        ("UID", report.device_id),
        ("Timestamp", report.timestamp),
        ("Status", f'{report.af_status} install (af_status: "{report.af_status}")' if report.af_status else None),
        ("Install time", report.install_time),
    ]
    rendered = [f"  {label}: {value}" for label, value in details if value]
    if rendered:
        lines.extend(["", *rendered])
    return "\n".join(lines)


def format_report(report: Report, mode: str = "text") -> str:
    """Return the report formatted for the requested mode."""

    if mode == "json":
        return to_json(report)
    if mode != "text":
        raise ValueError(f"Unsupported report format: {mode}")
    if isinstance(report, DeepLinkReport):
        return _format_deep_link(report)
    if isinstance(report, InAppEventReport):
        return _format_event(report)
    if isinstance(report, InstallReport):
        return _format_install(report)
    raise TypeError(f"Unsupported report type: {type(report).__name__}")


def format_signals(signals: DeepLinkSignals) -> str:
    if not signals.sdk_detected:
        return "AppsFlyer SDK not detected in logs. Integrate the SDK and launch the app first."

    parts = []
    if signals.deferred:
        parts.append("Deferred deep link detected.")
    if signals.direct:
        parts.append("Direct deep link detected.")
    if signals.entries:
        parts.append(f"Found {len(signals.entries)} deep link entries:\n" + "\n".join(signals.entries))
    else:
        parts.append("No deep links found in logs.")
    if signals.errors:
        parts.append(f"Found {len(signals.errors)} possible error(s):\n" + "\n".join(signals.errors))
    else:
        parts.append("No deep link errors detected.")
    return "\n\n".join(parts)


def format_handled(signals: DeepLinkHandledSignals) -> str:
    if not signals.has_logs:
        return "No logs available for analysis."
    if signals.handled:
        return "Deep link seems to have triggered the in-app flow (activity start + routing + value found)."
    return "\n".join(
        [
            "Deep link may not have triggered the app flow.",
            f"- Found activity: {signals.activity_started}",
            f"- Found routing: {signals.routed}",
            f"- Found value: {signals.value_found}",
        ]
    )


def format_records(records: Sequence[ParsedRecord], empty_message: str) -> str:
    if not records:
        return empty_message
    return to_json(list(records))
