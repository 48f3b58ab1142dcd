"""Deep-link verification (core domain).

Verification walks a fixed set of stages: acquire, scope to the recent
window, locate the newest FOUND record, classify deferred vs direct, then
evaluate every field in ``DEEP_LINK_FIELDS`` against the expected payload.
Each stage failure produces a terminal report rather than an exception.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Tuple

from core.acquire import acquire
from core.config import AssistantConfig
from core.errors import Failure, StreamUnavailable
from core.expected_state import ExpectedStateStore
from core.log_buffer import LogBuffer
from core.models import DEFERRED, DIRECT, DeepLinkReport, FieldCheck, ParsedRecord
from core.ports import LineSourcePort
from core.records import filter_records, recent

LOGGER = logging.getLogger(__name__)

DEEP_LINK_KEYWORD = "deepLink"
STATUS_KEY = "status"
IS_DEFERRED_KEY = "is_deferred"
FOUND = "FOUND"
ALWAYS_REQUIRED = frozenset({STATUS_KEY, IS_DEFERRED_KEY})

_BOTH = frozenset({DEFERRED, DIRECT})
_NONE: frozenset[str] = frozenset()


@dataclass(frozen=True)
class DeepLinkFieldSpec:
    """How one deep-link field is checked for each evaluation type."""

    key: str
    aliases: frozenset[str] = _NONE
    required_for: frozenset[str] = _NONE
    compare_for: frozenset[str] = _NONE


DEEP_LINK_FIELDS: Tuple[DeepLinkFieldSpec, ...] = (
    DeepLinkFieldSpec(STATUS_KEY, required_for=_BOTH),
    DeepLinkFieldSpec(IS_DEFERRED_KEY, required_for=_BOTH, compare_for=_BOTH),
    DeepLinkFieldSpec("deep_link_value", required_for=_BOTH, compare_for=_BOTH),
    DeepLinkFieldSpec("deep_link_sub1", compare_for=_BOTH),
    DeepLinkFieldSpec("af_sub1", compare_for=_BOTH),
    DeepLinkFieldSpec("af_sub2", compare_for=_BOTH),
    DeepLinkFieldSpec("af_sub3", compare_for=_BOTH),
    DeepLinkFieldSpec("af_sub4", compare_for=_BOTH),
    DeepLinkFieldSpec("af_sub5", compare_for=_BOTH),
    DeepLinkFieldSpec("media_source", aliases=frozenset({"pid"}), required_for=frozenset({DEFERRED}), compare_for=_BOTH),
    DeepLinkFieldSpec("campaign", aliases=frozenset({"c"}), required_for=frozenset({DEFERRED}), compare_for=_BOTH),
)


def normalize_value(value: Any) -> str:
    """Canonical string form used for presence checks and comparisons."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def resolve_field(spec: DeepLinkFieldSpec, payload: Optional[Mapping[str, Any]]) -> Any:
    """Look a field up by its key, falling back to its aliases."""

    if not payload:
        return None
    if spec.key in payload:
        return payload[spec.key]
    for alias in sorted(spec.aliases):
        if alias in payload:
            return payload[alias]
    return None


def _nested_payload(record_json: Mapping[str, Any]) -> dict[str, Any]:
    for key in ("deepLink", "deeplink"):
        value = record_json.get(key)
        if isinstance(value, dict):
            return value
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except ValueError:
                continue
            if isinstance(parsed, dict):
                return parsed
    return {}


def classify(record_json: Mapping[str, Any]) -> Tuple[str, str, dict[str, Any]]:
    """Return (evaluation type, display label, merged payload) for a record.

    Only an explicit ``is_deferred: false`` makes a link direct; an unknown
    flag is evaluated as deferred but labelled "unknown".
    """

    nested = _nested_payload(record_json)
    is_deferred = record_json.get(IS_DEFERRED_KEY)
    if not isinstance(is_deferred, bool):
        is_deferred = nested.get(IS_DEFERRED_KEY)
    if not isinstance(is_deferred, bool):
        is_deferred = None

    merged = {**nested, **record_json}
    if is_deferred is False:
        return DIRECT, DIRECT, merged
    if is_deferred is None:
        return DEFERRED, "unknown", merged
    return DEFERRED, DEFERRED, merged


def evaluate_fields(
    received: Mapping[str, Any],
    expected: Optional[Mapping[str, Any]],
    evaluation_type: str,
    fields: Tuple[DeepLinkFieldSpec, ...] = DEEP_LINK_FIELDS,
) -> List[FieldCheck]:
    """Evaluate presence and equality for every field in the table."""

    has_expected = expected is not None
    checks: List[FieldCheck] = []
    for spec in fields:
        expected_value = normalize_value(resolve_field(spec, expected))
        received_value = normalize_value(resolve_field(spec, received))
        expected_present = expected_value != ""
        comparable = evaluation_type in spec.compare_for

        if spec.key in ALWAYS_REQUIRED:
            required = True
        elif has_expected:
            required = comparable and expected_present
        else:
            required = evaluation_type in spec.required_for

        compared = has_expected and comparable and expected_present
        missing = required and not received_value.strip()
        matches = expected_value == received_value if compared else True
        checks.append(
            FieldCheck(
                key=spec.key,
                expected=expected_value,
                received=received_value,
                required=required,
                compared=compared,
                missing=missing,
                matches=matches,
            )
        )
    return checks


class DeepLinkVerifier:
    """Reconciles observed deep-link records with the expected payload."""

    def __init__(
        self,
        buffer: LogBuffer,
        line_source: LineSourcePort,
        expected_state: ExpectedStateStore,
        config: AssistantConfig,
        stream_prefix: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._buffer = buffer
        self._line_source = line_source
        self._expected_state = expected_state
        self._config = config
        self._stream_prefix = stream_prefix
        self._clock = clock

    def _records(self, lines, keyword: Optional[str] = None) -> List[ParsedRecord]:
        return filter_records(
            lines,
            keyword,
            marker=self._config.product_marker,
            window=self._config.record_window,
        )

    async def verify(self, device_id: Optional[str] = None) -> DeepLinkReport:
        """Run one verification attempt and return its terminal report."""

        try:
            lines = await acquire(
                self._buffer,
                self._line_source,
                self._stream_prefix,
                device_id,
                lambda snapshot: bool(self._records(snapshot, DEEP_LINK_KEYWORD)),
                self._config.poll_timeout,
            )
        except StreamUnavailable as exc:
            LOGGER.warning("Deep link verification aborted: %s", exc)
            return DeepLinkReport(
                passed=False,
                failure=Failure.STREAM_UNAVAILABLE,
                message=f"Could not read device logs: {exc}",
            )

        logs = self._records(lines, DEEP_LINK_KEYWORD)
        if not logs:
            if not self._records(lines):
                message = (
                    "No AppsFlyer logs found. The SDK is probably not initialized "
                    "or the app has not been launched."
                )
            else:
                message = (
                    "No deep link logs found. AppsFlyer logs are present, so the SDK "
                    "is running, but deep linking is not integrated or was not tested."
                )
            return DeepLinkReport(
                passed=False, failure=Failure.STALE_OR_MISSING_EVIDENCE, message=message
            )

        now_ms = int(self._clock() * 1000)
        recent_logs = recent(logs, now_ms, self._config.recent_window_ms)
        if not recent_logs:
            return DeepLinkReport(
                passed=False,
                failure=Failure.STALE_OR_MISSING_EVIDENCE,
                message="No deep link logs from the last 5 minutes were found.",
            )

        found = next(
            (log for log in reversed(recent_logs) if log.json.get(STATUS_KEY) == FOUND),
            None,
        )
        if found is None:
            return DeepLinkReport(
                passed=False,
                failure=Failure.STATUS_NOT_FOUND,
                message="No deep link logs with status=FOUND were found.",
                record=recent_logs[-1],
            )

        evaluation_type, label, received = classify(found.json)
        expected = self._expected_state.get()
        checks = evaluate_fields(
            received, expected.payload if expected else None, evaluation_type
        )
        missing = [check.key for check in checks if check.missing]
        mismatches = [check for check in checks if not check.matches]

        summary: dict[str, Any] = {check.key: check.received for check in checks}
        if not summary.get(STATUS_KEY):
            summary[STATUS_KEY] = "UNKNOWN"

        status_ok = found.json.get(STATUS_KEY) == FOUND
        passed = status_ok and not missing and not mismatches
        failure = None
        if missing:
            failure = Failure.MISSING_REQUIRED_FIELD
        elif mismatches:
            failure = Failure.FIELD_MISMATCH

        LOGGER.info(
            "Deep link verification %s (type=%s, missing=%s, mismatches=%s)",
            "passed" if passed else "failed",
            label,
            len(missing),
            len(mismatches),
        )
        return DeepLinkReport(
            passed=passed,
            failure=failure,
            message="Deep link verification passed." if passed else "Deep link verification failed.",
            evaluation_type=evaluation_type,
            deferred_label=label,
            summary=summary,
            fields=checks,
            missing=missing,
            mismatches=mismatches,
            expected=expected,
            record=found,
        )
