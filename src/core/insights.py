"""Read-only views over the buffer: summaries, errors, deep-link signals."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence

from core.models import ParsedRecord
from core.records import DEFAULT_MARKER, DEFAULT_WINDOW, filter_records

SUMMARY_KEYS = (
    "af_timestamp",
    "uid",
    "installDate",
    "firstLaunchDate",
    "advertiserId",
    "advertiserIdEnabled",
    "onelink_id",
)

_SDK_PRESENT = re.compile(r"AppsFlyerLib|AppsFlyer SDK", re.IGNORECASE)
_DEFERRED = (
    re.compile(r"is_deferred\s*[:=]\s*true", re.IGNORECASE),
    re.compile(r"deferred deep link", re.IGNORECASE),
)
_DIRECT = (
    re.compile(r"onDeepLinking.*SUCCESS", re.IGNORECASE),
    re.compile(r"af_dp[=:\"]", re.IGNORECASE),
    re.compile(r"af_deeplink\s*[:=]\s*true", re.IGNORECASE),
)
_DEEP_LINK_ENTRY = re.compile(r"deep_link_value|af_dp|onDeepLinking", re.IGNORECASE)
_DEEP_LINK_ERROR = re.compile(
    r"onDeepLinking.*FAILURE|error parsing|invalid|deep_link.*null", re.IGNORECASE
)


@dataclass
class DeepLinkSignals:
    """Heuristic deep-link findings over raw log text."""

    sdk_detected: bool
    deferred: bool = False
    direct: bool = False
    entries: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def summarize_latest(records: Sequence[ParsedRecord]) -> Optional[dict[str, Any]]:
    """Pick the identifying keys from the newest record."""

    if not records:
        return None
    latest = records[-1].json
    return {key: latest[key] for key in SUMMARY_KEYS if key in latest}


def error_records(
    lines: Sequence[str],
    keywords: Iterable[str],
    marker: str = DEFAULT_MARKER,
    window: int = DEFAULT_WINDOW,
) -> List[ParsedRecord]:
    records: List[ParsedRecord] = []
    for keyword in keywords:
        records.extend(filter_records(lines, keyword, marker=marker, window=window))
    return records


def detect_deep_link_signals(lines: Sequence[str]) -> DeepLinkSignals:
    """Scan raw lines for SDK presence and deferred/direct deep-link hints."""

    text = "\n".join(lines)
    if not _SDK_PRESENT.search(text):
        return DeepLinkSignals(sdk_detected=False)

    deferred = any(pattern.search(text) for pattern in _DEFERRED)
    direct = not deferred and any(pattern.search(text) for pattern in _DIRECT)
    return DeepLinkSignals(
        sdk_detected=True,
        deferred=deferred,
        direct=direct,
        entries=[line for line in lines if _DEEP_LINK_ENTRY.search(line)],
        errors=[line for line in lines if _DEEP_LINK_ERROR.search(line)],
    )


_ACTIVITY_START = re.compile(r"Starting activity")
_ROUTING = re.compile(r"navigate|redirect|route to", re.IGNORECASE)
_DEEP_LINK_VALUE = re.compile(r"deep_link_value")


@dataclass
class DeepLinkHandledSignals:
    """Whether the app appears to have acted on a resolved deep link."""

    has_logs: bool
    activity_started: bool = False
    routed: bool = False
    value_found: bool = False

    @property
    def handled(self) -> bool:
        return self.activity_started and self.routed and self.value_found


def deep_link_handled_signals(lines: Sequence[str]) -> DeepLinkHandledSignals:
    """Look for an activity start, routing and a deep link value in raw lines."""

    if not lines:
        return DeepLinkHandledSignals(has_logs=False)
    text = "\n".join(lines)
    return DeepLinkHandledSignals(
        has_logs=True,
        activity_started=bool(_ACTIVITY_START.search(text)),
        routed=bool(_ROUTING.search(text)),
        value_found=bool(_DEEP_LINK_VALUE.search(text)),
    )
