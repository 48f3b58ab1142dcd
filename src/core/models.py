"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to adb, HTTP or UI-specific types.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from core.errors import Failure

DEFERRED = "deferred"
DIRECT = "direct"


@dataclass(frozen=True)
class ParsedRecord:
    """One product log line with its timestamp and embedded JSON payload."""

    timestamp: str
    timestamp_ms: Optional[int]
    type: str
    json: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ExpectedDeepLinkData:
    """Latest expected deep-link payload, set after a OneLink is created."""

    source_url: str
    payload: dict[str, Any]
    captured_at_ms: int


@dataclass(frozen=True)
class FieldCheck:
    """Expected-vs-received evaluation of a single deep-link field."""

    key: str
    expected: str
    received: str
    required: bool
    compared: bool
    missing: bool
    matches: bool


@dataclass(frozen=True)
class PreparedEvent:
    """An in-app event payload logged under "preparing data"."""

    task_id: str
    payload: dict[str, Any]
    event_name: Optional[str] = None


@dataclass(frozen=True)
class CorrelatedEvent:
    """A prepared event annotated with its delivery status."""

    task_id: str
    payload: dict[str, Any]
    event_name: Optional[str]
    sent: bool
    status: str
    evidence: list[str] = field(default_factory=list)


@dataclass
class DeepLinkReport:
    """Terminal result of one deep-link verification attempt."""

    passed: bool
    message: str
    failure: Optional[Failure] = None
    evaluation_type: Optional[str] = None
    deferred_label: Optional[str] = None
    summary: dict[str, Any] = field(default_factory=dict)
    fields: list[FieldCheck] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    mismatches: list[FieldCheck] = field(default_factory=list)
    expected: Optional[ExpectedDeepLinkData] = None
    record: Optional[ParsedRecord] = None


@dataclass
class InAppEventReport:
    """Terminal result of one in-app event verification attempt."""

    event_name: str
    passed: bool
    message: str
    failure: Optional[Failure] = None
    event: Optional[CorrelatedEvent] = None
    record: Optional[ParsedRecord] = None


@dataclass
class InstallReport:
    """Terminal result of one SDK install attribution check."""

    passed: bool
    message: str
    failure: Optional[Failure] = None
    app_id: Optional[str] = None
    device_id: Optional[str] = None
    timestamp: Optional[str] = None
    af_status: Optional[str] = None
    install_time: Optional[str] = None
    record: Optional[ParsedRecord] = None
