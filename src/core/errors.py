"""Failure codes and adapter exceptions.

Adapters raise the exceptions below; the core turns them into terminal
reports so a failed verification is a normal, reportable outcome.
"""

from __future__ import annotations

from enum import Enum


class Failure(str, Enum):
    """Why a verification attempt stopped."""

    STREAM_UNAVAILABLE = "stream_unavailable"
    STALE_OR_MISSING_EVIDENCE = "stale_or_missing_evidence"
    STATUS_NOT_FOUND = "status_not_found"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    FIELD_MISMATCH = "field_mismatch"
    EVENT_NOT_SENT = "event_not_sent"
    EVENT_NOT_FOUND = "event_not_found"
    MISSING_CREDENTIALS = "missing_credentials"
    MISSING_DEVICE_ID = "missing_device_id"
    MISSING_APP_ID = "missing_app_id"
    INSTALL_LOOKUP_FAILED = "install_lookup_failed"


class StreamUnavailable(RuntimeError):
    """The device log stream could not be started."""


class InstallDataError(RuntimeError):
    """The install-data lookup failed or returned an unusable body."""
