"""Record extraction from raw logcat lines (core domain).

A record is a product log line that carries a JSON payload. Timestamps are
normalized to epoch milliseconds in local time, the way logcat prints them.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Tuple

from core.models import ParsedRecord

DEFAULT_MARKER = "AppsFlyer"
DEFAULT_WINDOW = 700

_FULL_TIMESTAMP = re.compile(r"^(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2})\.(\d{3})")
_SHORT_TIMESTAMP = re.compile(r"^(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2})\.(\d{3})")
_JSON_SPAN = re.compile(r"{.*}", re.DOTALL)
_FALLBACK_CHARS = 18
_FUTURE_TOLERANCE = timedelta(hours=24)


def _to_epoch_ms(moment: datetime) -> int:
    return int(round(moment.timestamp() * 1000))


def _build(year: int, parts: Tuple[str, ...]) -> datetime:
    month, day, hour, minute, second, millis = (int(part) for part in parts)
    return datetime(year, month, day, hour, minute, second, millis * 1000)


def parse_timestamp(line: str, now: Optional[datetime] = None) -> Tuple[str, Optional[int]]:
    """Return the timestamp prefix of a line and its epoch millis when known.

    Short logcat timestamps have no year: we assume the current one and step
    back a year when that would put the line more than a day in the future,
    which happens when reading December logs in early January.
    """

    full = _FULL_TIMESTAMP.match(line)
    if full:
        try:
            moment = _build(int(full.group(1)), full.groups()[1:])
        except ValueError:
            return line[:_FALLBACK_CHARS], None
        return full.group(0), _to_epoch_ms(moment)

    short = _SHORT_TIMESTAMP.match(line)
    if short:
        now = now or datetime.now()
        year = now.year
        try:
            moment = _build(year, short.groups())
            if moment > now + _FUTURE_TOLERANCE:
                moment = _build(year - 1, short.groups())
        except ValueError:
            return line[:_FALLBACK_CHARS], None
        return short.group(0), _to_epoch_ms(moment)

    return line[:_FALLBACK_CHARS], None


def extract_json(line: str) -> Optional[dict[str, Any]]:
    """Parse the first-``{``-to-last-``}`` span of a line as a JSON object.

    The span is greedy, so two sibling objects on one line parse as a single
    invalid document and yield None.
    """

    if not line:
        return None
    match = _JSON_SPAN.search(line)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def filter_records(
    lines: Iterable[str],
    keyword: Optional[str] = None,
    marker: str = DEFAULT_MARKER,
    window: int = DEFAULT_WINDOW,
    now: Optional[datetime] = None,
) -> List[ParsedRecord]:
    """Parse the most recent product lines containing ``keyword``.

    At most ``window`` matching lines are considered; lines without a usable
    JSON payload are dropped. Order is oldest to newest.
    """

    matching = [
        line for line in lines if marker in line and (keyword is None or keyword in line)
    ]
    if window > 0:
        matching = matching[-window:]

    now = now or datetime.now()
    records: List[ParsedRecord] = []
    for line in matching:
        payload = extract_json(line)
        if payload is None:
            continue
        text, millis = parse_timestamp(line, now)
        records.append(
            ParsedRecord(timestamp=text, timestamp_ms=millis, type=keyword or "ALL", json=payload)
        )
    return records


def recent(records: Iterable[ParsedRecord], now_ms: int, window_ms: int) -> List[ParsedRecord]:
    """Keep records whose timestamp falls within ``window_ms`` of ``now_ms``."""

    since = now_ms - window_ms
    return [record for record in records if record.timestamp_ms and record.timestamp_ms >= since]
