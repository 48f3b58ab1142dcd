from __future__ import annotations

from core.log_buffer import LogBuffer
from frontend.state import StreamState


def test_full_buffer_still_reports_new_lines() -> None:
    buffer = LogBuffer(capacity=3)
    state = StreamState()
    buffer.extend(["a", "b", "c"])

    assert state.observe(buffer)
    assert not state.observe(buffer)

    buffer.extend(["d", "e"])

    assert state.observe(buffer)
    assert state.line_count == 3
    assert buffer.snapshot() == ("c", "d", "e")


def test_idle_buffer_is_unchanged() -> None:
    state = StreamState()

    assert not state.observe(LogBuffer())
    assert state.line_count == 0
