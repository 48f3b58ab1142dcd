"""State container for the monitor's stream status."""

from __future__ import annotations

from dataclasses import dataclass

from core.log_buffer import LogBuffer


@dataclass
class StreamState:
    streaming: bool = False
    error: str | None = None
    line_count: int = 0
    seen_appends: int = 0

    def observe(self, buffer: LogBuffer) -> bool:
        """Record the buffer's size and report whether new lines arrived."""

        self.line_count = len(buffer)
        if buffer.total_appended == self.seen_appends:
            return False
        self.seen_appends = buffer.total_appended
        return True
