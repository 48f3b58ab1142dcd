"""Bounded in-memory store of raw device log lines."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable, Sequence


class LogBuffer:
    """FIFO-evicting line buffer shared by ingestion and verification.

    Appends come from the line source reader tasks; readers take a snapshot
    and never see a partially applied append. ``wait_for`` lets callers sleep
    until new lines arrive instead of polling on a fixed interval.
    """

    def __init__(self, capacity: int = 5000) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._lines: deque[str] = deque(maxlen=capacity)
        self._changed = asyncio.Event()
        self._appended = 0

    @property
    def capacity(self) -> int:
        return self._lines.maxlen or 0

    @property
    def total_appended(self) -> int:
        """Lines appended since creation; keeps growing after evictions and clears."""

        return self._appended

    def __len__(self) -> int:
        return len(self._lines)

    def append(self, line: str) -> None:
        """Append one line, evicting the oldest when full."""

        self._lines.append(line)
        self._appended += 1
        # Wake every current waiter, then hand out a fresh event for the next round.
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    def extend(self, lines: Sequence[str]) -> None:
        for line in lines:
            self.append(line)

    def snapshot(self) -> tuple[str, ...]:
        return tuple(self._lines)

    def clear(self) -> None:
        self._lines.clear()

    async def wait_for(
        self,
        predicate: Callable[[tuple[str, ...]], bool],
        timeout: float,
    ) -> bool:
        """Wait until ``predicate(snapshot)`` holds or ``timeout`` elapses."""

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            changed = self._changed
            if predicate(self.snapshot()):
                return True
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            try:
                await asyncio.wait_for(changed.wait(), remaining)
            except asyncio.TimeoutError:
                return predicate(self.snapshot())
