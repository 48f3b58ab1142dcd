"""Shared acquisition step for the verification flows."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from core.log_buffer import LogBuffer
from core.ports import LineSourcePort

LOGGER = logging.getLogger(__name__)


async def acquire(
    buffer: LogBuffer,
    line_source: LineSourcePort,
    prefix: str,
    device_id: Optional[str],
    ready: Callable[[tuple[str, ...]], bool],
    timeout: float,
) -> tuple[str, ...]:
    """Ensure streaming, wait for evidence (bounded), and snapshot the buffer.

    StreamUnavailable from the line source propagates to the caller. The
    snapshot is taken once so the rest of a verification sees a stable view
    while ingestion keeps appending.
    """

    await line_source.ensure_streaming(prefix, device_id)
    if not await buffer.wait_for(ready, timeout):
        LOGGER.debug("No matching lines after %.1fs, continuing with what is buffered", timeout)
    return buffer.snapshot()
