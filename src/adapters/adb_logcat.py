"""adb logcat line source adapter.

Implements the core LineSourcePort by tailing ``adb logcat`` in a subprocess
and pushing matching lines into the shared LogBuffer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from core.errors import StreamUnavailable
from core.log_buffer import LogBuffer

LOGGER = logging.getLogger(__name__)

DEVICES_HEADER = "List of devices attached"


def parse_devices(output: str) -> list[str]:
    """Return serials of devices in the ``device`` state from ``adb devices``."""

    serials: list[str] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(DEVICES_HEADER) or line.startswith("*"):
            continue
        parts = line.split()
        if len(parts) >= 2 and parts[1] == "device":
            serials.append(parts[0])
    return serials


@dataclass
class _Stream:
    process: asyncio.subprocess.Process
    reader: asyncio.Task

    @property
    def alive(self) -> bool:
        return self.process.returncode is None and not self.reader.done()


class AdbLogcatSource:
    """Keeps one logcat subprocess per (prefix, device) pair alive."""

    def __init__(
        self,
        buffer: LogBuffer,
        adb_path: str = "adb",
        logcat_format: str = "threadtime",
        startup_grace: float = 0.5,
    ) -> None:
        self._buffer = buffer
        self._adb_path = adb_path
        self._logcat_format = logcat_format
        self._startup_grace = startup_grace
        self._streams: dict[tuple[str, Optional[str]], _Stream] = {}
        self._lock = asyncio.Lock()

    async def _spawn(self, *args: str) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                self._adb_path,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise StreamUnavailable(f"cannot run {self._adb_path}: {exc}") from exc

    async def list_devices(self) -> list[str]:
        process = await self._spawn("devices")
        stdout, _ = await process.communicate()
        if process.returncode != 0:
            raise StreamUnavailable(f"adb devices exited with code {process.returncode}")
        return parse_devices(stdout.decode("utf-8", errors="replace"))

    async def ensure_streaming(self, prefix: str, device_id: Optional[str] = None) -> None:
        """Start a logcat stream for ``prefix`` unless one is already running."""

        key = (prefix, device_id)
        async with self._lock:
            stream = self._streams.pop(key, None)
            if stream and stream.alive:
                self._streams[key] = stream
                return
            if stream:
                self._retire(stream, prefix)

            devices = await self.list_devices()
            if not devices:
                raise StreamUnavailable("no Android device is connected")
            if device_id and device_id not in devices:
                raise StreamUnavailable(f"device {device_id} is not connected")
            if not device_id and len(devices) > 1:
                raise StreamUnavailable(
                    f"more than one device connected ({', '.join(devices)}); pass a device id"
                )

            args = ["-s", device_id] if device_id else []
            args += ["logcat", "-v", self._logcat_format]
            process = await self._spawn(*args)
            await self._check_started(process)
            reader = asyncio.create_task(self._pump(process, prefix))
            self._streams[key] = _Stream(process=process, reader=reader)
            LOGGER.info("Started logcat stream for %s (device=%s)", prefix, device_id or "default")

    async def _check_started(self, process: asyncio.subprocess.Process) -> None:
        # logcat never exits on its own; an exit inside the grace period means it failed to start.
        try:
            await asyncio.wait_for(process.wait(), self._startup_grace)
        except asyncio.TimeoutError:
            return
        if process.returncode is not None:
            raise StreamUnavailable(f"adb logcat exited with code {process.returncode}")

    @staticmethod
    def _retire(stream: _Stream, prefix: str) -> None:
        if stream.reader.done() and not stream.reader.cancelled() and stream.reader.exception():
            LOGGER.warning("logcat reader for %s failed: %s", prefix, stream.reader.exception())
        if stream.process.returncode is None:
            try:
                stream.process.terminate()
            except ProcessLookupError:
                pass
        stream.reader.cancel()

    async def _pump(self, process: asyncio.subprocess.Process, prefix: str) -> None:
        assert process.stdout is not None
        async for raw in process.stdout:
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if prefix in line:
                self._buffer.append(line)
        code = await process.wait()
        LOGGER.warning("logcat stream for %s ended with code %s", prefix, code)

    async def close(self) -> None:
        """Terminate every logcat subprocess and wait for the readers."""

        streams = list(self._streams.values())
        self._streams.clear()
        for stream in streams:
            if stream.process.returncode is None:
                try:
                    stream.process.terminate()
                except ProcessLookupError:
                    pass
        for stream in streams:
            stream.reader.cancel()
        await asyncio.gather(*(stream.reader for stream in streams), return_exceptions=True)
