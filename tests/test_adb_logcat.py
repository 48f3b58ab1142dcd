from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from adapters.adb_logcat import AdbLogcatSource, parse_devices
from core.config import AssistantConfig
from core.deep_link import DeepLinkVerifier
from core.errors import Failure, StreamUnavailable
from core.expected_state import ExpectedStateStore
from core.log_buffer import LogBuffer

DEVICES_OUTPUT = b"List of devices attached\nemulator-5554\tdevice\nR58M\tunauthorized\n\n"


class FakeProcess:
    def __init__(
        self,
        stdout: Optional[asyncio.StreamReader] = None,
        output: bytes = b"",
        returncode: Optional[int] = None,
    ) -> None:
        self.stdout = stdout
        self.returncode = returncode
        self._output = output

    async def communicate(self) -> tuple[bytes, bytes]:
        self.returncode = 0
        return self._output, b""

    async def wait(self) -> Optional[int]:
        return self.returncode

    def terminate(self) -> None:
        self.returncode = -15


class FakeAdbSource(AdbLogcatSource):
    def __init__(
        self,
        buffer: LogBuffer,
        devices: bytes = DEVICES_OUTPUT,
        logcat_exit: Optional[int] = None,
        reader_limit: int = 2**16,
    ) -> None:
        super().__init__(buffer)
        self.spawned: list[tuple[str, ...]] = []
        self.readers: list[asyncio.StreamReader] = []
        self.processes: list[FakeProcess] = []
        self._devices = devices
        self._logcat_exit = logcat_exit
        self._reader_limit = reader_limit

    async def _spawn(self, *args: str) -> FakeProcess:
        self.spawned.append(args)
        if args == ("devices",):
            return FakeProcess(output=self._devices)
        reader = asyncio.StreamReader(limit=self._reader_limit)
        self.readers.append(reader)
        process = FakeProcess(stdout=reader, returncode=self._logcat_exit)
        self.processes.append(process)
        return process


def test_parse_devices_keeps_only_ready_devices() -> None:
    output = "* daemon started successfully\n" + DEVICES_OUTPUT.decode()

    assert parse_devices(output) == ["emulator-5554"]
    assert parse_devices("List of devices attached\n\n") == []


def test_stream_pushes_prefixed_lines_and_is_reused() -> None:
    buffer = LogBuffer()

    async def scenario() -> FakeAdbSource:
        source = FakeAdbSource(buffer)
        await source.ensure_streaming("AppsFlyer_")
        reader = source.readers[0]
        reader.feed_data(b"01-01 10:00:00.000 D AppsFlyer_6.12: hello\n")
        reader.feed_data(b"01-01 10:00:00.001 D OtherTag: ignored\n")
        await buffer.wait_for(bool, timeout=1.0)
        await source.ensure_streaming("AppsFlyer_")
        await source.close()
        return source

    source = asyncio.run(scenario())

    assert buffer.snapshot() == ("01-01 10:00:00.000 D AppsFlyer_6.12: hello",)
    assert source.spawned == [("devices",), ("logcat", "-v", "threadtime")]


def test_stream_is_restarted_after_process_exit() -> None:
    buffer = LogBuffer()

    async def scenario() -> FakeAdbSource:
        source = FakeAdbSource(buffer)
        await source.ensure_streaming("AppsFlyer_")
        source.readers[0].feed_eof()
        await asyncio.sleep(0.01)
        await source.ensure_streaming("AppsFlyer_")
        await source.close()
        return source

    source = asyncio.run(scenario())

    assert source.spawned.count(("logcat", "-v", "threadtime")) == 2


def test_device_serial_is_passed_to_adb() -> None:
    async def scenario() -> FakeAdbSource:
        source = FakeAdbSource(LogBuffer())
        await source.ensure_streaming("AppsFlyer_", "emulator-5554")
        await source.close()
        return source

    source = asyncio.run(scenario())

    assert source.spawned[-1] == ("-s", "emulator-5554", "logcat", "-v", "threadtime")


def test_no_connected_device_is_unavailable() -> None:
    source = FakeAdbSource(LogBuffer(), devices=b"List of devices attached\n\n")

    with pytest.raises(StreamUnavailable):
        asyncio.run(source.ensure_streaming("AppsFlyer_"))


def test_unknown_device_serial_is_unavailable() -> None:
    source = FakeAdbSource(LogBuffer())

    with pytest.raises(StreamUnavailable, match="R58M"):
        asyncio.run(source.ensure_streaming("AppsFlyer_", "R58M"))


def test_missing_adb_binary_is_unavailable() -> None:
    source = AdbLogcatSource(LogBuffer(), adb_path="/nonexistent/path/to/adb")

    with pytest.raises(StreamUnavailable):
        asyncio.run(source.ensure_streaming("AppsFlyer_"))


def test_several_devices_without_serial_are_unavailable() -> None:
    devices = b"List of devices attached\nemulator-5554\tdevice\nR58M123\tdevice\n\n"
    source = FakeAdbSource(LogBuffer(), devices=devices)

    with pytest.raises(StreamUnavailable, match="more than one device"):
        asyncio.run(source.ensure_streaming("AppsFlyer_"))

    assert ("logcat", "-v", "threadtime") not in source.spawned


def test_several_devices_with_serial_stream_normally() -> None:
    devices = b"List of devices attached\nemulator-5554\tdevice\nR58M123\tdevice\n\n"

    async def scenario() -> FakeAdbSource:
        source = FakeAdbSource(LogBuffer(), devices=devices)
        await source.ensure_streaming("AppsFlyer_", "R58M123")
        await source.close()
        return source

    source = asyncio.run(scenario())

    assert source.spawned[-1] == ("-s", "R58M123", "logcat", "-v", "threadtime")


def test_logcat_exiting_at_startup_is_unavailable() -> None:
    source = FakeAdbSource(LogBuffer(), logcat_exit=1)

    with pytest.raises(StreamUnavailable, match="exited with code 1"):
        asyncio.run(source.ensure_streaming("AppsFlyer_"))


def test_verification_reports_unavailable_stream_for_several_devices() -> None:
    devices = b"List of devices attached\nemulator-5554\tdevice\nR58M123\tdevice\n\n"
    buffer = LogBuffer()
    verifier = DeepLinkVerifier(
        buffer,
        FakeAdbSource(buffer, devices=devices),
        ExpectedStateStore(),
        AssistantConfig(poll_timeout=0.05),
        "AppsFlyer_",
    )

    report = asyncio.run(verifier.verify())

    assert report.failure == Failure.STREAM_UNAVAILABLE
    assert "more than one device" in report.message


def test_failed_reader_terminates_old_process_before_restart() -> None:
    buffer = LogBuffer()

    async def scenario() -> FakeAdbSource:
        source = FakeAdbSource(buffer, reader_limit=16)
        await source.ensure_streaming("AppsFlyer_")
        source.readers[0].feed_data(b"AppsFlyer_" + b"x" * 64 + b"\n")
        await asyncio.sleep(0.01)
        await source.ensure_streaming("AppsFlyer_")
        await source.close()
        return source

    source = asyncio.run(scenario())

    first, second = source.processes
    assert first.returncode == -15
    assert second is not first
    assert source.spawned.count(("logcat", "-v", "threadtime")) == 2
