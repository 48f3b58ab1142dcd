"""Application entry point for the afscope assistant."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

import settings
from adapters.adb_logcat import AdbLogcatSource
from adapters.install_data_client import InstallDataClient
from adapters.report_formatting import format_handled, format_records, format_report, format_signals, to_json
from core.assistant import SUMMARY_KEYWORDS, VerificationAssistant
from core.errors import StreamUnavailable
from core.log_buffer import LogBuffer

NAME = "AFSCOPE"
FONT = "tarty-1"

KEYWORDS = {
    "conversion": "CONVERSION-",
    "launch": "LAUNCH-",
    "inapp": "INAPP-",
    "deeplink": "deepLink",
}

EXIT_FAILED = 1
EXIT_UNAVAILABLE = 2


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        # Reports go to stdout; keep diagnostics on stderr so --json stays parseable.
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/afscope.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def build_assistant() -> tuple[VerificationAssistant, AdbLogcatSource]:
    """Wire the core assistant to the adb and install-data adapters."""

    stream = settings.stream_config()
    buffer = LogBuffer(settings.BUFFER_CAPACITY)
    source = AdbLogcatSource(buffer, adb_path=stream.adb_path, logcat_format=stream.logcat_format)
    assistant = VerificationAssistant(
        buffer=buffer,
        line_source=source,
        install_data=InstallDataClient(settings.INSTALL_DATA_URL, settings.INSTALL_DATA_TIMEOUT),
        config=settings.assistant_config(),
        stream_prefix=stream.prefix,
        default_device_id=stream.device_id,
    )
    return assistant, source


async def _execute(args: argparse.Namespace) -> int:
    assistant, source = build_assistant()
    mode = "json" if args.json else "text"
    try:
        if args.command == "logs":
            lines = await assistant.fetch_logs(args.device)
            print("\n".join(lines) if lines else "[No AppsFlyer logs found in the last few seconds.]")
            return 0

        if args.command == "records":
            keyword = KEYWORDS.get(args.keyword) if args.keyword else None
            if args.latest:
                if keyword not in SUMMARY_KEYWORDS:
                    print("--latest works with conversion, launch or deeplink records.")
                    return EXIT_FAILED
                summary = await assistant.latest_summary(keyword, args.device)
                print(to_json(summary) if summary is not None else "No log entry found.")
                return 0
            records = await assistant.records_for(keyword, args.device)
            print(format_records(records, f"No log entries found for keyword: {keyword or 'ALL'}"))
            return 0

        if args.command == "errors":
            await assistant.fetch_logs(args.device)
            print(format_records(assistant.errors(), "No error entries found."))
            return 0

        if args.command == "detect-deeplink":
            await assistant.fetch_logs(args.device)
            signals = assistant.detect_deep_link()
            print(to_json(signals) if args.json else format_signals(signals))
            return 0

        if args.command == "deeplink-handled":
            await assistant.fetch_logs(args.device)
            handled = assistant.deep_link_handled()
            print(to_json(handled) if args.json else format_handled(handled))
            return 0 if handled.handled else EXIT_FAILED

        if args.command == "verify-sdk":
            report = await assistant.verify_install(
                args.dev_key or settings.DEV_KEY, args.app_id, args.device
            )
        elif args.command == "verify-deeplink":
            if args.onelink:
                try:
                    payload = json.loads(args.expect) if args.expect else None
                except ValueError as exc:
                    print(f"--expect is not valid JSON: {exc}")
                    return EXIT_FAILED
                if payload is not None and not isinstance(payload, dict):
                    print("--expect must be a JSON object.")
                    return EXIT_FAILED
                assistant.set_expected(args.onelink, payload)
            report = await assistant.verify_deep_link(args.device)
        elif args.command == "verify-event":
            report = await assistant.verify_in_app_event(args.event_name, args.device)
        else:
            raise ValueError(f"Unknown command: {args.command}")

        print(format_report(report, mode))
        return 0 if report.passed else EXIT_FAILED
    except StreamUnavailable as exc:
        print(f"[Error fetching logs] {exc}")
        return EXIT_UNAVAILABLE
    finally:
        await source.close()


def _monitor() -> None:
    from frontend.app import MonitorApp

    assistant, source = build_assistant()
    MonitorApp(assistant, source, dev_key=settings.DEV_KEY).run()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="afscope")
    parser.add_argument("--json", action="store_true", help="Print machine-readable output")
    subparsers = parser.add_subparsers(dest="command")

    def with_device(sub: argparse.ArgumentParser) -> argparse.ArgumentParser:
        sub.add_argument("--device", help="adb device serial (defaults to config)")
        return sub

    with_device(subparsers.add_parser("logs", help="Dump buffered AppsFlyer log lines"))
    records = with_device(subparsers.add_parser("records", help="Show parsed AppsFlyer records"))
    records.add_argument("--keyword", choices=sorted(KEYWORDS), help="Log family to show")
    records.add_argument("--latest", action="store_true", help="Only the key fields of the newest record")
    with_device(subparsers.add_parser("errors", help="Show records matching error keywords"))
    with_device(subparsers.add_parser("detect-deeplink", help="Heuristic deep link detection"))
    with_device(subparsers.add_parser("deeplink-handled", help="Check the app acted on a deep link"))

    sdk = with_device(subparsers.add_parser("verify-sdk", help="Verify SDK install attribution"))
    sdk.add_argument("--dev-key", help="Dev key (overrides DEV_KEY)")
    sdk.add_argument("--app-id", help="Android app id (overrides APP_ID)")

    deeplink = with_device(subparsers.add_parser("verify-deeplink", help="Verify deep link resolution"))
    deeplink.add_argument("--onelink", help="OneLink URL the test link was created from")
    deeplink.add_argument("--expect", help="Expected payload as a JSON object (defaults to the URL query)")

    event = with_device(subparsers.add_parser("verify-event", help="Verify an in-app event was sent"))
    event.add_argument("event_name")

    subparsers.add_parser("monitor", help="Launch the live monitor TUI")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging()

    if args.command in (None, "monitor"):
        _print_banner()
        _monitor()
        return 0

    if not args.json:
        _print_banner()
    return asyncio.run(_execute(args))


if __name__ == "__main__":
    sys.exit(main())
