"""Verification tabs: deep link, in-app event and SDK install."""

from __future__ import annotations

import json

from rich.text import Text
from textual import on
from textual.containers import Container, Horizontal, ScrollableContainer, Vertical
from textual.widgets import Button, Input, Static

from adapters.report_formatting import format_report


class _ReportTab(Container):
    def _show(self, output_id: str, text: str) -> None:
        self.query_one(f"#{output_id}", Static).update(Text(text))


class DeepLinkTab(_ReportTab):
    """Set the expected OneLink payload and verify the latest deep link."""

    def compose(self):
        with Vertical(id="deeplink-panel"):
            yield Static("OneLink URL", classes="form-label")
            yield Input(placeholder="https://app.onelink.me/abc?deep_link_value=...", id="onelink-url")
            yield Static("expected payload (JSON, optional)", classes="form-label")
            yield Input(placeholder='{"deep_link_value": "apples"}', id="onelink-payload")
            yield Static("", id="deeplink-expected", classes="subtle")
            with Horizontal(classes="tab-actions"):
                yield Button("Set expected", id="deeplink-set")
                yield Button("Verify", id="deeplink-verify", variant="success")
            with ScrollableContainer(classes="report"):
                yield Static("", id="deeplink-output")

    @on(Button.Pressed, "#deeplink-set")
    def _on_set_expected(self) -> None:
        url = self.query_one("#onelink-url", Input).value.strip()
        raw_payload = self.query_one("#onelink-payload", Input).value.strip()
        if not url:
            self._show("deeplink-expected", "OneLink URL is required")
            return
        payload = None
        if raw_payload:
            try:
                payload = json.loads(raw_payload)
            except ValueError as exc:
                self._show("deeplink-expected", f"payload is not valid JSON: {exc}")
                return
            if not isinstance(payload, dict):
                self._show("deeplink-expected", "payload must be a JSON object")
                return
        expected = self.app.assistant.set_expected(url, payload)
        self._show("deeplink-expected", f"expected: {json.dumps(expected.payload, ensure_ascii=False)}")

    @on(Button.Pressed, "#deeplink-verify")
    async def _on_verify(self) -> None:
        self._show("deeplink-output", "verifying...")
        report = await self.app.assistant.verify_deep_link()
        self._show("deeplink-output", format_report(report))


class EventsTab(_ReportTab):
    """Verify that a named in-app event was prepared and sent."""

    def compose(self):
        with Vertical(id="events-panel"):
            yield Static("event name", classes="form-label")
            yield Input(placeholder="af_purchase", id="event-name")
            with Horizontal(classes="tab-actions"):
                yield Button("Verify", id="event-verify", variant="success")
            with ScrollableContainer(classes="report"):
                yield Static("", id="event-output")

    @on(Button.Pressed, "#event-verify")
    async def _on_verify(self) -> None:
        event_name = self.query_one("#event-name", Input).value.strip()
        if not event_name:
            self._show("event-output", "event name is required")
            return
        self._show("event-output", "verifying...")
        report = await self.app.assistant.verify_in_app_event(event_name)
        self._show("event-output", format_report(report))


class SdkTab(_ReportTab):
    """Check install attribution for the device seen in the logs."""

    def compose(self):
        with Vertical(id="sdk-panel"):
            yield Static("app id (optional, APP_ID or logs otherwise)", classes="form-label")
            yield Input(placeholder="com.example.app", id="sdk-app-id")
            with Horizontal(classes="tab-actions"):
                yield Button("Verify", id="sdk-verify", variant="success")
            with ScrollableContainer(classes="report"):
                yield Static("", id="sdk-output")

    @on(Button.Pressed, "#sdk-verify")
    async def _on_verify(self) -> None:
        app_id = self.query_one("#sdk-app-id", Input).value.strip() or None
        self._show("sdk-output", "verifying...")
        report = await self.app.assistant.verify_install(self.app.dev_key, app_id)
        self._show("sdk-output", format_report(report))
