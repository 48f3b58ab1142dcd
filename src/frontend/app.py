"""Main Textual app for the afscope live monitor."""

from __future__ import annotations

import logging
from typing import Any, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Center, Container, Horizontal, Vertical
from textual.widgets import ContentSwitcher, Footer, Static, Tab, Tabs

from core.assistant import VerificationAssistant
from core.errors import StreamUnavailable

from .constants import BRAND_GREEN, REFRESH_SECONDS
from .state import StreamState
from .tabs.logs import LogsTab
from .tabs.verify import DeepLinkTab, EventsTab, SdkTab

LOGGER = logging.getLogger(__name__)


class MonitorApp(App):
    """Live view of the device log buffer with verification panels."""

    BINDINGS = [
        ("ctrl+r", "restart_stream", "Reconnect"),
        ("q", "quit", "Quit"),
    ]

    CSS = """
    Screen {
        background: #0f1a21;
        color: #e8eef5;
    }

    #header {
        height: 6;
        padding: 1 4;
        border-bottom: solid #2a3a46;
    }

    #header-left, #header-right {
        width: 1fr;
    }

    #header-right {
        content-align: right top;
        text-align: right;
    }

    #title {
        text-style: bold;
    }

    .subtle {
        color: #c6d2dd;
    }

    .status-error {
        color: #ff6b6b;
    }

    #tabs-bar {
        height: 5;
        padding: 0 4;
        border-bottom: solid #2a3a46;
    }

    #tabs {
        width: auto;
    }

    .form-label {
        margin-top: 1;
        color: #c6d2dd;
    }

    .tab-actions {
        height: 3;
        margin-top: 1;
    }

    .report {
        height: 1fr;
        border: round #2a3a46;
        padding: 0 1;
    }
    """

    def __init__(
        self,
        assistant: VerificationAssistant,
        line_source: Any,
        dev_key: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.assistant = assistant
        self.dev_key = dev_key
        self._line_source = line_source
        self.stream_state = StreamState()

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Horizontal(id="header-row"):
                with Vertical(id="header-left"):
                    yield Static(self._title_text(), id="title")
                    yield Static("AppsFlyer logcat assistant", classes="subtle")
                with Vertical(id="header-right"):
                    yield Static("stream: starting", id="header-status", classes="subtle")
                    yield Static("", id="header-lines", classes="subtle")

        with Container(id="tabs-bar"):
            with Center(id="tabs-center"):
                yield Tabs(
                    Tab("Logs", id="logs"),
                    Tab("Deep link", id="deeplink"),
                    Tab("Events", id="events"),
                    Tab("SDK", id="sdk"),
                    id="tabs",
                )

        with ContentSwitcher(id="content"):
            yield LogsTab(id="logs")
            yield DeepLinkTab(id="deeplink")
            yield EventsTab(id="events")
            yield SdkTab(id="sdk")
        yield Footer()

    def on_mount(self) -> None:
        self._set_active_tab("logs")
        self.run_worker(self._start_stream(), exclusive=True)
        self.set_interval(REFRESH_SECONDS, self._refresh)

    async def on_unmount(self) -> None:
        await self._line_source.close()

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        self._set_active_tab(event.tab.id or "logs")

    def _set_active_tab(self, tab_id: str) -> None:
        switcher = self.query_one("#content", ContentSwitcher)
        switcher.current = tab_id

    def action_restart_stream(self) -> None:
        self.run_worker(self._start_stream(), exclusive=True)

    async def _start_stream(self) -> None:
        try:
            await self.assistant.fetch_logs()
        except StreamUnavailable as exc:
            LOGGER.warning("Monitor could not start streaming: %s", exc)
            self.stream_state.streaming = False
            self.stream_state.error = str(exc)
        else:
            self.stream_state.streaming = True
            self.stream_state.error = None
        self._refresh_header()

    def _refresh(self) -> None:
        if self.stream_state.observe(self.assistant.buffer):
            self.query_one(LogsTab).refresh_records()
        self._refresh_header()

    def _refresh_header(self) -> None:
        status = self.query_one("#header-status", Static)
        status.remove_class("status-error")
        if self.stream_state.error:
            status.update(Text(f"stream: {self.stream_state.error}"))
            status.add_class("status-error")
        elif self.stream_state.streaming:
            status.update("stream: live")
        else:
            status.update("stream: starting")
        self.query_one("#header-lines", Static).update(
            f"buffer: {self.stream_state.line_count}/{self.assistant.buffer.capacity} lines"
        )

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("AF", BRAND_GREEN),
            ("SCOPE > Monitor", "bold"),
        )
