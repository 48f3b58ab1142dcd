"""Logs tab for browsing parsed AppsFlyer records."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from rich.text import Text
from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Select, Static

from ..constants import TABLE_ROWS

KEYWORD_OPTIONS = [
    ("all", ""),
    ("conversion", "CONVERSION-"),
    ("launch", "LAUNCH-"),
    ("in-app", "INAPP-"),
    ("deep link", "deepLink"),
]


class LogsTab(Container):
    """Live table of parsed records with a family filter and JSON export."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._keyword: Optional[str] = None
        self._rows: list[dict[str, Any]] = []
        self._table_ready = False

    def compose(self):
        with Vertical(id="logs-panel"):
            with Horizontal(id="logs-actions"):
                yield Select(KEYWORD_OPTIONS, id="logs-keyword", allow_blank=False, value="")
                yield Button("Export JSON", id="logs-export", variant="success")
            yield DataTable(id="logs-table", cursor_type="row")
            yield Static("", id="logs-output")

    def on_mount(self) -> None:
        table = self.query_one("#logs-table", DataTable)
        table.add_column("time", key="timestamp", width=20)
        table.add_column("type", key="type", width=12)
        table.add_column("payload", key="json", width=80)
        table.zebra_stripes = True
        table.styles.height = "1fr"
        self.query_one("#logs-actions").styles.height = 3
        self._table_ready = True

    @on(Select.Changed, "#logs-keyword")
    def _on_keyword_changed(self, event: Select.Changed) -> None:
        self._keyword = str(event.value) or None
        self.refresh_records()

    @on(Button.Pressed, "#logs-export")
    def _on_export(self) -> None:
        if not self._rows:
            self._set_output("No records to export.")
            return
        exports_dir = Path.cwd() / "exports"
        exports_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = exports_dir / f"records-{timestamp}.json"
        try:
            path.write_text(json.dumps(self._rows, indent=2, ensure_ascii=True), encoding="utf-8")
            self._set_output(f"exported {len(self._rows)} records to {path}")
        except OSError as exc:
            self._set_output(f"export failed: {exc.strerror or exc}")

    def refresh_records(self) -> None:
        if not self._table_ready:
            return
        records = self.app.assistant.records(self._keyword)[-TABLE_ROWS:]
        self._rows = [record.to_dict() for record in records]
        table = self.query_one("#logs-table", DataTable)
        table.clear()
        for index, record in enumerate(reversed(records)):
            table.add_row(
                record.timestamp,
                record.type,
                Text(self._clip_text(json.dumps(record.json, ensure_ascii=False))),
                key=str(index),
            )
        self._set_output(f"{len(records)} records ({self._keyword or 'all'})")

    def _set_output(self, message: str) -> None:
        self.query_one("#logs-output", Static).update(message)

    @staticmethod
    def _clip_text(value: str, limit: int = 120) -> str:
        if len(value) <= limit:
            return value
        return value[: limit - 3] + "..."
