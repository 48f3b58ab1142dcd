"""Shared constants for the Textual UI."""

from __future__ import annotations

BRAND_GREEN = "#3CD070"
REFRESH_SECONDS = 1.0
TABLE_ROWS = 200
