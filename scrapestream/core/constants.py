"""
Centralised constants used across the client.

Keeping magic strings in one place makes it easy to rename keys,
avoids silent typos, and keeps ``grep`` useful when debugging.
"""

from __future__ import annotations

# ── Remote endpoints ────────────────────────────────────────────────────────
# Paths are relative to ``Settings.SCRAPER_BASE_URL``.

PATH_SCRAPE: str = "/scrape"
"""Start an extraction; the response is an NDJSON event stream."""

PATH_STOP: str = "/stop-scraping/{session_id}"
"""Ask the remote job addressed by ``session_id`` to stop."""

PATH_CREATE_EXCEL: str = "/create-excel"
"""Materialise a spreadsheet from a result snapshot."""

PATH_DOWNLOAD: str = "/download/{filename}"
"""Fetch a previously materialised artifact."""


# ── Session messages ────────────────────────────────────────────────────────
# Locally synthesised when the remote side does not supply one.

MESSAGE_STARTING: str = "Starting search..."
MESSAGE_PROCESSING: str = "Processing..."
MESSAGE_COMPLETED: str = "Completed"
MESSAGE_STOPPED: str = "Extraction stopped"
MESSAGE_STOP_REQUESTED: str = "Stopping extraction..."
MESSAGE_SEARCH_FAILED: str = "Error occurred during search"

ERROR_MALFORMED_EVENT: str = "Error processing data from server"
ERROR_STREAM_CLOSED: str = "Connection closed before the extraction completed"
ERROR_EXPORT_FAILED: str = "Error downloading file"


# ── Progress ────────────────────────────────────────────────────────────────

PROGRESS_COMPLETE: int = 100
PROGRESS_RUNNING_CAP: int = 99
"""Highest progress a non-terminal event may report."""


# ── CSV export ──────────────────────────────────────────────────────────────

CSV_COLUMNS: tuple[str, ...] = (
    "title",
    "address",
    "website",
    "rating",
    "reviews",
    "phone",
    "country_code",
    "category",
)
"""Column order of the local CSV export (``ResultRecord`` attributes)."""

CSV_HEADERS: tuple[str, ...] = (
    "Title",
    "Address",
    "Website",
    "Rating",
    "Reviews",
    "Phone",
    "Country Code",
    "Category",
)

CSV_NUMERIC_COLUMNS: frozenset[str] = frozenset({"rating", "reviews"})
"""Columns written unquoted when present."""

MISSING_PLACEHOLDER: str = "-"
"""Rendered in place of an absent result field."""
