"""
Result export: server-built spreadsheet and local CSV.

Both paths work on the current in-memory result snapshot and
never start a new extraction.  They are independent: a failure
in one never affects the other, nor the session state.

Spreadsheet export is two round-trips:

1. ``POST /create-excel`` with the results; the server replies
   with the ``filename`` of the materialised workbook.
2. ``GET /download/{filename}`` fetches its bytes, which are
   handed to an ``ArtifactSink``.

Each request is bounded by ``EXPORT_TIMEOUT``; the download is
retried on connection-level errors, as it is idempotent.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
)

from scrapestream.core.config import Settings, get_settings
from scrapestream.core.constants import (
    CSV_COLUMNS,
    CSV_HEADERS,
    CSV_NUMERIC_COLUMNS,
    PATH_CREATE_EXCEL,
    PATH_DOWNLOAD,
)
from scrapestream.core.metrics import record_export
from scrapestream.schemas import ResultRecord
from scrapestream.schemas.results import format_number

logger = logging.getLogger(__name__)

# Characters that cannot appear in a file name on common platforms.
_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')

# Connection-level failures worth retrying on an idempotent GET.
_RETRYABLE_FETCH_ERRORS: tuple[type[Exception], ...] = (
    httpx.ConnectError,
    httpx.ReadError,
    httpx.RemoteProtocolError,
)


class ExportError(Exception):
    """Base class for export failures."""


class ExportBuildFailed(ExportError):
    """Raised when the server refuses to materialise a spreadsheet."""


class ExportFetchFailed(ExportError):
    """Raised when a materialised artifact cannot be retrieved."""


class ExportTimeout(ExportError):
    """Raised when an export request exceeds ``EXPORT_TIMEOUT``."""


# ── Local artifact storage ──────────────────────────────────


class ArtifactSink(Protocol):
    """Where exported artifacts end up."""

    def save(self, name: str, content: bytes) -> Path:
        """Persist *content* under *name* and return its location."""
        ...


class DirectorySink:
    """Save artifacts as files inside a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def save(self, name: str, content: bytes) -> Path:
        """Write *content* to ``directory/name``, overwriting it.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / name
        path.write_bytes(content)
        logger.info("Saved %d bytes to %s", len(content), path)
        return path


# ── CSV rendering ───────────────────────────────────────────


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def _csv_cell(record: ResultRecord, column: str) -> str:
    value = getattr(record, column)
    if column in CSV_NUMERIC_COLUMNS:
        return "" if value is None else format_number(value)
    return _quote(value or "")


def render_csv(results: Sequence[ResultRecord]) -> str:
    """Render *results* as CSV text.

    Text columns are always quoted (empty as ``""``); rating and
    reviews are bare numbers, or empty when absent.

    Args:
        results: Records in display order.

    Returns:
        Header plus one ``\\n``-separated line per record.
    """
    lines = [",".join(CSV_HEADERS)]
    for record in results:
        lines.append(",".join(_csv_cell(record, column) for column in CSV_COLUMNS))
    return "\n".join(lines)


def csv_filename(prefix: str, keyword: str, day: dt.date) -> str:
    """Build ``{prefix}_{keyword}_{YYYY-MM-DD}.csv``.

    Path separators and other unsafe characters in *keyword*
    are replaced with ``_``.
    """
    safe_keyword = _UNSAFE_FILENAME_CHARS.sub("_", keyword.strip())
    return f"{prefix}_{safe_keyword}_{day.isoformat()}.csv"


# ── Exporter ────────────────────────────────────────────────


class ResultExporter:
    """Export result snapshots remotely (XLSX) or locally (CSV)."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        sink: ArtifactSink,
        settings: Settings | None = None,
    ) -> None:
        self._client = client
        self._sink = sink
        self._settings = settings or get_settings()

    # ── Local CSV ───────────────────────────────────────────

    def export_csv(
        self,
        results: Sequence[ResultRecord],
        keyword: str,
        *,
        today: dt.date | None = None,
    ) -> Path | None:
        """Write *results* to a dated CSV file.

        Args:
            results: Current result snapshot.
            keyword: Search keyword, used in the file name.
            today: Date for the file name (defaults to the UTC date).

        Returns:
            Path of the written file, or ``None`` when there were
            no results and nothing was written.
        """
        if not results:
            logger.info("No results to export; skipping CSV")
            return None

        day = today or dt.datetime.now(dt.timezone.utc).date()
        name = csv_filename(self._settings.CSV_FILENAME_PREFIX, keyword, day)
        try:
            path = self._sink.save(name, render_csv(results).encode("utf-8"))
        except OSError:
            record_export("csv", success=False)
            raise
        record_export("csv", success=True)
        logger.info("Exported %d result(s) to %s", len(results), path)
        return path

    # ── Remote spreadsheet ──────────────────────────────────

    async def export_spreadsheet(self, results: Sequence[ResultRecord]) -> Path:
        """Have the server build a workbook of *results* and save it.

        Args:
            results: Current result snapshot.

        Returns:
            Path where the sink stored the workbook.

        Raises:
            ExportBuildFailed: If materialisation is rejected.
            ExportFetchFailed: If the workbook cannot be downloaded.
            ExportTimeout: If either request times out.
        """
        try:
            filename = await self._build(results)
            content = await self._fetch(filename)
        except ExportError:
            record_export("xlsx", success=False)
            raise

        path = self._sink.save(self._settings.SPREADSHEET_FILENAME, content)
        record_export("xlsx", success=True)
        logger.info(
            "Exported %d result(s) to spreadsheet %s (server file %s)",
            len(results),
            path,
            filename,
        )
        return path

    async def _build(self, results: Sequence[ResultRecord]) -> str:
        payload = {"results": [record.to_payload() for record in results]}
        try:
            resp = await self._client.post(
                PATH_CREATE_EXCEL,
                json=payload,
                timeout=self._settings.EXPORT_TIMEOUT,
            )
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ExportTimeout(
                f"Spreadsheet build timed out after {self._settings.EXPORT_TIMEOUT}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ExportBuildFailed(
                f"Spreadsheet build rejected (HTTP {exc.response.status_code})"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExportBuildFailed(f"Spreadsheet build failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise ExportBuildFailed("Spreadsheet build returned invalid JSON") from exc

        filename = data.get("filename") if isinstance(data, dict) else None
        if not isinstance(filename, str) or not filename:
            raise ExportBuildFailed("Spreadsheet build returned no filename")
        return filename

    async def _fetch(self, filename: str) -> bytes:
        path = PATH_DOWNLOAD.format(filename=quote(filename, safe=""))
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(_RETRYABLE_FETCH_ERRORS),
                stop=stop_after_attempt(self._settings.EXPORT_FETCH_RETRIES + 1),
                wait=wait_none(),
                reraise=True,
            ):
                with attempt:
                    resp = await self._client.get(
                        path,
                        timeout=self._settings.EXPORT_TIMEOUT,
                    )
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ExportTimeout(
                f"Download of {filename} timed out after {self._settings.EXPORT_TIMEOUT}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ExportFetchFailed(
                f"Download of {filename} failed (HTTP {exc.response.status_code})"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExportFetchFailed(f"Download of {filename} failed: {exc}") from exc
        return resp.content
