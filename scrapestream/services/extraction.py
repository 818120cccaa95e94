"""
Extraction client — consumes the scrape stream into session state.

Ties the pipeline together::

    POST /scrape  →  chunks  →  FrameSplitter  →  EventDecoder
                  →  reducer  →  SessionStore  →  observers

and exposes the operations a UI or CLI invokes:
``start_extraction``, ``stop_extraction``, ``clear_results``,
``export_local_csv`` and ``export_spreadsheet``.

Only the read loop ever suspends.  Frames of one chunk are
decoded and applied synchronously, so a stop request cannot
land in the middle of an event.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from pathlib import Path
from types import TracebackType

import httpx

from scrapestream.core.config import Settings, get_settings
from scrapestream.core.constants import (
    ERROR_EXPORT_FAILED,
    ERROR_STREAM_CLOSED,
    PATH_SCRAPE,
)
from scrapestream.core.metrics import record_session_finished
from scrapestream.logging_config import bind_session_id
from scrapestream.schemas import ExtractionSession, SessionStatus
from scrapestream.services.cancellation import CancellationCoordinator
from scrapestream.services.decoder import EventDecoder, MalformedEvent
from scrapestream.services.exporter import (
    ArtifactSink,
    DirectorySink,
    ExportError,
    ResultExporter,
)
from scrapestream.services.framing import FrameSplitter
from scrapestream.services.reducer import (
    apply_event,
    clear_results,
    mark_failed,
    mark_stopped,
    record_error,
    record_malformed,
    start_session,
)
from scrapestream.services.store import SessionObserver, SessionStore

logger = logging.getLogger(__name__)


class TransportAborted(Exception):
    """Raised when the read loop is cancelled locally (not a fault)."""


class TransportFailed(Exception):
    """Raised on any network or protocol failure other than an abort."""


class ExtractionAlreadyRunning(RuntimeError):
    """Raised when an extraction is started while another is active."""


class ExtractionClient:
    """Stream an extraction from the remote service into local state.

    Usage::

        async with ExtractionClient() as client:
            client.subscribe(print)
            session = await client.start_extraction("coffee", "Berlin")
            client.export_local_csv()

    Args:
        settings: Client settings; defaults to ``get_settings()``.
        http_client: Pre-configured ``httpx.AsyncClient`` (its
            ``base_url`` must point at the scraping service).  When
            omitted one is created and closed by ``aclose``.
        sink: Destination for exported files; defaults to a
            ``DirectorySink`` on ``EXPORT_DIR``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        sink: ArtifactSink | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self._settings.SCRAPER_BASE_URL,
            timeout=self._settings.EXPORT_TIMEOUT,
        )
        self._store = SessionStore()
        self._decoder = EventDecoder()
        self._cancellation = CancellationCoordinator(
            self._http,
            self._store,
            stop_timeout=self._settings.STOP_TIMEOUT,
        )
        self._exporter = ResultExporter(
            self._http,
            sink or DirectorySink(self._settings.EXPORT_DIR),
            self._settings,
        )
        self.decode_errors: list[MalformedEvent] = []

    # ── Observable state ────────────────────────────────────

    @property
    def state(self) -> ExtractionSession:
        """The current session snapshot."""
        return self._store.state

    def subscribe(self, observer: SessionObserver):
        """Call *observer* with every new snapshot; returns an unsubscriber."""
        return self._store.subscribe(observer)

    # ── Lifecycle ───────────────────────────────────────────

    async def __aenter__(self) -> ExtractionClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop any active run and release the HTTP client."""
        await self._cancellation.request_stop()
        await self._cancellation.drain()
        if self._owns_http:
            await self._http.aclose()

    # ── Extraction ──────────────────────────────────────────

    async def start_extraction(
        self,
        keyword: str,
        location: str = "",
    ) -> ExtractionSession:
        """Run an extraction until it completes, fails or is stopped.

        Any previous session is discarded first.  Concurrent callers
        may invoke ``stop_extraction`` while this coroutine waits.

        Args:
            keyword: What to search for.
            location: Where to search.

        Returns:
            The final session snapshot.

        Raises:
            ExtractionAlreadyRunning: If a run is already active.
        """
        if self._cancellation.active:
            raise ExtractionAlreadyRunning("An extraction is already running")

        self.decode_errors = []
        self._store.publish(start_session(keyword, location))
        logger.info("Starting extraction for %r in %r", keyword, location)

        task = asyncio.create_task(self._consume(keyword, location))
        self._cancellation.bind(task)
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if not task.cancelled() or (current is not None and current.cancelling()):
                raise
            # Stopped before the read loop got to run.
            self._store.publish(mark_stopped(self.state))
            record_session_finished(self.state.status)
        finally:
            self._cancellation.release(task)
        return self.state

    async def stop_extraction(self) -> None:
        """Ask the remote job to stop and abort the local read loop."""
        await self._cancellation.request_stop()

    def clear_results(self) -> ExtractionSession:
        """Discard the current results."""
        return self._store.publish(clear_results(self.state))

    async def _consume(self, keyword: str, location: str) -> None:
        try:
            await self._read_stream(keyword, location)
        except TransportAborted:
            self._store.publish(mark_stopped(self.state))
        except TransportFailed as exc:
            logger.error("Extraction failed: %s", exc)
            self._store.publish(mark_failed(self.state, str(exc)))
        except asyncio.CancelledError:
            # Cancelled from outside (e.g. the awaiting caller).
            self._store.publish(mark_stopped(self.state))
            record_session_finished(self.state.status)
            raise
        except Exception as exc:
            logger.exception("Extraction aborted by an unexpected error")
            reason = str(exc) or type(exc).__name__
            self._store.publish(mark_failed(self.state, reason))
            record_session_finished(self.state.status)
            raise

        record_session_finished(self.state.status)
        logger.info(
            "Extraction finished: %s (%d result(s))",
            self.state.status,
            len(self.state.results),
        )

    async def _read_stream(self, keyword: str, location: str) -> None:
        """Consume ``POST /scrape`` until a terminal event.

        Raises:
            TransportAborted: If ``stop_extraction`` cancelled the read.
            TransportFailed: On HTTP errors, non-2xx responses, or a
                stream that ends without a terminal event.
        """
        splitter = FrameSplitter()
        try:
            async with self._http.stream(
                "POST",
                PATH_SCRAPE,
                json={"keyword": keyword, "location": location},
                timeout=None,
            ) as response:
                if response.is_error:
                    raise TransportFailed(
                        f"Scrape request failed with HTTP {response.status_code}"
                    )
                async for chunk in response.aiter_bytes():
                    if self._apply_frames(splitter.feed(chunk)):
                        return
                if self._apply_frames(splitter.flush()):
                    return
        except asyncio.CancelledError as exc:
            if not self._cancellation.abort_requested:
                raise
            current = asyncio.current_task()
            if current is not None:
                current.uncancel()
            raise TransportAborted("Extraction stopped by user") from exc
        except httpx.HTTPError as exc:
            raise TransportFailed(str(exc) or type(exc).__name__) from exc

        if self.state.status == SessionStatus.STOP_REQUESTED:
            raise TransportAborted("Stream closed after stop request")
        raise TransportFailed(ERROR_STREAM_CLOSED)

    def _apply_frames(self, frames: list[str]) -> bool:
        """Decode and apply *frames* in order; ``True`` on a terminal event."""
        for event, error in self._decoder.decode_all(frames):
            if error is not None:
                self.decode_errors.append(error)
                self._store.publish(record_malformed(self.state))
                continue
            outcome = apply_event(self.state, event)
            self._store.publish(outcome.session)
            if self.state.session_id is not None:
                bind_session_id(self.state.session_id)
            if outcome.terminal:
                return True
        return False

    # ── Exports ─────────────────────────────────────────────

    def export_local_csv(self, *, today: dt.date | None = None) -> Path | None:
        """Write the current results to a dated CSV file.

        Returns:
            Path of the file, or ``None`` when there are no results.
        """
        try:
            return self._exporter.export_csv(
                self.state.results,
                self.state.keyword,
                today=today,
            )
        except OSError as exc:
            logger.error("CSV export failed: %s", exc)
            self._store.publish(record_error(self.state, f"{ERROR_EXPORT_FAILED}: {exc}"))
            raise

    async def export_spreadsheet(self) -> Path:
        """Have the server build a workbook of the current results.

        Raises:
            ExportBuildFailed: If the server rejects the build.
            ExportFetchFailed: If the workbook cannot be fetched.
            ExportTimeout: If the server does not answer in time.
        """
        try:
            return await self._exporter.export_spreadsheet(self.state.results)
        except (ExportError, OSError) as exc:
            logger.error("Spreadsheet export failed: %s", exc)
            self._store.publish(record_error(self.state, f"{ERROR_EXPORT_FAILED}: {exc}"))
            raise
