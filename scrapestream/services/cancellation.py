"""
Cooperative cancellation of a running extraction.

Two things must happen when the user stops an extraction:

1. The remote job is told to stop, addressed by the session id
   it assigned in its first event.  This is fire-and-forget: its
   outcome never blocks or fails the local transition.
2. The local read loop is cancelled so no further chunks are
   consumed and the connection is released.

The read loop runs as an ``asyncio.Task``; cancelling it is the
local cancellation token.  Cancellation is only delivered at an
``await``, i.e. while the loop waits for the next chunk, so the
frames of a chunk already received are always applied in full.
Whether the run ends as STOPPED or COMPLETED is decided by the
reducer, where a terminal event always wins.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from scrapestream.core.constants import PATH_STOP
from scrapestream.schemas import ExtractionSession
from scrapestream.services.reducer import request_stop
from scrapestream.services.store import SessionStore

logger = logging.getLogger(__name__)


class CancellationCoordinator:
    """Own the read task and the remote session id of one client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: SessionStore,
        *,
        stop_timeout: float,
    ) -> None:
        self._client = client
        self._store = store
        self._stop_timeout = stop_timeout
        self._task: asyncio.Task | None = None
        self._session_id: str | None = None
        self._abort_requested = False
        self._pending_notifications: set[asyncio.Task] = set()
        store.subscribe(self._track_session)

    # ── State ───────────────────────────────────────────────

    @property
    def session_id(self) -> str | None:
        """Remote id of the active session, once known."""
        return self._session_id

    @property
    def abort_requested(self) -> bool:
        """``True`` once ``request_stop`` cancelled the active task."""
        return self._abort_requested

    @property
    def active(self) -> bool:
        """``True`` while a read task is bound and still running."""
        return self._task is not None and not self._task.done()

    def _track_session(self, session: ExtractionSession) -> None:
        if self._session_id is None and session.session_id is not None:
            self._session_id = session.session_id

    def bind(self, task: asyncio.Task) -> None:
        """Attach the read task of a new run and forget the old one."""
        self._task = task
        self._session_id = None
        self._abort_requested = False

    def release(self, task: asyncio.Task | None) -> None:
        """Detach *task* once its run is over."""
        if self._task is task:
            self._task = None

    # ── Stop ────────────────────────────────────────────────

    async def request_stop(self) -> None:
        """Stop the active run, if any.

        Idempotent: without an active run, or once a stop is
        pending, or after the session already finished, nothing
        happens.  Never raises for remote failures.
        """
        task = self._task
        if task is None or task.done() or self._abort_requested:
            logger.debug("Stop requested with no active extraction")
            return
        if not self._store.state.is_active:
            # Terminal event already applied; the loop is only
            # closing its connection.
            logger.debug("Stop requested after session finished")
            return

        self._abort_requested = True
        self._store.publish(request_stop(self._store.state))

        session_id = self._session_id
        if session_id is not None:
            notification = asyncio.create_task(self._notify_remote(session_id))
            self._pending_notifications.add(notification)
            notification.add_done_callback(self._pending_notifications.discard)
        else:
            logger.info("No session id received yet; aborting local stream only")

        task.cancel()
        if task is asyncio.current_task():
            return
        await asyncio.wait({task})

    async def drain(self) -> None:
        """Wait for outstanding stop notifications to settle."""
        if self._pending_notifications:
            await asyncio.wait(set(self._pending_notifications))

    async def _notify_remote(self, session_id: str) -> None:
        """POST the stop request, logging but never raising."""
        path = PATH_STOP.format(session_id=session_id)
        try:
            resp = await self._client.post(path, timeout=self._stop_timeout)
        except Exception as exc:
            logger.error(
                "Stop request for session %s failed: %s",
                session_id,
                exc,
                extra={"session_id": session_id},
            )
            return

        if resp.status_code == httpx.codes.NOT_FOUND:
            logger.info(
                "Remote session %s was already gone",
                session_id,
                extra={"session_id": session_id},
            )
        elif resp.is_error:
            logger.warning(
                "Stop request for session %s returned HTTP %s",
                session_id,
                resp.status_code,
                extra={"session_id": session_id},
            )
        else:
            logger.info(
                "Remote session %s acknowledged stop",
                session_id,
                extra={"session_id": session_id},
            )
