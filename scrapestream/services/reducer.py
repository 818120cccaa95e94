"""
Session state transitions.

Every change to an ``ExtractionSession`` goes through one of the
pure functions below.  Each returns a new frozen snapshot; the
previous one is never mutated.  Status only moves forward:

    IDLE → RUNNING → COMPLETED | FAILED | STOPPED
                   → STOP_REQUESTED → COMPLETED | FAILED | STOPPED

A terminal event always beats a pending stop: once a session is
COMPLETED, nothing but a new run or ``clear_results`` replaces it.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple

from scrapestream.core.constants import (
    ERROR_MALFORMED_EVENT,
    MESSAGE_COMPLETED,
    MESSAGE_PROCESSING,
    MESSAGE_SEARCH_FAILED,
    MESSAGE_STARTING,
    MESSAGE_STOP_REQUESTED,
    MESSAGE_STOPPED,
    PROGRESS_COMPLETE,
    PROGRESS_RUNNING_CAP,
)
from scrapestream.schemas import ExtractionSession, SessionStatus, StreamEvent

logger = logging.getLogger(__name__)


class ReduceOutcome(NamedTuple):
    """Result of folding one event into a session."""

    session: ExtractionSession
    terminal: bool


def start_session(keyword: str, location: str) -> ExtractionSession:
    """Return a fresh RUNNING session for a new extraction request."""
    return ExtractionSession(
        status=SessionStatus.RUNNING,
        message=MESSAGE_STARTING,
        keyword=keyword,
        location=location,
    )


def running_progress(total: float | None, previous: int) -> int:
    """Derive progress for a non-terminal event.

    The remote counter is already percentage-like, so it is
    rounded half-up and clamped into ``[0, 99]`` rather than
    rescaled.  Progress never moves backwards within a run.

    Args:
        total: Raw counter from the event (``None`` if absent).
        previous: Progress of the current session.

    Returns:
        The new progress value.
    """
    if total is None:
        return previous
    value = min(max(math.floor(total + 0.5), 0), PROGRESS_RUNNING_CAP)
    return max(previous, value)


def apply_event(session: ExtractionSession, event: StreamEvent) -> ReduceOutcome:
    """Fold *event* into *session*.

    Args:
        session: Current snapshot.
        event: Next decoded event, in arrival order.

    Returns:
        The next snapshot and whether the stream has finished.
    """
    if session.status.is_final or session.status == SessionStatus.IDLE:
        logger.debug(
            "Ignoring event for session in state %s",
            session.status,
        )
        return ReduceOutcome(session, session.status.is_final)

    update: dict = {"results": event.results}

    if session.session_id is None and event.session_id is not None:
        update["session_id"] = event.session_id
    elif (
        event.session_id is not None
        and event.session_id != session.session_id
    ):
        logger.warning(
            "Ignoring session id %s; session already bound to %s",
            event.session_id,
            session.session_id,
        )

    if event.is_complete:
        update.update(
            status=SessionStatus.COMPLETED,
            progress_percent=PROGRESS_COMPLETE,
            message=event.message or MESSAGE_COMPLETED,
        )
        if event.filename is not None:
            update["filename"] = event.filename
        return ReduceOutcome(session.model_copy(update=update), True)

    update["progress_percent"] = running_progress(
        event.total,
        session.progress_percent,
    )
    # A pending stop stays pending until the stream is torn down.
    if session.status == SessionStatus.STOP_REQUESTED:
        update["message"] = event.message or session.message
    else:
        update["status"] = SessionStatus.RUNNING
        update["message"] = event.message or MESSAGE_PROCESSING
    return ReduceOutcome(session.model_copy(update=update), False)


def request_stop(session: ExtractionSession) -> ExtractionSession:
    """Mark a running session as waiting for its stream to stop."""
    if session.status != SessionStatus.RUNNING:
        return session
    return session.model_copy(
        update={
            "status": SessionStatus.STOP_REQUESTED,
            "message": MESSAGE_STOP_REQUESTED,
        }
    )


def mark_stopped(session: ExtractionSession) -> ExtractionSession:
    """Finalise a locally aborted session.

    A session that already reached a final state (notably
    COMPLETED) is returned unchanged.
    """
    if not session.status.is_active:
        return session
    return session.model_copy(
        update={
            "status": SessionStatus.STOPPED,
            "message": MESSAGE_STOPPED,
        }
    )


def mark_failed(session: ExtractionSession, error: str) -> ExtractionSession:
    """Finalise a session after a transport failure.

    Partial results are discarded, as they cannot be trusted to
    be the server's final snapshot.
    """
    if not session.status.is_active:
        return session
    return session.model_copy(
        update={
            "status": SessionStatus.FAILED,
            "message": MESSAGE_SEARCH_FAILED,
            "error": error,
            "results": (),
        }
    )


def record_malformed(session: ExtractionSession) -> ExtractionSession:
    """Note a frame that failed to decode; status is unaffected."""
    return session.model_copy(
        update={
            "error": ERROR_MALFORMED_EVENT,
            "malformed_frames": session.malformed_frames + 1,
        }
    )


def record_error(session: ExtractionSession, error: str) -> ExtractionSession:
    """Surface *error* to the user without touching status or results."""
    return session.model_copy(update={"error": error})


def clear_results(session: ExtractionSession) -> ExtractionSession:
    """Discard the results of a run.

    A finished run is reset to IDLE; only the search parameters
    survive.  An active session is merely emptied of its current
    snapshot, which the next event repopulates.
    """
    if session.status.is_active:
        return session.model_copy(update={"results": (), "filename": None})
    return ExtractionSession(keyword=session.keyword, location=session.location)
