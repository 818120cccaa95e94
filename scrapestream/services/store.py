"""Observable holder for the current ``ExtractionSession``."""

from __future__ import annotations

import logging
from collections.abc import Callable

from scrapestream.schemas import ExtractionSession

logger = logging.getLogger(__name__)

SessionObserver = Callable[[ExtractionSession], None]


class SessionStore:
    """Keep the latest session snapshot and notify subscribers.

    Observers are called synchronously, in subscription order,
    each time a new snapshot is published.  An observer that
    raises is logged and skipped; it cannot break the read loop.
    """

    def __init__(self, initial: ExtractionSession | None = None) -> None:
        self._state = initial or ExtractionSession()
        self._observers: list[SessionObserver] = []

    @property
    def state(self) -> ExtractionSession:
        """The current snapshot."""
        return self._state

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """Register *observer* and return a function that removes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def publish(self, session: ExtractionSession) -> ExtractionSession:
        """Replace the current snapshot and notify observers.

        Publishing the identical object again is a no-op.
        """
        if session is self._state:
            return session
        self._state = session
        for observer in list(self._observers):
            try:
                observer(session)
            except Exception:
                logger.exception("Session observer %r failed", observer)
        return session
