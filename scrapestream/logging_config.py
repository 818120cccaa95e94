"""
Centralized logging configuration.

Provides structured JSON logging for production and human-readable
output for local development. Call ``setup_logging`` early in the
application lifecycle (e.g. in ``scrapestream.cli``).
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

# Remote id of the session whose stream the current task consumes.
_session_id: ContextVar[str] = ContextVar("session_id", default="-")


def bind_session_id(session_id: str) -> None:
    """Tag log records of the current task with *session_id*.

    Each asyncio task runs in a copy of its creator's context, so
    the binding stays local to the read loop that made it.
    """
    _session_id.set(session_id)


def setup_logging(
    level: str = "INFO",
    *,
    json_format: bool = False,
) -> None:
    """
    Configure the root logger for the client.

    Both formats include a ``session_id`` field, taken from
    ``extra={"session_id": ...}`` or else from ``bind_session_id``.

    Args:
        level: Logging level name (e.g. ``"INFO"``, ``"DEBUG"``).
        json_format: If ``True``, emit structured JSON lines.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:
        fmt = (
            '{"time":"%(asctime)s",'
            '"level":"%(levelname)s",'
            '"logger":"%(name)s",'
            '"session_id":"%(session_id)s",'
            '"message":"%(message)s"}'
        )
    else:
        fmt = (
            "%(asctime)s | %(levelname)-8s | %(name)s | "
            "%(session_id)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))

    # Inject a default ``session_id`` so the formatter never
    # fails on a missing key.
    handler.addFilter(_SessionIDFilter())

    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid duplicate handlers on repeated calls
    root.handlers.clear()
    root.addHandler(handler)

    _silence_noisy_loggers(log_level)


class _SessionIDFilter(logging.Filter):
    """Inject ``session_id`` into every log record.

    Uses the id bound to the current context, or ``"-"`` before
    the remote service has assigned one.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add ``session_id`` attribute to *record*.

        Args:
            record: The log record to augment.

        Returns:
            Always ``True`` (never suppress records).
        """
        if not hasattr(record, "session_id"):
            record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def _silence_noisy_loggers(app_level: int) -> None:
    """
    Reduce verbosity of third-party libraries.

    Args:
        app_level: The client's configured log level.
    """
    noisy = [
        "httpcore",
        "httpx",
    ]
    for name in noisy:
        logging.getLogger(name).setLevel(
            max(app_level, logging.WARNING),
        )
