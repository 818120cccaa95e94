"""
Frame-to-event decoding with per-frame error isolation.

A frame that cannot be decoded raises ``MalformedEvent`` carrying
the offending text.  ``EventDecoder.decode_all`` turns those
failures into values so a single bad frame never aborts the
stream or loses neighbouring events.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator

from pydantic import ValidationError

from scrapestream.core.metrics import record_frame
from scrapestream.schemas.events import StreamEvent

logger = logging.getLogger(__name__)

# Longest frame excerpt included in error messages and logs.
_MAX_EXCERPT_CHARS: int = 200


class MalformedEvent(Exception):
    """Raised when a frame is not a decodable event object."""

    def __init__(self, frame: str, reason: str) -> None:
        self.frame = frame
        self.reason = reason
        super().__init__(f"Malformed event ({reason}): {_excerpt(frame)!r}")


def _excerpt(frame: str) -> str:
    if len(frame) <= _MAX_EXCERPT_CHARS:
        return frame
    return frame[:_MAX_EXCERPT_CHARS] + "…"


def decode_event(frame: str) -> StreamEvent:
    """Decode one frame into a ``StreamEvent``.

    Args:
        frame: One complete line of the stream.

    Returns:
        The decoded event.

    Raises:
        MalformedEvent: If the frame is not JSON, is not a JSON
            object, or fails model validation.
    """
    try:
        payload = json.loads(frame)
    except (ValueError, RecursionError) as exc:
        # ValueError also covers integers past the digit limit.
        raise MalformedEvent(frame, f"invalid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise MalformedEvent(
            frame,
            f"expected an object, got {type(payload).__name__}",
        )

    try:
        return StreamEvent.model_validate(payload)
    except (ValidationError, ArithmeticError) as exc:
        raise MalformedEvent(frame, str(exc)) from exc


class EventDecoder:
    """Stateless decoder that reports failures instead of raising."""

    def decode(self, frame: str) -> tuple[StreamEvent | None, MalformedEvent | None]:
        """Decode *frame*, returning ``(event, None)`` or ``(None, error)``."""
        try:
            event = decode_event(frame)
        except MalformedEvent as exc:
            logger.warning("%s", exc)
            record_frame(malformed=True)
            return None, exc
        record_frame(malformed=False)
        return event, None

    def decode_all(
        self,
        frames: Iterable[str],
    ) -> Iterator[tuple[StreamEvent | None, MalformedEvent | None]]:
        """Decode *frames* in order, isolating each failure."""
        for frame in frames:
            yield self.decode(frame)
