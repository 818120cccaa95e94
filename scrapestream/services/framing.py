"""
Newline-delimited frame segmentation.

Network reads end at arbitrary byte boundaries, so a JSON record
may be split across two (or more) chunks.  ``FrameSplitter``
keeps the unterminated tail of each chunk and prepends it to the
next one, emitting a frame only once its ``\\n`` has been seen.
The tail left at end-of-stream is flushed as a final frame.
"""

from __future__ import annotations

import codecs

_DELIMITER = "\n"


class FrameSplitter:
    """Incremental splitter for NDJSON-style streams.

    Accepts ``str`` chunks, or ``bytes`` chunks decoded as UTF-8
    with an incremental decoder (so a multi-byte character cut in
    half by the network is reassembled).  Blank lines are skipped.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    @property
    def pending(self) -> str:
        """Buffered text that has not been terminated yet."""
        return self._buffer

    def feed(self, chunk: str | bytes) -> list[str]:
        """Add *chunk* and return every frame it completes.

        Args:
            chunk: Next piece of the stream, in arrival order.

        Returns:
            Complete frames (without delimiters), possibly empty.
        """
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        if not chunk:
            return []

        parts = (self._buffer + chunk).split(_DELIMITER)
        self._buffer = parts.pop()
        return [frame for frame in (_clean(p) for p in parts) if frame]

    def flush(self) -> list[str]:
        """Return the trailing fragment at end-of-stream, if any.

        The splitter is empty afterwards and can be reused.
        """
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        self._decoder.reset()
        return [frame for frame in (_clean(p) for p in tail.split(_DELIMITER)) if frame]


def _clean(frame: str) -> str:
    """Drop a trailing ``\\r`` and surrounding whitespace."""
    return frame.rstrip("\r").strip()
