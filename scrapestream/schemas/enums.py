"""Session status enumeration used across the client."""

from __future__ import annotations

from enum import StrEnum


class SessionStatus(StrEnum):
    """Possible states of an extraction session."""

    IDLE = "idle"
    RUNNING = "running"
    STOP_REQUESTED = "stop_requested"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_final(self) -> bool:
        """``True`` once no further transition is allowed."""
        return self in _FINAL_STATES

    @property
    def is_active(self) -> bool:
        """``True`` while the read loop may still apply events."""
        return self in (SessionStatus.RUNNING, SessionStatus.STOP_REQUESTED)


_FINAL_STATES = frozenset(
    {
        SessionStatus.COMPLETED,
        SessionStatus.FAILED,
        SessionStatus.STOPPED,
    }
)
