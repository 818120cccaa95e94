"""Extraction session state model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from scrapestream.schemas.enums import SessionStatus
from scrapestream.schemas.results import ResultRecord


class ExtractionSession(BaseModel):
    """Snapshot of one extraction run.

    Instances are immutable; ``scrapestream.services.reducer``
    derives every new snapshot from the previous one.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str | None = Field(
        default=None,
        description="Remote job identifier, set by the first event",
    )
    status: SessionStatus = Field(
        default=SessionStatus.IDLE,
        description="Lifecycle state",
    )
    progress_percent: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Derived progress, 100 only once completed",
    )
    message: str = Field(
        default="",
        description="Latest human-readable status",
    )
    results: tuple[ResultRecord, ...] = Field(
        default=(),
        description="Latest result snapshot in server order",
    )
    filename: str | None = Field(
        default=None,
        description="Server-side artifact produced on completion",
    )
    keyword: str = Field(default="", description="Search keyword")
    location: str = Field(default="", description="Search location")
    error: str | None = Field(
        default=None,
        description="Last user-visible error (never changes status)",
    )
    malformed_frames: int = Field(
        default=0,
        ge=0,
        description="Frames that failed to decode in this run",
    )

    @property
    def is_active(self) -> bool:
        """``True`` while the stream is being consumed."""
        return self.status.is_active

    @property
    def can_export(self) -> bool:
        """Exports are offered once a run has produced results.

        Available when an artifact exists or results remain after
        the run.
        """
        return self.filename is not None or (
            not self.is_active and len(self.results) > 0
        )
