"""Decoded stream event model."""

from __future__ import annotations

import logging
import math
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from scrapestream.schemas.results import ResultRecord

logger = logging.getLogger(__name__)


class StreamEvent(BaseModel):
    """One progress update decoded from a stream frame.

    Every field is optional on the wire.  ``results`` is always
    the server's full current snapshot, never a delta.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )

    session_id: str | None = Field(
        default=None,
        alias="sessionId",
        description="Remote job identifier",
    )
    results: tuple[ResultRecord, ...] = Field(
        default=(),
        description="Authoritative result snapshot",
    )
    is_complete: bool = Field(
        default=False,
        alias="isComplete",
        description="Terminal event marker",
    )
    total: float | None = Field(
        default=None,
        description="Percentage-like progress counter",
    )
    message: str | None = Field(
        default=None,
        description="Human-readable status",
    )
    filename: str | None = Field(
        default=None,
        description="Server-side artifact (terminal events only)",
    )

    @field_validator("session_id", mode="before")
    @classmethod
    def _coerce_session_id(cls, v: Any) -> str | None:
        """Keep non-empty strings; anything else means no id."""
        if isinstance(v, str) and v:
            return v
        return None

    @field_validator("results", mode="before")
    @classmethod
    def _coerce_results(cls, v: Any) -> tuple[ResultRecord, ...]:
        """Treat a missing or non-list payload as empty.

        Individual entries that are not objects or lack a textual
        ``title`` are dropped; the rest of the snapshot survives.
        """
        if not isinstance(v, list):
            return ()
        records: list[ResultRecord] = []
        for index, item in enumerate(v):
            if not isinstance(item, dict) or not isinstance(item.get("title"), str):
                logger.warning("Dropping result #%d without a title", index)
                continue
            try:
                records.append(ResultRecord.model_validate(item))
            except ValidationError as exc:
                logger.warning("Dropping invalid result #%d: %s", index, exc)
        return tuple(records)

    @field_validator("is_complete", mode="before")
    @classmethod
    def _coerce_complete(cls, v: Any) -> bool:
        """Only a literal ``true`` marks the stream as finished."""
        return v is True

    @field_validator("total", mode="before")
    @classmethod
    def _coerce_total(cls, v: Any) -> float | None:
        """Non-numeric counters are treated as absent."""
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        try:
            total = float(v)
        except OverflowError:
            return None
        if not math.isfinite(total):
            return None
        return total

    @field_validator("message", "filename", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str | None:
        """Ignore non-string and empty values."""
        if isinstance(v, str) and v:
            return v
        return None
