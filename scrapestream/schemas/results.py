"""Result record model streamed by the scraping service."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scrapestream.core.constants import MISSING_PLACEHOLDER


def _to_number(value: Any, cast: type) -> Any:
    """Coerce *value* with *cast*, returning ``None`` when impossible.

    Accepts thousands separators in strings (``"1,234"``) and
    rejects booleans and non-finite floats.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return cast(number)


class ResultRecord(BaseModel):
    """One extracted place.

    Only ``title`` is required; every other field may be absent
    and renders as a placeholder, never as an error.  Unknown
    keys sent by the server are preserved so that the record
    can be handed back unchanged to ``/create-excel``.
    """

    model_config = ConfigDict(
        extra="allow",
        frozen=True,
        populate_by_name=True,
    )

    title: str = Field(..., description="Place name")
    address: str | None = Field(default=None, description="Postal address")
    website: str | None = Field(default=None, description="Website URL")
    rating: float | None = Field(default=None, description="Average rating")
    reviews: int | None = Field(default=None, description="Review count")
    phone: str | None = Field(default=None, description="Phone number")
    country_code: str | None = Field(
        default=None,
        alias="countryCode",
        description="Country calling code",
    )
    category: str | None = Field(default=None, description="Business category")

    @field_validator(
        "address",
        "website",
        "phone",
        "country_code",
        "category",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, v: Any) -> str | None:
        """Normalise empty strings to ``None`` and scalars to text."""
        if v is None:
            return None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str):
            return v if v.strip() else None
        return None

    @field_validator("rating", mode="before")
    @classmethod
    def _parse_rating(cls, v: Any) -> float | None:
        """Unparseable ratings become absent."""
        return _to_number(v, float)

    @field_validator("reviews", mode="before")
    @classmethod
    def _parse_reviews(cls, v: Any) -> int | None:
        """Unparseable review counts become absent."""
        return _to_number(v, int)

    def display_value(self, name: str) -> str:
        """Render field *name* for tabular display.

        Args:
            name: Attribute name (e.g. ``"country_code"``).

        Returns:
            The value as text, or ``"-"`` when absent.
        """
        value = getattr(self, name, None)
        if value is None or value == "":
            return MISSING_PLACEHOLDER
        if isinstance(value, float):
            return format_number(value)
        return str(value)

    def to_payload(self) -> dict[str, Any]:
        """Return the wire representation (camelCase, no ``None``)."""
        return self.model_dump(by_alias=True, exclude_none=True)


def format_number(value: float | int) -> str:
    """Render a number without a spurious ``.0`` suffix."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
