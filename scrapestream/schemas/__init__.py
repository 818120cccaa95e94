"""
Pydantic models for stream events, results and session state.

All data contracts live here so that services can import
lightweight schema objects without circular dependencies.

For convenience every public model is re-exported from this
``__init__`` so that ``from scrapestream.schemas import ResultRecord``
keeps working.
"""

from scrapestream.schemas.enums import SessionStatus
from scrapestream.schemas.events import StreamEvent
from scrapestream.schemas.results import ResultRecord
from scrapestream.schemas.session import ExtractionSession

__all__ = [
    "ExtractionSession",
    "ResultRecord",
    "SessionStatus",
    "StreamEvent",
]
