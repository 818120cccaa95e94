"""
Prometheus metrics for stream consumption and exports.

All counters live on a dedicated ``CollectorRegistry`` so that
embedding applications can expose them next to their own
default-registry metrics without name clashes.

Usage:
    Call the ``record_*`` helpers from the services.  They never
    raise: a metrics failure must not break an extraction.
    ``generate_metrics()`` renders the exposition format.
"""

from __future__ import annotations

import logging

from prometheus_client import (
    CollectorRegistry,
    Counter,
    generate_latest,
)

logger = logging.getLogger(__name__)

#: Dedicated registry for client metrics.
REGISTRY = CollectorRegistry()

FRAMES_DECODED = Counter(
    "scrapestream_frames_decoded",
    "Stream frames decoded into events.",
    registry=REGISTRY,
)

FRAMES_MALFORMED = Counter(
    "scrapestream_frames_malformed",
    "Stream frames that failed to decode.",
    registry=REGISTRY,
)

SESSIONS_FINISHED = Counter(
    "scrapestream_sessions_finished",
    "Extraction sessions by final status.",
    ["status"],
    registry=REGISTRY,
)

EXPORTS = Counter(
    "scrapestream_exports",
    "Export attempts by kind and outcome.",
    ["kind", "outcome"],
    registry=REGISTRY,
)


def record_frame(*, malformed: bool) -> None:
    """Count one frame as decoded or malformed."""
    try:
        (FRAMES_MALFORMED if malformed else FRAMES_DECODED).inc()
    except Exception:
        logger.warning("Failed to record frame metric", exc_info=True)


def record_session_finished(status: str) -> None:
    """Count a session reaching *status*.

    Args:
        status: Final ``SessionStatus`` value.
    """
    try:
        SESSIONS_FINISHED.labels(status=str(status)).inc()
    except Exception:
        logger.warning(
            "Failed to record session_finished metric",
            exc_info=True,
        )


def record_export(kind: str, *, success: bool) -> None:
    """Count an export attempt.

    Args:
        kind: ``"csv"`` or ``"xlsx"``.
        success: ``True`` when an artifact was saved.
    """
    try:
        EXPORTS.labels(
            kind=kind,
            outcome="success" if success else "failure",
        ).inc()
    except Exception:
        logger.warning("Failed to record export metric", exc_info=True)


def generate_metrics() -> bytes:
    """Render Prometheus exposition format for client metrics.

    Returns:
        UTF-8 bytes ready to be served on ``/metrics``.
    """
    return generate_latest(REGISTRY)
