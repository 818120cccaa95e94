"""
ScrapeStream — Python client example.

Demonstrates:
  1. Stream an extraction and watch progress as events arrive.
  2. Stop an extraction after a deadline.
  3. Export the results as CSV and as a server-built spreadsheet.

Requirements:
  pip install -e .

Usage:
  SCRAPER_BASE_URL=http://localhost:3001 python examples/python/client.py
"""

from __future__ import annotations

import asyncio

from scrapestream.schemas import ExtractionSession
from scrapestream.services.exporter import ExportError
from scrapestream.services.extraction import ExtractionClient

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

KEYWORD = "coffee shops"
LOCATION = "Berlin"
STOP_AFTER = 30  # seconds before the second example gives up


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def show_progress(session: ExtractionSession) -> None:
    """Print one line per published session snapshot."""
    print(
        f"  [{session.status}] {session.progress_percent:3d}% "
        f"{session.message} — {len(session.results)} results"
    )


# ---------------------------------------------------------------------------
# Examples
# ---------------------------------------------------------------------------


async def example_full_run() -> None:
    """Run an extraction to completion and export both formats."""
    print("\n── Full extraction ──────────────────────────────")
    async with ExtractionClient() as client:
        client.subscribe(show_progress)
        session = await client.start_extraction(KEYWORD, LOCATION)
        print(f"Done — {session.status}, {len(session.results)} results")

        csv_path = client.export_local_csv()
        print(f"CSV written to {csv_path}")
        try:
            xlsx_path = await client.export_spreadsheet()
        except ExportError as exc:
            print(f"Spreadsheet export failed: {exc}")
        else:
            print(f"Spreadsheet written to {xlsx_path}")


async def example_stop() -> None:
    """Stop an extraction that runs longer than ``STOP_AFTER``."""
    print("\n── Stopped extraction ───────────────────────────")
    async with ExtractionClient() as client:
        client.subscribe(show_progress)
        run = asyncio.create_task(client.start_extraction(KEYWORD, LOCATION))
        done, _ = await asyncio.wait({run}, timeout=STOP_AFTER)
        if not done:
            await client.stop_extraction()
        session = await run
        print(f"Finished as {session.status} with {len(session.results)} results")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    asyncio.run(example_full_run())
    asyncio.run(example_stop())
