"""
Command-line entry point.

Runs one extraction against the scraping service, printing
progress as events arrive.  Ctrl-C stops the remote job and
keeps whatever results were received so far.

Usage::

    scrapestream "coffee shops" --location Berlin --csv --xlsx
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from scrapestream.core.config import get_settings, get_version
from scrapestream.core.metrics import generate_metrics
from scrapestream.logging_config import setup_logging
from scrapestream.schemas import ExtractionSession, SessionStatus
from scrapestream.services.exporter import ExportError
from scrapestream.services.extraction import ExtractionClient

logger = logging.getLogger(__name__)

# Columns shown in the summary table, in display order.
_TABLE_COLUMNS: tuple[str, ...] = (
    "title",
    "category",
    "rating",
    "reviews",
    "phone",
    "country_code",
    "address",
    "website",
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scrapestream",
        description="Stream a Google Maps extraction from a scraping service.",
    )
    parser.add_argument("keyword", help="What to search for")
    parser.add_argument("--location", default="", help="Where to search")
    parser.add_argument(
        "--base-url",
        default=None,
        help="Scraping service URL (default: SCRAPER_BASE_URL)",
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory for exported files (default: EXPORT_DIR)",
    )
    parser.add_argument("--csv", action="store_true", help="Write a local CSV file")
    parser.add_argument(
        "--xlsx",
        action="store_true",
        help="Download a spreadsheet built by the server",
    )
    parser.add_argument(
        "--table",
        action="store_true",
        help="Print the results as a table",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print client metrics to stderr when done",
    )
    parser.add_argument("--version", action="version", version=get_version())
    return parser


class _ProgressPrinter:
    """Print a line whenever progress or the message changes."""

    def __init__(self) -> None:
        self._last: tuple[int, str] | None = None

    def __call__(self, session: ExtractionSession) -> None:
        current = (session.progress_percent, session.message)
        if current == self._last or session.status == SessionStatus.IDLE:
            return
        self._last = current
        print(
            f"[{session.progress_percent:3d}%] {session.message} "
            f"({len(session.results)} results)",
            file=sys.stderr,
        )


def print_table(session: ExtractionSession) -> None:
    """Print results as tab-separated rows with placeholders."""
    print("\t".join(column.replace("_", " ").title() for column in _TABLE_COLUMNS))
    for record in session.results:
        print("\t".join(record.display_value(column) for column in _TABLE_COLUMNS))
    print(f"Total Results: {len(session.results)}")


def print_metrics() -> None:
    """Write the Prometheus exposition of client counters to stderr."""
    sys.stderr.write(generate_metrics().decode())


async def run(args: argparse.Namespace) -> int:
    """Execute the CLI; returns the process exit code."""
    overrides = {}
    if args.base_url:
        overrides["SCRAPER_BASE_URL"] = args.base_url.rstrip("/")
    if args.output_dir:
        overrides["EXPORT_DIR"] = args.output_dir
    settings = get_settings().model_copy(update=overrides)
    logger.info(
        "%s %s using %s",
        settings.APP_NAME,
        get_version(),
        settings.SCRAPER_BASE_URL,
    )

    async with ExtractionClient(settings) as client:
        client.subscribe(_ProgressPrinter())

        loop = asyncio.get_running_loop()
        handles_sigint = True
        try:
            loop.add_signal_handler(
                signal.SIGINT,
                lambda: loop.create_task(client.stop_extraction()),
            )
        except NotImplementedError:
            # Windows event loops have no signal handlers.
            handles_sigint = False

        try:
            session = await client.start_extraction(args.keyword, args.location)
        finally:
            if handles_sigint:
                loop.remove_signal_handler(signal.SIGINT)

        if session.error:
            print(f"Error: {session.error}", file=sys.stderr)
        if args.table:
            print_table(session)

        exit_code = 1 if session.status == SessionStatus.FAILED else 0

        if args.csv:
            path = client.export_local_csv()
            print(f"CSV: {path}" if path else "CSV: no results to export")
        if args.xlsx and session.results:
            try:
                path = await client.export_spreadsheet()
            except ExportError as exc:
                print(f"Spreadsheet export failed: {exc}", file=sys.stderr)
                exit_code = 1
            else:
                print(f"Spreadsheet: {path}")

    if args.metrics:
        print_metrics()

    return exit_code


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(
        level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
