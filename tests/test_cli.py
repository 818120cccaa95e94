"""Tests for the command-line entry point."""

from __future__ import annotations

import pytest

from scrapestream.cli import build_parser, print_metrics, print_table
from scrapestream.schemas import ExtractionSession, ResultRecord, SessionStatus


class TestBuildParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        """Only the keyword is required."""
        args = build_parser().parse_args(["coffee"])
        assert args.keyword == "coffee"
        assert args.location == ""
        assert args.csv is False
        assert args.xlsx is False
        assert args.base_url is None

    def test_all_options(self):
        """Every option is accepted."""
        args = build_parser().parse_args(
            [
                "coffee",
                "--location",
                "Berlin",
                "--base-url",
                "http://scraper:3001",
                "--output-dir",
                "/tmp/out",
                "--csv",
                "--xlsx",
                "--table",
            ]
        )
        assert args.location == "Berlin"
        assert args.base_url == "http://scraper:3001"
        assert args.output_dir == "/tmp/out"
        assert args.csv and args.xlsx and args.table

    def test_keyword_required(self):
        """Parsing fails without a keyword."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestPrintTable:
    """Tests for ``print_table``."""

    def test_placeholders(self, capsys):
        """Missing fields print as ``-``."""
        session = ExtractionSession(
            status=SessionStatus.COMPLETED,
            results=(ResultRecord(title="A", rating=4.5),),
        )

        print_table(session)

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("Title\tCategory\tRating")
        assert lines[1] == "A\t-\t4.5\t-\t-\t-\t-\t-"
        assert lines[-1] == "Total Results: 1"


class TestPrintMetrics:
    """Tests for ``print_metrics``."""

    def test_metrics_flag(self):
        """``--metrics`` is off by default."""
        assert build_parser().parse_args(["coffee"]).metrics is False
        assert build_parser().parse_args(["coffee", "--metrics"]).metrics is True

    def test_writes_exposition_to_stderr(self, capsys):
        """Client counters are rendered on stderr."""
        print_metrics()

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "scrapestream_frames_decoded_total" in captured.err
