"""Shared pytest fixtures for the ScrapeStream test suite."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from scrapestream.core.config import Settings
from scrapestream.services.extraction import ExtractionClient

BASE_URL = "http://scraper.test"


def ndjson(*events: dict[str, Any]) -> bytes:
    """Encode *events* as newline-terminated JSON lines."""
    return b"".join(json.dumps(event).encode() + b"\n" for event in events)


# ── Fake remote service ────────────────────────────────────────────────────


class FakeScraper:
    """Programmable stand-in for the remote scraping service.

    ``chunks`` are streamed in order from ``POST /scrape``.  After
    the last one ``drained`` is set, which means the client has
    applied every chunk and is waiting for more.  With
    ``hold_open`` the stream then stays open until cancelled.
    """

    def __init__(self) -> None:
        self.chunks: list[bytes] = []
        self.hold_open = False
        self.scrape_status = 200
        self.scrape_error: type[httpx.HTTPError] | None = None
        self.scrape_body: dict[str, Any] | None = None
        self.drained = asyncio.Event()

        self.stop_calls: list[str] = []
        self.stop_status = 200

        self.excel_status = 200
        self.excel_response: Any = {"filename": "results-123.xlsx"}
        self.excel_payload: dict[str, Any] | None = None
        self.download_status = 200
        self.download_content = b"PK\x03\x04workbook"
        self.download_errors: list[type[httpx.HTTPError]] = []
        self.download_calls: list[str] = []

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/scrape":
            return self._scrape(request)
        if path.startswith("/stop-scraping/"):
            self.stop_calls.append(path.rsplit("/", 1)[1])
            return httpx.Response(self.stop_status, json={"ok": True})
        if path == "/create-excel":
            self.excel_payload = json.loads(request.content)
            return httpx.Response(self.excel_status, json=self.excel_response)
        if path.startswith("/download/"):
            self.download_calls.append(path.rsplit("/", 1)[1])
            if self.download_errors:
                raise self.download_errors.pop(0)("download failed", request=request)
            return httpx.Response(
                self.download_status,
                content=self.download_content,
            )
        return httpx.Response(404)

    def _scrape(self, request: httpx.Request) -> httpx.Response:
        self.scrape_body = json.loads(request.content)
        if self.scrape_error is not None:
            raise self.scrape_error("connection refused", request=request)
        if self.scrape_status != 200:
            return httpx.Response(self.scrape_status, text="scraper unavailable")
        return httpx.Response(
            200,
            headers={"content-type": "application/x-ndjson"},
            content=self._stream(),
        )

    async def _stream(self):
        for chunk in self.chunks:
            yield chunk
        self.drained.set()
        if self.hold_open:
            await asyncio.Event().wait()


class MemorySink:
    """Artifact sink that keeps saved files in a dict."""

    def __init__(self) -> None:
        self.saved: dict[str, bytes] = {}

    def save(self, name: str, content: bytes) -> Path:
        self.saved[name] = content
        return Path(name)


# ── Fixtures ───────────────────────────────────────────────────────────────


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Return Settings isolated from the environment and .env."""
    return Settings(
        _env_file=None,
        SCRAPER_BASE_URL=BASE_URL,
        EXPORT_DIR=str(tmp_path),
        EXPORT_TIMEOUT=5,
        STOP_TIMEOUT=5,
    )


@pytest.fixture
def fake_scraper() -> FakeScraper:
    return FakeScraper()


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
async def http_client(fake_scraper):
    """Yield an ``httpx.AsyncClient`` routed to the fake scraper."""
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(fake_scraper.handle),
        base_url=BASE_URL,
    ) as client:
        yield client


@pytest.fixture
async def extraction_client(settings, http_client, memory_sink):
    """
    Yield an ``ExtractionClient`` wired to the fake scraper.

    Usage::

        async def test_something(extraction_client, fake_scraper):
            fake_scraper.chunks = [ndjson({...})]
            session = await extraction_client.start_extraction("kw")
    """
    client = ExtractionClient(
        settings,
        http_client=http_client,
        sink=memory_sink,
    )
    yield client
    await client.aclose()
