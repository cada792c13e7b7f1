"""Pytest configuration and fixtures."""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Set test environment before the package configures logging
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["JSON_LOGGING"] = "false"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("HUGGINGFACE_API_KEY", None)

from webmonitor.config import Settings  # noqa: E402
from webmonitor.errors import FetchError  # noqa: E402
from webmonitor.ingest.fetcher import FetchResult  # noqa: E402
from webmonitor.schemas import Source  # noqa: E402
from webmonitor.storage import MemoryStore  # noqa: E402

ARTICLE_PAGE = """
<html><body>
<article class="news">
  <h2>Nova linha de metrô inaugurada</h2>
  <div class="content">A prefeitura inaugurou hoje a nova linha de metrô. Moradores dizem que o serviço é ótimo.</div>
  <span class="author">Maria Souza</span>
  <time datetime="2026-03-10T09:30:00Z">10/03/2026</time>
  <img src="/img/metro.jpg">
  <a href="/noticias/metro">Leia mais</a>
  <a href="https://outro.example.net/ref">Fonte</a>
</article>
<article class="news">
  <h2>Obras na ciclovia atrasam</h2>
  <div class="content">As obras da ciclovia da avenida central estão atrasadas, um problema para quem pedala.</div>
  <a href="/noticias/ciclovia">Leia mais</a>
</article>
</body></html>
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def settings(temp_dir) -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        database_path=temp_dir / "monitor.db",
        sources_file=temp_dir / "sources.yaml",
        openai_api_key=None,
        huggingface_api_key=None,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def make_source():
    """Factory for sources with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> Source:
        counter["n"] += 1
        data = {
            "name": f"Fonte {counter['n']}",
            "url": f"https://site{counter['n']}.example.com/noticias",
            "category": "cidades",
            "crawl_frequency": 30,
        }
        data.update(overrides)
        return Source(**data)

    return _make


class FakeFetcher:
    """Serves canned pages keyed by URL; raises FetchError for unknown URLs."""

    def __init__(self, pages: dict[str, str], allowed: bool = True):
        self.pages = pages
        self.allowed = allowed
        self.fetched: list[str] = []

    async def __aenter__(self) -> "FakeFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def fetch(self, url: str) -> FetchResult:
        self.fetched.append(url)
        if url not in self.pages:
            raise FetchError(url, "connection refused")
        return FetchResult(text=self.pages[url], url=url, status=200)

    async def is_allowed(self, url: str) -> bool:
        return self.allowed


@pytest.fixture
def fake_fetcher_factory():
    """Build a fetcher factory serving the given pages."""

    def _factory(pages: dict[str, str], allowed: bool = True):
        fetcher = FakeFetcher(pages, allowed=allowed)
        return fetcher, (lambda source: fetcher)

    return _factory


@pytest.fixture
def recorded_sleep():
    """Async sleep replacement that records requested delays."""
    delays: list[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def article_page() -> str:
    """Listing page with two article containers."""
    return ARTICLE_PAGE
