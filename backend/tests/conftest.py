"""Pytest configuration and shared fixtures."""

import asyncio
import os
from typing import Dict, List, Optional

# Must be set before app.config is imported anywhere
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import ScrapeSession
from app.core.exceptions import NavigationError
from app.models import Base
from app.scrapers.renderer import Document, RenderOptions, Renderer


class FakeRenderer(Renderer):
    """Renderer serving canned HTML by URL.

    Counts context acquisitions and releases, and the peak number of
    contexts held at once. URLs registered with ``fail`` raise instead of
    rendering, either forever or for the first ``times`` loads.
    """

    def __init__(self, pages: Optional[Dict[str, str]] = None):
        self.pages: Dict[str, str] = dict(pages or {})
        self.loads: List[str] = []
        self.options: Dict[str, RenderOptions] = {}
        self.acquired = 0
        self.released = 0
        self.peak_open = 0
        self.fail_acquire_after: Optional[int] = None
        self._failures: Dict[str, list] = {}

    @property
    def open_contexts(self) -> int:
        return self.acquired - self.released

    def fail(self, url: str, exc: Optional[Exception] = None, times: Optional[int] = None) -> None:
        self._failures[url] = [exc or NavigationError(url, "HTTP 500"), times]

    def load_count(self, url: str) -> int:
        return self.loads.count(url)

    async def acquire(self):
        if self.fail_acquire_after is not None and self.acquired >= self.fail_acquire_after:
            raise NavigationError("about:blank", "browser closed")
        self.acquired += 1
        self.peak_open = max(self.peak_open, self.open_contexts)
        return f"page-{self.acquired}"

    async def release(self, context) -> None:
        self.released += 1

    async def load(self, context, url: str, options: RenderOptions) -> Document:
        self.loads.append(url)
        self.options[url] = options
        await asyncio.sleep(0)

        failure = self._failures.get(url)
        if failure is not None:
            exc, times = failure
            if times is None or times > 0:
                if times is not None:
                    failure[1] = times - 1
                raise exc

        if url not in self.pages:
            raise NavigationError(url, "HTTP 404")
        return Document(self.pages[url], url)


class SleepRecorder:
    """Drop-in for asyncio.sleep that records requested delays and returns at once."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def fast_session() -> ScrapeSession:
    """Scrape session with every delay switched off."""
    return ScrapeSession(
        domain_retry_delay_ms=0,
        reveal_delay_ms=0,
        inter_batch_delay_ms=0,
        inter_category_delay_ms=0,
    )


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncSession:
    """Create an in-memory SQLite database session for testing."""
    async with session_factory() as session:
        yield session
