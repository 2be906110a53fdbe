"""Page renderer adapter.

Wraps a headless-browser fetch of a URL and hands back a parsed, navigable
``Document``. Render contexts (browser pages) are the scarce resource of the
whole pipeline: each one is acquired explicitly and released on every exit
path, including errors and cancellation.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, FrozenSet, List, Optional
from urllib.parse import urlparse

import structlog
from bs4 import BeautifulSoup
from playwright.async_api import (
    Error as PlaywrightError,
    Page,
    Route,
    TimeoutError as PlaywrightTimeoutError,
)

from app.core.exceptions import NavigationError, NavigationTimeout
from app.scrapers.utils.browser_manager import BrowserManager
from app.scrapers.utils.rate_limiter import HostRateLimiter

logger = structlog.get_logger(__name__)

# Navigation wait strategies
WAIT_NETWORK_IDLE = "networkidle"  # listing pages that stream content in
WAIT_DOM_READY = "domcontentloaded"  # high-volume offer and reveal pages

BLOCK_MEDIA: FrozenSet[str] = frozenset({"image", "font", "media"})
BLOCK_MEDIA_AND_STYLES: FrozenSet[str] = BLOCK_MEDIA | {"stylesheet"}


@dataclass(frozen=True)
class RenderOptions:
    """How a single navigation should be performed."""

    wait_until: str = WAIT_DOM_READY
    timeout_ms: int = 30000
    blocked_resource_types: FrozenSet[str] = frozenset()
    wait_selector: Optional[str] = None
    wait_selector_timeout_ms: int = 0

    def __post_init__(self):
        if self.wait_until not in (WAIT_NETWORK_IDLE, WAIT_DOM_READY, "load"):
            raise ValueError(f"Invalid wait_until: {self.wait_until}")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.wait_selector and not 0 < self.wait_selector_timeout_ms < self.timeout_ms:
            raise ValueError("wait_selector_timeout_ms must be positive and shorter than timeout_ms")


class Document:
    """Parsed HTML of a rendered page."""

    def __init__(self, html: str, url: str = ""):
        self.html = html
        self.url = url
        self.soup = BeautifulSoup(html, "html.parser")

    def select(self, selector: str) -> List[Any]:
        return self.soup.select(selector)

    def select_one(self, selector: str) -> Optional[Any]:
        return self.soup.select_one(selector)

    def __repr__(self) -> str:
        return f"Document(url={self.url!r}, length={len(self.html)})"


class Renderer(ABC):
    """Acquire/release-based page renderer.

    Subclasses implement ``acquire``, ``release`` and ``load``; callers use
    ``render`` for one-shot fetches or ``page`` to hold a context across
    several loads.
    """

    @abstractmethod
    async def acquire(self) -> Any:
        """Allocate a render context."""

    @abstractmethod
    async def release(self, context: Any) -> None:
        """Free a render context. Must not raise."""

    @abstractmethod
    async def load(self, context: Any, url: str, options: RenderOptions) -> Document:
        """Navigate ``context`` to ``url`` and return the parsed document.

        Raises:
            NavigationTimeout: If the navigation exceeded options.timeout_ms
            NavigationError: On any other transport or DOM failure
        """

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Any]:
        """Hold one render context for the duration of the block."""
        context = await self.acquire()
        try:
            yield context
        finally:
            await self.release(context)

    async def render(self, url: str, options: RenderOptions) -> Document:
        """Fetch ``url`` in a fresh context and release it afterwards."""
        async with self.page() as context:
            return await self.load(context, url, options)


class PlaywrightRenderer(Renderer):
    """Renderer backed by pages of one shared Playwright browser context."""

    def __init__(
        self,
        browser_manager: BrowserManager,
        rate_limiter: Optional[HostRateLimiter] = None,
        context_name: str = "couponfollow",
    ):
        self.browser_manager = browser_manager
        self.rate_limiter = rate_limiter
        self.context_name = context_name
        self._blocked: Dict[Page, FrozenSet[str]] = {}
        self.logger = logger.bind(renderer=context_name)

    async def acquire(self) -> Page:
        context = await self.browser_manager.get_context(self.context_name)
        page = await context.new_page()
        self._blocked[page] = frozenset()

        async def _filter(route: Route) -> None:
            if route.request.resource_type in self._blocked.get(page, frozenset()):
                await route.abort()
            else:
                await route.continue_()

        await page.route("**/*", _filter)
        return page

    async def release(self, context: Page) -> None:
        self._blocked.pop(context, None)
        try:
            await context.close()
        except PlaywrightError as e:
            self.logger.warning("page_close_failed", error=str(e))

    async def load(self, context: Page, url: str, options: RenderOptions) -> Document:
        self._blocked[context] = options.blocked_resource_types

        if self.rate_limiter:
            await self.rate_limiter.acquire(urlparse(url).netloc)

        self.logger.debug("navigating", url=url, wait_until=options.wait_until)
        try:
            response = await context.goto(
                url,
                wait_until=options.wait_until,
                timeout=options.timeout_ms,
            )
        except PlaywrightTimeoutError:
            raise NavigationTimeout(url, options.timeout_ms)
        except PlaywrightError as e:
            raise NavigationError(url, str(e))

        if response is not None and response.status >= 400:
            raise NavigationError(url, f"HTTP {response.status}")

        if options.wait_selector:
            try:
                await context.wait_for_selector(
                    options.wait_selector,
                    timeout=options.wait_selector_timeout_ms,
                    state="attached",
                )
            except PlaywrightTimeoutError:
                self.logger.debug("wait_selector_timeout", url=url, selector=options.wait_selector)

        try:
            html = await context.content()
        except PlaywrightError as e:
            raise NavigationError(url, str(e))
        return Document(html, context.url)
