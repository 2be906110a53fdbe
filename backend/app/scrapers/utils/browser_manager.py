"""Playwright browser lifecycle manager with anti-detection.

Owns the Playwright driver, one Chromium instance and the browser contexts
created on top of it. Every context is configured with a desktop
fingerprint and a stealth init script.
"""

import asyncio
from typing import Dict, Optional

import structlog
from playwright.async_api import async_playwright, Browser, BrowserContext, Playwright

from app.scrapers.utils.user_agents import get_default_headers, get_desktop_user_agent

logger = structlog.get_logger(__name__)


# Minimal stealth JS to mask automation signals
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
window.chrome = { runtime: {} };
const originalQuery = window.navigator.permissions.query;
window.navigator.permissions.query = (parameters) =>
  parameters.name === 'notifications'
    ? Promise.resolve({ state: Notification.permission })
    : originalQuery(parameters);
"""

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-gpu",
    "--window-size=1920,1080",
]


class BrowserManager:
    """Manages Playwright browser lifecycle with anti-detection features.

    Creates named browser contexts with:
    - Desktop Chrome user agent and Accept/Accept-Language headers
    - Stealth JS injection so navigator.webdriver reads as unset
    """

    def __init__(self, headless: bool = True):
        self._headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()
        self._context_lock = asyncio.Lock()
        self._contexts: Dict[str, BrowserContext] = {}

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        """Launch the browser. Safe to call more than once."""
        async with self._lock:
            if self._browser:
                return
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._headless,
                args=LAUNCH_ARGS,
            )
            logger.info("browser_started", headless=self._headless)

    async def stop(self) -> None:
        """Close all contexts and the browser."""
        async with self._lock:
            for name, ctx in self._contexts.items():
                try:
                    await ctx.close()
                except Exception as e:
                    logger.warning("browser_context_close_failed", name=name, error=str(e))
            self._contexts.clear()

            if self._browser:
                await self._browser.close()
                self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None
            logger.info("browser_stopped")

    async def get_context(self, name: str = "default") -> BrowserContext:
        """Get or create a named browser context."""
        if name in self._contexts:
            return self._contexts[name]

        if not self._browser:
            await self.start()

        async with self._context_lock:
            # Another task may have created it while we waited
            if name in self._contexts:
                return self._contexts[name]
            return await self._create_context(name)

    async def _create_context(self, name: str) -> BrowserContext:
        context = await self._browser.new_context(
            user_agent=get_desktop_user_agent(),
            viewport={"width": 1920, "height": 1080},
            locale="en-US",
            timezone_id="America/New_York",
            extra_http_headers=get_default_headers(),
            java_script_enabled=True,
        )
        await context.add_init_script(STEALTH_JS)

        self._contexts[name] = context
        logger.info("browser_context_created", name=name)
        return context

    async def __aenter__(self) -> "BrowserManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
