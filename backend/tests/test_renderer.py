"""Tests for the Playwright renderer adapter (Playwright mocked out)."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from app.core.exceptions import NavigationError, NavigationTimeout
from app.scrapers.renderer import (
    BLOCK_MEDIA,
    WAIT_NETWORK_IDLE,
    PlaywrightRenderer,
    RenderOptions,
)
from app.scrapers.utils.browser_manager import STEALTH_JS, BrowserManager

URL = "https://couponfollow.com/site/acme.com"


def _mock_page(status: int = 200, html: str = "<ul><li>ok</li></ul>") -> MagicMock:
    page = MagicMock()
    page.url = URL
    response = MagicMock()
    response.status = status
    page.goto = AsyncMock(return_value=response)
    page.content = AsyncMock(return_value=html)
    page.wait_for_selector = AsyncMock()
    page.route = AsyncMock()
    page.close = AsyncMock()
    return page


def _renderer(page: MagicMock, rate_limiter=None) -> PlaywrightRenderer:
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    browser_manager = MagicMock()
    browser_manager.get_context = AsyncMock(return_value=context)
    return PlaywrightRenderer(browser_manager, rate_limiter=rate_limiter)


class TestRenderOptions:
    """Test RenderOptions validation."""

    def test_defaults(self):
        options = RenderOptions()
        assert options.timeout_ms == 30000
        assert options.blocked_resource_types == frozenset()

    def test_invalid_wait_until(self):
        with pytest.raises(ValueError):
            RenderOptions(wait_until="whenever")

    def test_selector_timeout_must_fit(self):
        with pytest.raises(ValueError):
            RenderOptions(timeout_ms=1000, wait_selector="input", wait_selector_timeout_ms=1000)


class TestPlaywrightRenderer:
    """Test PlaywrightRenderer error translation and context handling."""

    async def test_render_returns_document(self):
        """Test a successful navigation yields a parsed document."""
        page = _mock_page()
        renderer = _renderer(page)
        options = RenderOptions(wait_until=WAIT_NETWORK_IDLE, timeout_ms=5000, blocked_resource_types=BLOCK_MEDIA)

        document = await renderer.render(URL, options)

        assert document.url == URL
        assert document.select_one("li").get_text() == "ok"
        page.goto.assert_awaited_once_with(URL, wait_until="networkidle", timeout=5000)
        page.route.assert_awaited_once()
        page.close.assert_awaited_once()

    async def test_timeout_is_translated(self):
        """Test Playwright timeouts become NavigationTimeout."""
        page = _mock_page()
        page.goto.side_effect = PlaywrightTimeoutError("Timeout 5000ms exceeded")
        renderer = _renderer(page)

        with pytest.raises(NavigationTimeout):
            await renderer.render(URL, RenderOptions(timeout_ms=5000))
        page.close.assert_awaited_once()

    async def test_transport_error_is_translated(self):
        """Test other Playwright errors become NavigationError."""
        page = _mock_page()
        page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_RESET")
        renderer = _renderer(page)

        with pytest.raises(NavigationError) as exc_info:
            await renderer.render(URL, RenderOptions())
        assert "ERR_CONNECTION_RESET" in exc_info.value.reason
        page.close.assert_awaited_once()

    async def test_http_error_status(self):
        """Test 4xx/5xx responses are navigation errors."""
        page = _mock_page(status=403)
        renderer = _renderer(page)

        with pytest.raises(NavigationError) as exc_info:
            await renderer.render(URL, RenderOptions())
        assert exc_info.value.reason == "HTTP 403"

    async def test_wait_selector_timeout_is_not_fatal(self):
        """Test the page is still returned when the awaited element never shows."""
        page = _mock_page(html="<div>late</div>")
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("not found")
        renderer = _renderer(page)
        options = RenderOptions(timeout_ms=15000, wait_selector="input.code", wait_selector_timeout_ms=8000)

        document = await renderer.render(URL, options)

        assert document.select_one("div").get_text() == "late"
        page.wait_for_selector.assert_awaited_once_with("input.code", timeout=8000, state="attached")

    async def test_rate_limiter_is_applied_per_host(self):
        """Test each navigation spends one token of the host's budget."""
        page = _mock_page()
        limiter = MagicMock()
        limiter.acquire = AsyncMock()
        renderer = _renderer(page, rate_limiter=limiter)

        await renderer.render(URL, RenderOptions())

        limiter.acquire.assert_awaited_once_with("couponfollow.com")

    async def test_release_tolerates_close_errors(self):
        """Test a page that fails to close does not raise from release."""
        page = _mock_page()
        page.close.side_effect = PlaywrightError("Target closed")
        renderer = _renderer(page)

        async with renderer.page() as acquired:
            assert acquired is page
        page.close.assert_awaited_once()


class TestBrowserManager:
    """Test BrowserManager context handling (no real browser)."""

    async def test_concurrent_callers_share_one_context(self):
        """Test a named context is created once even under concurrent first use."""
        context = MagicMock()
        context.add_init_script = AsyncMock()
        browser = MagicMock()
        browser.new_context = AsyncMock(return_value=context)
        manager = BrowserManager()
        manager._browser = browser

        contexts = await asyncio.gather(*(manager.get_context("couponfollow") for _ in range(5)))

        assert all(c is context for c in contexts)
        browser.new_context.assert_awaited_once()
        context.add_init_script.assert_awaited_once_with(STEALTH_JS)
        assert browser.new_context.call_args.kwargs["locale"] == "en-US"
