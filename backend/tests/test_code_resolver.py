"""Tests for reveal-page code resolution and the page pool."""

import asyncio

import pytest

from app.core.exceptions import NavigationTimeout, ResolverExhausted
from app.scrapers.base import SENTINEL_CODE, RawOffer
from app.scrapers.code_resolver import (
    DEFAULT_STRATEGIES,
    CodeResolver,
    SelectorStrategy,
    extract_code,
)
from app.scrapers.renderer import BLOCK_MEDIA_AND_STYLES, Document
from app.scrapers.utils.page_pool import PagePool

from html_pages import reveal_page

MODAL_URL = "https://couponfollow.com/modal/123"


def _offer(local_id: int, ref: str = None, code: str = None) -> RawOffer:
    return RawOffer(local_id=local_id, reveal_ref=ref, direct_code=code)


class TestExtractionStrategies:
    """Test the ordered strategy cascade on synthetic documents."""

    def test_code_input(self):
        """Test the current modal markup."""
        assert extract_code(Document(reveal_page("SAVE20"))) == "SAVE20"

    def test_falls_through_to_later_strategies(self):
        """Test older layouts are still understood."""
        assert extract_code(Document('<input class="code" value="OLD1">')) == "OLD1"
        assert extract_code(Document('<span data-clipboard-text="CLIP2">copy</span>')) == "CLIP2"
        assert extract_code(Document('<button data-code="ATTR3">reveal</button>')) == "ATTR3"
        assert extract_code(Document('<div class="code-text"> TEXT4 </div>')) == "TEXT4"

    def test_first_matching_strategy_wins(self):
        """Test earlier strategies take precedence."""
        html = '<div class="code-text">LATER</div><input id="code" class="input code" value="FIRST">'

        assert extract_code(Document(html)) == "FIRST"

    def test_sentinel_or_blank_is_skipped(self):
        """Test placeholder values do not stop the cascade."""
        html = (
            f'<input id="code" class="input code" value="{SENTINEL_CODE}">'
            '<span data-clipboard-text=""></span>'
            '<div class="code-text">REAL</div>'
        )

        assert extract_code(Document(html)) == "REAL"

    def test_exhausted(self):
        """Test ResolverExhausted when nothing matches."""
        with pytest.raises(ResolverExhausted):
            extract_code(Document(reveal_page(None), "https://couponfollow.com/modal/1"))

    def test_custom_strategies(self):
        """Test strategies are plain callables evaluated in order."""
        calls = []

        def never(document):
            calls.append("never")
            return None

        strategies = [never, SelectorStrategy("b")]

        assert extract_code(Document("<b>BOLD</b>"), strategies) == "BOLD"
        assert calls == ["never"]

    def test_default_strategies_are_selector_based(self):
        """Test the default cascade starts with the modal code input."""
        assert DEFAULT_STRATEGIES[0] == SelectorStrategy("input#code.input.code")


class TestCodeResolver:
    """Test CodeResolver against a fake renderer."""

    async def test_resolve(self, renderer, fast_session):
        """Test a relative reveal ref is resolved to its code."""
        renderer.pages[MODAL_URL] = reveal_page("SAVE20")
        resolver = CodeResolver(renderer, fast_session)

        assert await resolver.resolve("/modal/123") == "SAVE20"
        assert renderer.acquired == renderer.released == 1

        options = renderer.options[MODAL_URL]
        assert options.timeout_ms == fast_session.reveal_timeout_ms
        assert options.blocked_resource_types == BLOCK_MEDIA_AND_STYLES
        assert options.wait_selector_timeout_ms == fast_session.reveal_selector_timeout_ms

    async def test_resolve_failures_return_sentinel(self, renderer, fast_session):
        """Test timeouts, missing codes and unexpected errors all yield the sentinel."""
        renderer.fail("https://couponfollow.com/modal/timeout", NavigationTimeout("x", 15000))
        renderer.fail("https://couponfollow.com/modal/boom", RuntimeError("boom"))
        renderer.pages["https://couponfollow.com/modal/empty"] = reveal_page(None)
        resolver = CodeResolver(renderer, fast_session)

        for ref in ("/modal/timeout", "/modal/boom", "/modal/empty", "/modal/missing"):
            assert await resolver.resolve(ref) == SENTINEL_CODE

        assert renderer.acquired == renderer.released == 4

    async def test_resolve_offers_fills_codes(self, renderer, fast_session):
        """Test pending offers get their codes and failing ones keep none."""
        renderer.pages["https://couponfollow.com/modal/1"] = reveal_page("ONE")
        renderer.pages["https://couponfollow.com/modal/2"] = reveal_page("TWO")
        renderer.fail("https://couponfollow.com/modal/3")
        offers = [
            _offer(1, ref="/modal/1"),
            _offer(2, ref="/modal/2"),
            _offer(3, ref="/modal/3"),
            _offer(4, code="DIRECT"),
        ]
        resolver = CodeResolver(renderer, fast_session)

        resolved = await resolver.resolve_offers(offers, domain="acme.com")

        assert resolved == 2
        assert [o.direct_code for o in offers] == ["ONE", "TWO", None, "DIRECT"]
        assert renderer.load_count("https://couponfollow.com/modal/1") == 1
        assert renderer.acquired == renderer.released

    async def test_pool_is_bounded_by_batch_size(self, renderer, fast_session):
        """Test at most batch_size reveal pages are open at once."""
        for i in range(12):
            renderer.pages[f"https://couponfollow.com/modal/{i}"] = reveal_page(f"C{i}")
        offers = [_offer(i + 1, ref=f"/modal/{i}") for i in range(12)]
        resolver = CodeResolver(renderer, fast_session)

        resolved = await resolver.resolve_offers(offers)

        assert resolved == 12
        assert renderer.acquired == fast_session.batch_size
        assert renderer.peak_open == fast_session.batch_size
        assert renderer.released == renderer.acquired

    async def test_pool_shrinks_to_pending_count(self, renderer, fast_session):
        """Test fewer pending offers open fewer pages."""
        renderer.pages["https://couponfollow.com/modal/1"] = reveal_page("ONE")
        resolver = CodeResolver(renderer, fast_session)

        await resolver.resolve_offers([_offer(1, ref="/modal/1")])

        assert renderer.acquired == 1

    async def test_nothing_pending_opens_nothing(self, renderer, fast_session):
        """Test offers with direct codes need no render contexts."""
        resolver = CodeResolver(renderer, fast_session)

        assert await resolver.resolve_offers([_offer(1, code="X"), _offer(2)]) == 0
        assert renderer.acquired == 0

    async def test_pool_open_failure_releases_and_degrades(self, renderer, fast_session):
        """Test a failing acquisition leaves no leaked contexts and no codes."""
        renderer.fail_acquire_after = 2
        offers = [_offer(i + 1, ref=f"/modal/{i}") for i in range(5)]
        resolver = CodeResolver(renderer, fast_session)

        assert await resolver.resolve_offers(offers) == 0
        assert renderer.acquired == renderer.released == 2
        assert all(o.direct_code is None for o in offers)


class TestPagePool:
    """Test the fixed-size page pool."""

    async def test_contexts_are_leased_exclusively(self, renderer):
        """Test two holders never share a context."""
        holders = []

        async with PagePool(renderer, size=2) as pool:
            async def _use():
                async with pool.lease() as page:
                    assert page not in holders
                    holders.append(page)
                    await asyncio.sleep(0)
                    holders.remove(page)

            await asyncio.gather(*(_use() for _ in range(6)))

        assert renderer.acquired == renderer.released == 2

    async def test_cooldown_after_each_lease(self, renderer, sleep_recorder):
        """Test the cool-down runs before a context is handed out again."""
        async with PagePool(renderer, size=1, cooldown_ms=500, sleep=sleep_recorder) as pool:
            for _ in range(3):
                async with pool.lease():
                    pass

        assert sleep_recorder.calls == [0.5, 0.5, 0.5]

    async def test_released_on_error(self, renderer):
        """Test contexts are released when the body raises."""
        with pytest.raises(RuntimeError):
            async with PagePool(renderer, size=3) as pool:
                async with pool.lease():
                    raise RuntimeError("boom")

        assert renderer.acquired == renderer.released == 3

    def test_size_must_be_positive(self, renderer):
        """Test an empty pool is rejected."""
        with pytest.raises(ValueError):
            PagePool(renderer, size=0)
