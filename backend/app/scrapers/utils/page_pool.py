"""Fixed-size pool of reusable render contexts."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List

import structlog

logger = structlog.get_logger(__name__)


class PagePool:
    """Queue-backed pool of render contexts acquired from a Renderer.

    Contexts are opened up front, handed out one task at a time through
    ``lease()`` and returned to the queue after an optional cool-down, so a
    context never serves two back-to-back requests without a pause. Every
    opened context is released when the pool closes.

    Usage:
        async with PagePool(renderer, size=5, cooldown_ms=500) as pool:
            async with pool.lease() as page:
                doc = await renderer.load(page, url, options)
    """

    def __init__(
        self,
        renderer,
        size: int,
        cooldown_ms: int = 0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if size < 1:
            raise ValueError("size must be at least 1")
        self.renderer = renderer
        self.size = size
        self.cooldown_ms = cooldown_ms
        self._sleep = sleep
        self._contexts: List[Any] = []
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()

    async def open(self) -> None:
        """Acquire ``size`` contexts; releases any already opened if one fails."""
        try:
            for _ in range(self.size):
                context = await self.renderer.acquire()
                self._contexts.append(context)
                self._queue.put_nowait(context)
        except BaseException:
            await self.close()
            raise
        logger.debug("page_pool_opened", size=self.size)

    async def close(self) -> None:
        """Release every context this pool acquired."""
        contexts, self._contexts = self._contexts, []
        for context in contexts:
            await self.renderer.release(context)
        self._queue = asyncio.Queue()
        if contexts:
            logger.debug("page_pool_closed", released=len(contexts))

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[Any]:
        """Borrow a context exclusively for the duration of the block."""
        context = await self._queue.get()
        try:
            yield context
        finally:
            try:
                if self.cooldown_ms:
                    await self._sleep(self.cooldown_ms / 1000)
            finally:
                self._queue.put_nowait(context)

    async def __aenter__(self) -> "PagePool":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
