import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class ConcurrencyLimiter:
    """Caps how many coroutines run at once; a freed slot goes to the next waiter."""

    def __init__(self, limit: int = 10):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._active = 0

    @property
    def active(self) -> int:
        return self._active

    async def run(self, func: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any) -> R:
        async with self._semaphore:
            self._active += 1
            try:
                return await func(*args, **kwargs)
            finally:
                self._active -= 1

    async def map(
        self,
        func: Callable[[T], Awaitable[R]],
        items: Iterable[T],
        on_result: Optional[Callable[[R], Awaitable[None]]] = None,
    ) -> List[R]:
        """
        Run `func` over every item under the cap; results follow input order.

        `on_result` is awaited for each result as it completes, after its slot
        has been released.
        """
        async def _run_one(item: T) -> R:
            result = await self.run(func, item)
            if on_result is not None:
                await on_result(result)
            return result

        return await asyncio.gather(*(_run_one(item) for item in items))
