import asyncio
from typing import Awaitable, Optional, TypeVar

from status_client.errors import Cancelled

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation signal shared between a caller and a poll"""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise Cancelled("Operation was cancelled")

    async def sleep(self, delay_ms: int) -> None:
        """Sleeps for ``delay_ms`` or raises ``Cancelled`` as soon as the token fires"""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay_ms / 1000)
        except asyncio.TimeoutError:
            return
        raise Cancelled("Operation was cancelled while waiting")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Runs ``awaitable`` and aborts it if the token fires first"""
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if task.cancelled():
            raise Cancelled("Operation was cancelled while in flight")
        return task.result()


async def cancellable_sleep(delay_ms: int, token: Optional[CancellationToken]) -> None:
    if token is None:
        await asyncio.sleep(delay_ms / 1000)
    else:
        await token.sleep(delay_ms)
