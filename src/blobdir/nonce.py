import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional


class NonceCoordinator:
    """
    Issues transaction nonces for one signing identity.

    The counter is seeded once from the chain and only moves forward:
    a nonce handed out is never returned, even if its transaction fails.
    """

    def __init__(self, start: Optional[int] = None):
        self._next = start
        self._lock = asyncio.Lock()

    @property
    def seeded(self) -> bool:
        return self._next is not None

    async def seed(self, chain) -> int:
        """Load the pending nonce from the chain, once."""
        async with self._lock:
            if self._next is None:
                self._next = await chain.get_nonce()
            return self._next

    def _take(self) -> int:
        if self._next is None:
            raise RuntimeError("NonceCoordinator used before seed()")
        nonce = self._next
        self._next += 1
        return nonce

    async def allocate(self) -> int:
        async with self._lock:
            return self._take()

    @asynccontextmanager
    async def reserve(self) -> AsyncIterator[int]:
        """Allocate a nonce and hold the lock until the caller has submitted."""
        async with self._lock:
            yield self._take()
