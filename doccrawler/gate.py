"""FIFO counting admission gate for page fetches."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Deque, Optional

LOGGER = logging.getLogger(__name__)


class ConcurrencyGate:
    """Admit at most ``limit`` operations at a time.

    Callers beyond the cap wait in arrival order. ``release`` hands the freed
    slot straight to the oldest waiter, so the admitted count never drops
    below the cap while anyone is queued.

    Usage::

        gate = ConcurrencyGate(3)
        async with gate:
            await fetch(url)
    """

    def __init__(self, limit: int = 3) -> None:
        if limit < 1:
            raise ValueError(f"Gate limit must be at least 1, got {limit}")
        self._limit = limit
        self._admitted = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_flight(self) -> int:
        """Number of currently admitted operations."""
        return self._admitted

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        if self._admitted < self._limit and not self.waiting:
            self._admitted += 1
            return

        waiter: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just before cancellation; pass it on.
                self._handoff()
            else:
                self._discard(waiter)
            raise

    def release(self) -> None:
        if self._admitted <= 0:
            raise RuntimeError("ConcurrencyGate released more times than acquired")
        self._handoff()

    def _handoff(self) -> None:
        """Give the caller's slot to the oldest live waiter or free it."""
        waiter = self._next_waiter()
        if waiter is None:
            self._admitted -= 1
            return
        # Slot ownership moves to the waiter; the admitted count is unchanged.
        waiter.set_result(None)

    def _next_waiter(self) -> Optional[asyncio.Future]:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                return waiter
        return None

    def _discard(self, waiter: asyncio.Future) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass

    async def __aenter__(self) -> "ConcurrencyGate":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
