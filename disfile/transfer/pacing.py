"""
Pacing and Bounded Fan-Out

Design Decision: Rate Limiting
==============================

The webhook enforces a request-rate limit shared by everything posting
to it. Firing one request per piece at once gets a large file throttled.

Options Considered:
1. Sequential loop with a fixed sleep
   - Simple, slow for big files
2. Unbounded gather
   - Fast until the first 429
3. Bounded concurrency window + minimum spacing between starts
   - Sequential when the window is 1, parallel otherwise
   - Spacing is a config value, not a hardcoded sleep

Decision: Option 3
- RequestPacer spaces transfer starts by pacing_delay seconds
- TransferWindow keeps at most N transfers in flight
- The first failure cancels everything still in flight (fail fast)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Set

logger = logging.getLogger(__name__)


class RequestPacer:
    """Enforces a minimum interval between successive transfer starts."""

    def __init__(self, interval: float):
        self.interval = interval
        self._lock = asyncio.Lock()
        self._last_start: float = 0.0
        self._started = False

    async def wait(self):
        """Block until the next transfer may start."""
        if self.interval <= 0:
            return

        async with self._lock:
            loop = asyncio.get_running_loop()
            if self._started:
                delay = self._last_start + self.interval - loop.time()
                if delay > 0:
                    logger.debug(f"Pacing: waiting {delay:.2f}s before next transfer")
                    await asyncio.sleep(delay)
            self._last_start = loop.time()
            self._started = True


class TransferWindow:
    """
    Runs keyed transfers with bounded concurrency.

    Usage:
        window = TransferWindow(limit=4, pacer=pacer)
        try:
            for index, item in enumerate(items):
                await window.submit(index, lambda item=item: transfer(item))
            results = await window.drain()
        finally:
            await window.close()

    submit() and drain() re-raise the first failure; everything else still
    in flight is cancelled.
    """

    def __init__(self, limit: int, pacer: RequestPacer):
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        self.limit = limit
        self.pacer = pacer
        self._pending: Set[asyncio.Task] = set()
        self._keys: Dict[asyncio.Task, int] = {}
        self._results: Dict[int, Any] = {}

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    async def _run(self, factory: Callable[[], Awaitable[Any]]) -> Any:
        await self.pacer.wait()
        return await factory()

    async def submit(self, key: int, factory: Callable[[], Awaitable[Any]]):
        """Start a transfer once a slot is free."""
        self._collect_done()
        while len(self._pending) >= self.limit:
            await self._wait(asyncio.FIRST_COMPLETED)

        task = asyncio.ensure_future(self._run(factory))
        self._pending.add(task)
        self._keys[task] = key

    async def drain(self) -> Dict[int, Any]:
        """Wait for all transfers; return results keyed by submission key."""
        while self._pending:
            await self._wait(asyncio.FIRST_EXCEPTION)
        return dict(self._results)

    async def close(self):
        """Cancel whatever is still running and wait for it to unwind."""
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()
        self._keys.clear()

    async def _wait(self, return_when):
        done, _ = await asyncio.wait(self._pending, return_when=return_when)
        self._collect(done)

    def _collect_done(self):
        self._collect({task for task in self._pending if task.done()})

    def _collect(self, done):
        # Lowest key wins when several transfers failed together
        failed = None
        for task in sorted(done, key=lambda t: self._keys[t]):
            self._pending.discard(task)
            key = self._keys.pop(task)
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                if failed is None:
                    failed = exc
                continue
            self._results[key] = task.result()

        if failed is not None:
            raise failed
