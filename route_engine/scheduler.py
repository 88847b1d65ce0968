"""
Scheduler

Periodic trigger abstraction for the analysis loop:
- AsyncioTicker: fires on the running event loop every `interval` seconds
- ManualTicker: fires only when a test steps it
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Set

from loguru import logger


TickCallback = Callable[[], Awaitable[None]]


class TickHandle:
    """Cancellation token for an armed ticker."""

    def __init__(self, on_cancel: Optional[Callable[[], None]] = None):
        self._cancelled = False
        self._on_cancel = on_cancel

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop future ticks. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel:
            self._on_cancel()


class Ticker(ABC):
    """Abstract periodic trigger."""

    @abstractmethod
    def arm(self, callback: TickCallback) -> TickHandle:
        """Start firing `callback` periodically until the handle is cancelled."""
        pass


class AsyncioTicker(Ticker):
    """
    Ticker driven by the asyncio event loop.

    Each tick runs the callback as its own task so a slow callback never
    delays the schedule; overlap handling is the callback's concern.
    Cancelling stops future ticks but leaves in-flight callbacks running.
    """

    def __init__(self, interval_secs: float):
        self.interval = interval_secs
        self._inflight: Set[asyncio.Task] = set()

    def arm(self, callback: TickCallback) -> TickHandle:
        task = asyncio.get_running_loop().create_task(self._run(callback))
        return TickHandle(on_cancel=task.cancel)

    async def _run(self, callback: TickCallback) -> None:
        while True:
            await asyncio.sleep(self.interval)
            tick = asyncio.create_task(self._fire(callback))
            self._inflight.add(tick)
            tick.add_done_callback(self._inflight.discard)

    async def _fire(self, callback: TickCallback) -> None:
        try:
            await callback()
        except Exception as e:
            logger.error(f"Scheduled tick failed: {e}")


class ManualTicker(Ticker):
    """Ticker stepped explicitly, for deterministic tests."""

    def __init__(self):
        self._callback: Optional[TickCallback] = None
        self._handle: Optional[TickHandle] = None
        self.arm_count = 0

    @property
    def armed(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    def arm(self, callback: TickCallback) -> TickHandle:
        self._callback = callback
        self._handle = TickHandle()
        self.arm_count += 1
        return self._handle

    async def tick(self) -> bool:
        """Fire once if armed. Returns whether the callback ran."""
        if not self.armed or self._callback is None:
            return False
        await self._callback()
        return True
