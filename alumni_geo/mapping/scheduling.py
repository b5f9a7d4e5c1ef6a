"""Small event-loop coordination primitives used by the map layer."""

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class DelayedTask:
    """Run ``callback`` once, ``delay`` seconds after the most recent ``schedule()``."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.delay = delay
        self._callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()


class ReadinessGate:
    """Completes once every named slot has been marked ready.

    Callbacks registered with ``when_ready`` run exactly once, either
    immediately (gate already open) or when the last slot is marked.
    """

    def __init__(self, slots: Iterable[str]) -> None:
        self._slots: Dict[str, bool] = {name: False for name in slots}
        if not self._slots:
            raise ValueError("ReadinessGate needs at least one slot")
        self._callbacks: List[Callable[[], None]] = []
        self._future: Optional[asyncio.Future] = None

    @property
    def is_ready(self) -> bool:
        return all(self._slots.values())

    def missing(self) -> List[str]:
        return [name for name, ready in self._slots.items() if not ready]

    def mark(self, slot: str) -> None:
        if slot not in self._slots:
            raise KeyError(slot)
        if self._slots[slot]:
            return
        self._slots[slot] = True
        if not self.is_ready:
            return
        logger.debug("Readiness gate opened")
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        if self._future is not None and not self._future.done():
            self._future.set_result(None)

    def when_ready(self, callback: Callable[[], None]) -> None:
        if self.is_ready:
            callback()
        else:
            self._callbacks.append(callback)

    async def wait(self) -> None:
        if self.is_ready:
            return
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        await self._future
