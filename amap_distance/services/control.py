from __future__ import annotations

import asyncio
import threading
from typing import Awaitable, Callable

from amap_distance.services.exceptions import RunCancelled


class CancellationToken:
    """Polled stop flag: one writer (the caller), many checkpoint readers."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled("Run stopped by user")


class FixedDelayPacer:
    """Sleeps a fixed interval between units of work."""

    def __init__(
        self,
        delay_seconds: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.delay_seconds = max(0.0, delay_seconds)
        self._sleep = sleep
        self.waits = 0

    async def wait(self) -> None:
        self.waits += 1
        if self.delay_seconds > 0:
            await self._sleep(self.delay_seconds)
