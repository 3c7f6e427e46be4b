"""Pacing primitives that throttle provider calls.

Every fetch in an ingestion run first awaits ``pacer.wait()``. One pacer
instance is shared by all drivers of a service, so a manual run and a
scheduled run cannot together exceed the configured rate.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from aiolimiter import AsyncLimiter

from tickerbase.core.config import IngestionConfig
from tickerbase.core.models import PacingStrategy

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


@runtime_checkable
class Pacer(Protocol):
    """Blocks until the next provider call is allowed."""

    async def wait(self) -> None: ...

    async def pause(self, seconds: float) -> None:
        """Unconditional pause, used between logical batches."""
        ...


class FixedDelayPacer:
    """Enforces a minimum interval between consecutive calls.

    The first call passes immediately. Later calls sleep for whatever part
    of ``min_interval`` has not already elapsed since the previous one.

    Parameters
    ----------
    min_interval : float
        Minimum seconds between two ``wait()`` returns.
    sleep, clock :
        Injection points for tests; default to ``asyncio.sleep`` and
        ``time.monotonic``.
    """

    def __init__(
        self,
        min_interval: float,
        sleep: Sleep | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._interval = min_interval
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic
        self._last: float | None = None
        self._lock = asyncio.Lock()

    @property
    def min_interval(self) -> float:
        return self._interval

    async def wait(self) -> None:
        async with self._lock:
            if self._last is not None:
                remaining = self._interval - (self._clock() - self._last)
                if remaining > 0:
                    await self._sleep(remaining)
            self._last = self._clock()

    async def pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)


class TokenBucketPacer:
    """Token-bucket limiter backed by ``aiolimiter.AsyncLimiter``.

    Allows ``max_rate`` calls per ``time_period`` seconds with bursts up to
    ``max_rate``.
    """

    def __init__(
        self,
        max_rate: float,
        time_period: float = 1.0,
        sleep: Sleep | None = None,
    ) -> None:
        self._limiter = AsyncLimiter(max_rate=max_rate, time_period=time_period)
        self._sleep = sleep or asyncio.sleep

    async def wait(self) -> None:
        await self._limiter.acquire()

    async def pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)


def create_pacer(config: IngestionConfig) -> Pacer:
    """Build the pacer selected by ``config.pacing``."""
    if config.pacing == PacingStrategy.TOKEN_BUCKET and config.symbol_delay > 0:
        # one token per symbol_delay seconds, no burst beyond one call
        return TokenBucketPacer(max_rate=1, time_period=config.symbol_delay)
    return FixedDelayPacer(config.symbol_delay)
