"""
Clock and Provider Throttle

DESIGN DECISION: Nothing in the engine reads the wall clock or sleeps
directly. Every "today", every interval measurement and every wait goes
through an injected Clock. Tests swap in a fake clock whose sleep
advances virtual time, so a three-attempt retry with 3s/6s backoff
runs instantly.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

import structlog


logger = structlog.get_logger(__name__)


class Clock(ABC):
    """Source of dates, elapsed time and waits."""

    @abstractmethod
    def today(self) -> date:
        pass

    @abstractmethod
    def monotonic(self) -> float:
        """Seconds on a monotonic scale; only differences are meaningful."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        pass


class SystemClock(Clock):
    """The real clock."""

    def today(self) -> date:
        return date.today()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ProviderThrottle:
    """
    Process-wide spacing of calls per provider.

    Each provider name has its own lock and last-call timestamp.
    wait_turn() blocks until min_interval has passed since the previous
    call to the same provider, then stamps the current time. The stamp
    is taken before the call is made, so a failed call still counts as
    a call.

    A caller cancelled while waiting leaves the timestamp untouched.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_call: dict[str, float] = {}

    def _lock_for(self, provider: str) -> asyncio.Lock:
        lock = self._locks.get(provider)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[provider] = lock
        return lock

    def last_call(self, provider: str) -> Optional[float]:
        """Monotonic time of the provider's last granted turn, if any."""
        return self._last_call.get(provider)

    async def wait_turn(self, provider: str, min_interval: float) -> float:
        """
        Wait until the provider may be called again.

        Returns:
            Seconds actually waited
        """
        async with self._lock_for(provider):
            waited = 0.0
            last = self._last_call.get(provider)
            if last is not None:
                remaining = min_interval - (self._clock.monotonic() - last)
                if remaining > 0:
                    logger.debug(
                        "throttle_wait",
                        provider=provider,
                        wait_seconds=round(remaining, 3),
                    )
                    await self._clock.sleep(remaining)
                    waited = remaining
            self._last_call[provider] = self._clock.monotonic()
            return waited
