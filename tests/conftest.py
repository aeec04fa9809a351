"""
Shared test fixtures for Finance Tracker.

No test touches the network or the wall clock:
- FakeClock: today() is fixed, sleep() advances virtual time instantly
- StubPriceSource: scripted provider answers
- httpx.MockTransport (in the provider tests) for HTTP
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional, Union

import httpx
import pytest

from finance_tracker.config import AppSettings
from finance_tracker.models.positions import InstrumentKind
from finance_tracker.services.clock import Clock
from finance_tracker.services.errors import ConfigurationError
from finance_tracker.services.pricing import PriceSource


TODAY = date(2026, 10, 19)


class FakeClock(Clock):
    """Virtual clock; sleeping advances monotonic time without waiting."""

    def __init__(self, today: date = TODAY, start: float = 1000.0):
        self.current_date = today
        self.now = start
        self.sleeps: list[float] = []

    def today(self) -> date:
        return self.current_date

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self.now += seconds


Answer = Union[Decimal, None, Exception]


class StubPriceSource(PriceSource):
    """
    Price source that replays scripted answers.

    Each call pops the next answer (the last one repeats). Exceptions
    are raised, anything else is returned.
    """

    def __init__(
        self,
        name: str,
        answers: list[Answer],
        min_interval: float = 0.0,
        clock: Optional[FakeClock] = None,
        configured: bool = True,
    ):
        super().__init__(min_interval=min_interval, timeout=httpx.Timeout(1.0))
        self.name = name
        self._answers = list(answers)
        self._clock = clock
        self._configured = configured
        self.calls: list[str] = []
        self.call_times: list[float] = []

    def check_configured(self) -> None:
        if not self._configured:
            raise ConfigurationError(f"{self.name} is not configured", provider=self.name)

    async def fetch_price(
        self,
        symbol: str,
        kind: InstrumentKind = InstrumentKind.STOCK,
    ) -> Optional[Decimal]:
        self.calls.append(symbol)
        if self._clock is not None:
            self.call_times.append(self._clock.monotonic())
        answer = self._answers.pop(0) if len(self._answers) > 1 else self._answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(connect_timeout_seconds=5)
