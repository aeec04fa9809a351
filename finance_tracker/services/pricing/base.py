"""
Price Source Interface

DESIGN DECISION: Every market-price provider implements the same small
interface, so the resolver can walk an ordered chain of them without
knowing which concrete API sits behind each link.

A source either returns a price, returns None ("nothing usable in the
response") or raises one of the typed errors from services.errors.
"""

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from finance_tracker.models.positions import InstrumentKind


EXCHANGE_SUFFIXES = (".NS", ".BO")

# Exchange codes for the suffixes above
EXCHANGE_CODES = {".NS": "NSE", ".BO": "BSE"}


def split_exchange(symbol: str) -> tuple[str, Optional[str]]:
    """Split "INFY.BO" into ("INFY", ".BO"); symbols without a known suffix get None."""
    for suffix in EXCHANGE_SUFFIXES:
        if symbol.upper().endswith(suffix):
            return symbol[: -len(suffix)], suffix
    return symbol, None


def to_price(value: Any) -> Optional[Decimal]:
    """
    Coerce a JSON value to a Decimal price.

    Returns None for null, booleans, non-numeric strings, NaN and
    infinities. Zero and negative values are returned as-is; deciding
    whether they are usable is the caller's job.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price


class PriceSource(ABC):
    """
    One external market-price provider.

    Attributes:
        name: Provider name used for throttling, logging and PriceResult.source
        min_interval: Minimum seconds between two calls to this provider
    """

    name: str = "unknown"

    def __init__(
        self,
        min_interval: float,
        timeout: httpx.Timeout,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.min_interval = min_interval
        self._timeout = timeout
        self._client = client

    def check_configured(self) -> None:
        """
        Raise ConfigurationError if the provider cannot be used.

        Called by the resolver before waiting for a throttle turn, so an
        unconfigured provider costs neither a wait nor a network call.
        """
        return None

    @abstractmethod
    async def fetch_price(
        self,
        symbol: str,
        kind: InstrumentKind = InstrumentKind.STOCK,
    ) -> Optional[Decimal]:
        """
        Fetch the latest price for a symbol.

        Raises:
            ProviderError: Any provider failure (see services.errors)
        """
        pass

    async def _get(
        self,
        url: str,
        params: Optional[dict[str, str]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """GET through the shared client, or a short-lived one when none was injected."""
        if self._client is not None:
            return await self._client.get(
                url, params=params, headers=headers, timeout=self._timeout
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url, params=params, headers=headers)
