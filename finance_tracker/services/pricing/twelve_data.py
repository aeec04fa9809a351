"""
Twelve Data price source (secondary).

Exactly one attempt per symbol, no retry. Requires an API key; without
one the source raises ConfigurationError before touching the network.
"""

from decimal import Decimal
from typing import Optional

import httpx
import structlog

from finance_tracker.config import AppSettings, TwelveDataSettings, get_settings
from finance_tracker.models.positions import InstrumentKind
from finance_tracker.services.errors import (
    ConfigurationError,
    MalformedDataError,
    ProviderError,
    TransientProviderError,
)
from finance_tracker.services.pricing.base import (
    EXCHANGE_CODES,
    PriceSource,
    split_exchange,
    to_price,
)


logger = structlog.get_logger(__name__)


class TwelveDataSource(PriceSource):
    """Secondary provider, queried only when the primary came back empty."""

    name = "twelve_data"

    def __init__(
        self,
        settings: Optional[TwelveDataSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().twelve_data
        app = app_settings or get_settings().app
        super().__init__(
            min_interval=self._settings.min_interval_seconds,
            timeout=httpx.Timeout(
                self._settings.timeout_seconds,
                connect=app.connect_timeout_seconds,
            ),
            client=client,
        )

    def check_configured(self) -> None:
        if not self._settings.api_key:
            raise ConfigurationError(
                "Twelve Data API key is not configured (set TWELVEDATA_API_KEY)",
                provider=self.name,
            )

    async def fetch_price(
        self,
        symbol: str,
        kind: InstrumentKind = InstrumentKind.STOCK,
    ) -> Optional[Decimal]:
        self.check_configured()

        base_symbol, suffix = split_exchange(symbol.strip())
        exchange = EXCHANGE_CODES.get(suffix or "", "NSE")

        try:
            response = await self._get(
                f"{self._settings.base_url.rstrip('/')}/price",
                params={
                    "symbol": base_symbol,
                    "exchange": exchange,
                    "apikey": self._settings.api_key,
                },
            )
        except httpx.TransportError as e:
            raise TransientProviderError(f"{type(e).__name__}: {e}", provider=self.name)

        if response.status_code != 200:
            raise ProviderError(
                f"Unexpected status (HTTP {response.status_code})", provider=self.name
            )

        try:
            payload = response.json(parse_float=Decimal)
        except ValueError as e:
            raise MalformedDataError(f"Undecodable body: {e}", provider=self.name)

        if not isinstance(payload, dict):
            raise MalformedDataError("Quote body is not an object", provider=self.name)

        # Twelve Data reports errors with HTTP 200 and a code/status field
        if "code" in payload or payload.get("status") == "error":
            raise ProviderError(
                f"Provider error: {payload.get('message', payload.get('code'))}",
                provider=self.name,
            )

        price = to_price(payload.get("price"))
        logger.debug(
            "twelve_data_price_parsed",
            symbol=base_symbol,
            exchange=exchange,
            price=str(price),
        )
        return price
