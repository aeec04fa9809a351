"""
Yahoo Finance price source (primary).

Reads the daily chart endpoint and takes the last close of the series.
Rate limits (HTTP 429) and transient failures are retried with
exponential backoff through tenacity; the backoff sleeps go through the
injected clock.
"""

from decimal import Decimal
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.config import AppSettings, YahooFinanceSettings, get_settings
from finance_tracker.models.positions import InstrumentKind
from finance_tracker.services.clock import Clock, SystemClock
from finance_tracker.services.errors import (
    MalformedDataError,
    ProviderError,
    RateLimitedError,
    TransientProviderError,
)
from finance_tracker.services.pricing.base import PriceSource, split_exchange, to_price


logger = structlog.get_logger(__name__)


def extract_last_close(payload: Any) -> Optional[Decimal]:
    """
    Last entry of chart.result[0].indicators.quote[0].close.

    An empty series or a null / non-numeric last entry yields None.

    Raises:
        MalformedDataError: If the document does not have the chart shape
    """
    try:
        result = payload["chart"]["result"][0]
        closes = result["indicators"]["quote"][0]["close"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedDataError(
            f"Unexpected chart document: {e!r}", provider=YahooFinanceSource.name
        )
    if not isinstance(closes, list) or not closes:
        return None
    return to_price(closes[-1])


class YahooFinanceSource(PriceSource):
    """Primary provider: up to max_attempts calls per symbol."""

    name = "yahoo_finance"

    def __init__(
        self,
        settings: Optional[YahooFinanceSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().yahoo
        app = app_settings or get_settings().app
        super().__init__(
            min_interval=self._settings.min_interval_seconds,
            timeout=httpx.Timeout(
                self._settings.timeout_seconds,
                connect=app.connect_timeout_seconds,
            ),
            client=client,
        )
        self._clock = clock or SystemClock()

    def quote_symbol(self, symbol: str) -> str:
        """Append the default exchange suffix unless the symbol already has one."""
        symbol = symbol.strip()
        _, suffix = split_exchange(symbol)
        if suffix is None:
            return symbol + self._settings.default_exchange_suffix
        return symbol

    async def fetch_price(
        self,
        symbol: str,
        kind: InstrumentKind = InstrumentKind.STOCK,
    ) -> Optional[Decimal]:
        """
        Fetch the last close, retrying rate limits and transient failures.

        The last RateLimitedError / TransientProviderError is re-raised
        once the attempt cap is reached.
        """
        quoted = self.quote_symbol(symbol)
        url = f"{self._settings.base_url.rstrip('/')}/v8/finance/chart/{quoted}"

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_exponential(
                multiplier=self._settings.initial_backoff_seconds,
                exp_base=2,
            ),
            retry=retry_if_exception_type((RateLimitedError, TransientProviderError)),
            sleep=self._clock.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._fetch_once(url, quoted)
        return None

    async def _fetch_once(self, url: str, quoted: str) -> Optional[Decimal]:
        try:
            response = await self._get(
                url,
                params={"interval": "1d"},
                headers={"User-Agent": self._settings.user_agent},
            )
        except httpx.TransportError as e:
            raise TransientProviderError(f"{type(e).__name__}: {e}", provider=self.name)

        if response.status_code == 429:
            raise RateLimitedError("Rate limited (HTTP 429)", provider=self.name)
        if response.status_code >= 500:
            raise TransientProviderError(
                f"Server error (HTTP {response.status_code})", provider=self.name
            )
        if response.status_code != 200:
            raise ProviderError(
                f"Unexpected status (HTTP {response.status_code})", provider=self.name
            )

        try:
            payload = response.json(parse_float=Decimal)
        except ValueError as e:
            raise TransientProviderError(f"Undecodable body: {e}", provider=self.name)

        price = extract_last_close(payload)
        logger.debug("yahoo_close_parsed", symbol=quoted, price=str(price))
        return price

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "yahoo_retry",
            attempt=retry_state.attempt_number,
            backoff_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error),
            rate_limited=isinstance(error, RateLimitedError),
        )
