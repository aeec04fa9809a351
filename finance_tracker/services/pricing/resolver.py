"""
Price Resolution Chain

DESIGN DECISION: The resolver never raises (except on cancellation).
It walks the sources in priority order, waits for each provider's
throttle turn, absorbs every provider failure into PriceResult.errors
and stops at the first positive price.

Flow:
1. For each source in order:
   a. Skip with a configuration diagnostic if it is not configured
   b. Wait for the provider's throttle turn (stamped before the call)
   c. Call the provider
2. First positive price wins; later sources are never called
3. No positive price from anyone -> PriceResult with price=None
"""

from typing import Optional

import structlog

from finance_tracker.models.positions import InstrumentKind
from finance_tracker.models.results import PriceResult
from finance_tracker.services.clock import ProviderThrottle
from finance_tracker.services.errors import ConfigurationError, ProviderError
from finance_tracker.services.pricing.base import PriceSource


logger = structlog.get_logger(__name__)


class PriceResolver:
    """Ordered chain of price sources sharing one throttle."""

    def __init__(
        self,
        sources: list[PriceSource],
        throttle: Optional[ProviderThrottle] = None,
    ):
        if not sources:
            raise ValueError("PriceResolver needs at least one source")
        self._sources = list(sources)
        self._throttle = throttle or ProviderThrottle()

    @property
    def sources(self) -> list[PriceSource]:
        return list(self._sources)

    async def resolve(
        self,
        symbol: str,
        kind: InstrumentKind = InstrumentKind.STOCK,
    ) -> PriceResult:
        """Resolve a symbol to a positive price, or an explicit absent result."""
        result = PriceResult(symbol=symbol)
        log = logger.bind(symbol=symbol, kind=kind.value)

        for source in self._sources:
            try:
                source.check_configured()
            except ConfigurationError as e:
                result.configuration_error = str(e)
                result.errors.append(f"{source.name}: {e}")
                log.warning("price_source_not_configured", provider=source.name, error=str(e))
                continue

            await self._throttle.wait_turn(source.name, source.min_interval)

            try:
                price = await source.fetch_price(symbol, kind)
            except ConfigurationError as e:
                result.configuration_error = str(e)
                result.errors.append(f"{source.name}: {e}")
                log.warning("price_source_not_configured", provider=source.name, error=str(e))
                continue
            except ProviderError as e:
                result.errors.append(f"{source.name}: {e}")
                log.warning(
                    "price_source_failed",
                    provider=source.name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                continue
            except Exception as e:
                result.errors.append(f"{source.name}: {e}")
                log.exception("price_source_unexpected_error", provider=source.name)
                continue

            if price is not None and price > 0:
                result.price = price
                result.source = source.name
                log.info("price_resolved", provider=source.name, price=str(price))
                return result

            log.info("price_absent", provider=source.name, price=str(price))

        log.warning("price_unresolved", errors=result.errors)
        return result
