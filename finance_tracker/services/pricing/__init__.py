"""
Pricing Services Package

Market-price providers and the resolution chain that walks them.
"""

from finance_tracker.services.pricing.base import PriceSource, split_exchange, to_price
from finance_tracker.services.pricing.yahoo import YahooFinanceSource, extract_last_close
from finance_tracker.services.pricing.twelve_data import TwelveDataSource
from finance_tracker.services.pricing.resolver import PriceResolver

__all__ = [
    "PriceResolver",
    "PriceSource",
    "TwelveDataSource",
    "YahooFinanceSource",
    "extract_last_close",
    "split_exchange",
    "to_price",
]
