"""
NAV Services Package

The bulk AMFI NAV table and the day-scoped cache in front of it.
"""

from finance_tracker.services.nav.amfi import AmfiNavSource, parse_nav_line, parse_nav_table
from finance_tracker.services.nav.cache import NavTableSource, ReferencePriceCache

__all__ = [
    "AmfiNavSource",
    "NavTableSource",
    "ReferencePriceCache",
    "parse_nav_line",
    "parse_nav_table",
]
