"""Portfolio summary queries package."""

from finance_tracker.queries.summaries import PortfolioQueries, QueryError

__all__ = ["PortfolioQueries", "QueryError"]
