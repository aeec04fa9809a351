"""
Services Package

External collaborators of the reconciliation engine:
- pricing: market-price providers and the resolution chain
- nav: bulk NAV table and its day-scoped cache
- storage: record stores and audit storage
- clock: injected time source and provider throttle
- errors: provider error taxonomy

Import from the sub-packages directly, e.g.
    from finance_tracker.services.pricing import PriceResolver
"""
