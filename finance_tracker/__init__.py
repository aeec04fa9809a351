"""
Finance Tracker - Reconciliation Engine

Keeps a personal portfolio of investments, loans and recurring fund
plans in line with the outside world: market prices, daily fund NAVs
and the passage of loan installments.

DESIGN PRINCIPLES:
1. A failing provider never aborts a run
2. Every run reports what it updated, failed and skipped
3. Shared state (throttle, NAV cache) is guarded and injected
4. Every change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
