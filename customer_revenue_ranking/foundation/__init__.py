"""Foundational records and revenue aggregation.

This package exposes the purchase event and customer revenue records
together with the aggregator that folds events into per-customer revenue.
"""

from .events import (
    UNKNOWN_IDENTITY,
    CustomerRevenue,
    IdentityTable,
    PriceTable,
    PurchaseEvent,
    ref_sort_key,
)
from .revenue import RevenueAggregator, aggregate_revenue

__all__ = [
    "UNKNOWN_IDENTITY",
    "CustomerRevenue",
    "IdentityTable",
    "PriceTable",
    "PurchaseEvent",
    "RevenueAggregator",
    "aggregate_revenue",
    "ref_sort_key",
]
