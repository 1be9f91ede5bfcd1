"""Aggregate revenue statistics over a set of customers."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from customer_revenue_ranking.foundation.events import CustomerRevenue

# Monetary precision used for reporting: 2 decimal places
MONEY_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class RevenueSummary:
    """Count, total, average, max and min revenue of a customer set.

    The same statistics are computed in SQL by the exporter over the
    persisted table, so both can be compared after an export.
    """

    customer_count: int
    total_revenue: Decimal
    average_revenue: Decimal
    max_revenue: Decimal
    min_revenue: Decimal

    def __post_init__(self) -> None:
        if self.customer_count < 0:
            raise ValueError(
                f"Customer count cannot be negative: {self.customer_count}"
            )
        if self.max_revenue < self.min_revenue:
            raise ValueError(
                f"Max revenue ({self.max_revenue}) cannot be below "
                f"min revenue ({self.min_revenue})"
            )


def summarize_revenue(customers: Iterable[CustomerRevenue]) -> RevenueSummary:
    """Summarize revenues, rounded to 2 decimal places.

    >>> from decimal import Decimal
    >>> summary = summarize_revenue([
    ...     CustomerRevenue(1, "a", Decimal("10")),
    ...     CustomerRevenue(2, "b", Decimal("5")),
    ... ])
    >>> summary.average_revenue
    Decimal('7.50')
    """
    revenues = [customer.revenue for customer in customers]
    if not revenues:
        zero = Decimal("0").quantize(MONEY_PRECISION)
        return RevenueSummary(0, zero, zero, zero, zero)

    total = sum(revenues, Decimal("0"))
    return RevenueSummary(
        customer_count=len(revenues),
        total_revenue=total.quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP),
        average_revenue=(total / len(revenues)).quantize(
            MONEY_PRECISION, rounding=ROUND_HALF_UP
        ),
        max_revenue=max(revenues).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP),
        min_revenue=min(revenues).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP),
    )
