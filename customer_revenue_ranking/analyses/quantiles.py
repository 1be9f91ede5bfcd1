"""Top-quantile selection and quantile bucket statistics.

Both operations rank the customer population by revenue, highest first.
Customers with equal revenue are ordered by ``customer_ref`` ascending, so
the ranking, and therefore which tied customers fall inside a cutoff, is
the same on every run for the same input.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from numbers import Real
from typing import Hashable, Mapping

from customer_revenue_ranking.foundation.events import CustomerRevenue, ref_sort_key

logger = logging.getLogger(__name__)

# Even when quantile * population rounds down to zero we return the best customer
MIN_TOP_CUSTOMERS = 1


class QuantileError(ValueError):
    """Base class for quantile selection and statistics failures."""


class InvalidQuantileError(QuantileError):
    """Raised when a quantile is not a number in (0, 1]."""

    def __init__(self, quantile: object) -> None:
        super().__init__(f"Quantile must be a number in (0, 1]: {quantile!r}")
        self.quantile = quantile


class InsufficientPopulationError(QuantileError):
    """Raised when there are fewer customers than quantile buckets."""

    def __init__(self, customer_count: int, bucket_count: int) -> None:
        super().__init__(
            f"Cannot split {customer_count} customers into {bucket_count} "
            "quantile buckets"
        )
        self.customer_count = customer_count
        self.bucket_count = bucket_count


@dataclass(frozen=True)
class QuantileBucket:
    """Summary of one contiguous rank range of the revenue-sorted population.

    Attributes
    ----------
    index:
        0-based bucket rank; bucket 0 holds the highest revenues.
    customer_count:
        Number of customers in the bucket.
    max_revenue:
        Highest revenue in the bucket.
    min_revenue:
        Lowest revenue in the bucket.
    """

    index: int
    customer_count: int
    max_revenue: Decimal
    min_revenue: Decimal

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"Bucket index cannot be negative: {self.index}")
        if self.customer_count <= 0:
            raise ValueError(
                f"Bucket customer count must be positive: {self.customer_count}"
            )
        if self.max_revenue < self.min_revenue:
            raise ValueError(
                f"Bucket max revenue ({self.max_revenue}) is below min revenue "
                f"({self.min_revenue}) (index={self.index})"
            )


def validate_quantile(quantile: object) -> float:
    """Return ``quantile`` as a float, or raise :class:`InvalidQuantileError`."""
    if isinstance(quantile, bool) or not isinstance(quantile, Real):
        raise InvalidQuantileError(quantile)
    value = float(quantile)
    # NaN fails both comparisons
    if not 0 < value <= 1:
        raise InvalidQuantileError(quantile)
    return value


def rank_customers(
    revenues: Mapping[Hashable, CustomerRevenue],
) -> list[CustomerRevenue]:
    """Return customers sorted by revenue descending, then customer_ref ascending.

    The mapping's iteration order has no influence on the result.
    Tied refs are ordered with :func:`ref_sort_key`, so refs of mixed types
    (e.g. ints and strings) are supported.
    """
    return sorted(
        revenues.values(), key=lambda c: (-c.revenue, ref_sort_key(c.customer_ref))
    )


def top_customer_count(total_customers: int, quantile: float) -> int:
    """Number of customers in the top ``quantile`` of a population."""
    if total_customers <= 0:
        return 0
    return max(MIN_TOP_CUSTOMERS, math.floor(total_customers * quantile))


class QuantileSelector:
    """Select the top revenue quantile of a customer population.

    Parameters
    ----------
    quantile:
        Fraction of customers to keep, in (0, 1]. 0.025 keeps the top 2.5%.
    """

    def __init__(self, quantile: float) -> None:
        self.quantile = validate_quantile(quantile)

    def select_top(
        self, revenues: Mapping[Hashable, CustomerRevenue]
    ) -> dict[Hashable, CustomerRevenue]:
        """Return the highest-revenue customers, keyed by customer_ref in rank order.

        At least one customer is returned whenever ``revenues`` is non-empty.
        The input mapping and its records are not modified.

        Examples
        --------
        >>> from decimal import Decimal
        >>> revenues = {
        ...     100: CustomerRevenue(100, "a@x.com", Decimal("30")),
        ...     200: CustomerRevenue(200, "b@x.com", Decimal("15")),
        ... }
        >>> list(QuantileSelector(0.5).select_top(revenues))
        [100]
        """
        ranked = rank_customers(revenues)
        top_count = top_customer_count(len(ranked), self.quantile)

        logger.info(
            f"Selected {top_count} of {len(ranked)} customers "
            f"(top {self.quantile * 100:.1f}%)"
        )
        return {customer.customer_ref: customer for customer in ranked[:top_count]}


class QuantileStatsCalculator:
    """Partition the ranked population into equal-sized quantile buckets.

    Parameters
    ----------
    quantile:
        Bucket width as a fraction of the population, in (0, 1].
        ``floor(1 / quantile)`` buckets are produced.
    """

    def __init__(self, quantile: float) -> None:
        self.quantile = validate_quantile(quantile)

    @property
    def bucket_count(self) -> int:
        return math.floor(1 / self.quantile)

    def compute_stats(
        self, revenues: Mapping[Hashable, CustomerRevenue]
    ) -> list[QuantileBucket]:
        """Compute count, max and min revenue for each quantile bucket.

        Every bucket holds ``total // bucket_count`` customers except the
        last, which also absorbs the remainder.

        Raises
        ------
        InsufficientPopulationError
            If the population is non-empty but smaller than the number of
            buckets.

        Examples
        --------
        >>> from decimal import Decimal
        >>> revenues = {
        ...     i: CustomerRevenue(i, "x", Decimal(i)) for i in range(1, 6)
        ... }
        >>> [b.customer_count for b in QuantileStatsCalculator(0.5).compute_stats(revenues)]
        [2, 3]
        """
        ranked = rank_customers(revenues)
        total = len(ranked)
        if total == 0:
            return []

        bucket_count = self.bucket_count
        bucket_size = total // bucket_count
        if bucket_size == 0:
            raise InsufficientPopulationError(total, bucket_count)

        buckets: list[QuantileBucket] = []
        for index in range(bucket_count):
            start = index * bucket_size
            if start >= total:
                break
            end = total if index == bucket_count - 1 else start + bucket_size
            members = ranked[start:end]
            buckets.append(
                QuantileBucket(
                    index=index,
                    customer_count=len(members),
                    max_revenue=members[0].revenue,
                    min_revenue=members[-1].revenue,
                )
            )

        logger.info(f"Calculated {len(buckets)} quantile buckets for {total} customers")
        return buckets


def bucket_rank_range(bucket: QuantileBucket, quantile: float) -> tuple[float, float]:
    """Percent range of the ranked population nominally covered by ``bucket``.

    >>> bucket_rank_range(QuantileBucket(1, 10, Decimal("5"), Decimal("1")), 0.025)
    (2.5, 5.0)
    """
    quantile = validate_quantile(quantile)
    lower = round(bucket.index * quantile * 100, 6)
    upper = round((bucket.index + 1) * quantile * 100, 6)
    return lower, upper


def select_top_customers(
    revenues: Mapping[Hashable, CustomerRevenue], quantile: float
) -> dict[Hashable, CustomerRevenue]:
    """Functional wrapper around :meth:`QuantileSelector.select_top`."""
    return QuantileSelector(quantile).select_top(revenues)


def calculate_quantile_stats(
    revenues: Mapping[Hashable, CustomerRevenue], quantile: float
) -> list[QuantileBucket]:
    """Functional wrapper around :meth:`QuantileStatsCalculator.compute_stats`."""
    return QuantileStatsCalculator(quantile).compute_stats(revenues)
