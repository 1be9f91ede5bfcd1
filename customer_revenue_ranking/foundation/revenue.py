"""Revenue aggregation from purchase events.

Folds a sequence of purchase events, a content price table and a customer
identity table into one :class:`CustomerRevenue` per customer.

Revenue is accumulated in ``Decimal`` arithmetic. Addition of decimal
amounts is exact, so the totals do not depend on the order in which events
are processed, and sharded (parallel) aggregation produces exactly the same
result as the serial path.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
from decimal import Decimal
from typing import Hashable, Optional, Sequence

from customer_revenue_ranking.foundation.events import (
    CustomerRevenue,
    IdentityTable,
    PriceTable,
    PurchaseEvent,
    resolve_identity,
    to_decimal,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _sum_event_chunk(
    events: Sequence[PurchaseEvent], prices: dict[Hashable, Decimal]
) -> tuple[dict[Hashable, Decimal], set[Hashable]]:
    """Accumulate revenue for a chunk of events.

    Runs inside multiprocessing workers as well as on the serial path.

    Returns
    -------
    tuple
        Mapping of customer_ref to partial revenue (in first-seen order) and
        the set of content refs that had no price.
    """
    totals: dict[Hashable, Decimal] = {}
    missing_prices: set[Hashable] = set()

    for event in events:
        price = prices.get(event.content_ref)
        if price is None:
            missing_prices.add(event.content_ref)
            price = ZERO
        contribution = price * event.quantity
        totals[event.customer_ref] = totals.get(event.customer_ref, ZERO) + contribution

    return totals, missing_prices


class RevenueAggregator:
    """Compute per-customer revenue from purchase events.

    Parameters
    ----------
    parallel:
        Allow sharding events across worker processes for large inputs.
    parallel_threshold:
        Minimum number of events before the parallel path is used.
    n_workers:
        Number of worker processes. Defaults to the CPU count.
    """

    def __init__(
        self,
        parallel: bool = True,
        parallel_threshold: int = 1_000_000,
        n_workers: Optional[int] = None,
    ) -> None:
        if parallel_threshold < 1:
            raise ValueError(
                f"parallel_threshold must be at least 1: {parallel_threshold}"
            )
        self.parallel = parallel
        self.parallel_threshold = parallel_threshold
        self.n_workers = n_workers

    def aggregate(
        self,
        events: Sequence[PurchaseEvent],
        prices: PriceTable,
        identities: IdentityTable,
    ) -> dict[Hashable, CustomerRevenue]:
        """Aggregate events into a revenue record per customer.

        Unknown content refs contribute zero revenue. Customers without an
        identity get :data:`~customer_revenue_ranking.foundation.events.UNKNOWN_IDENTITY`.
        None of the inputs are modified.

        Parameters
        ----------
        events:
            Purchase events, in any order.
        prices:
            Unit price per content ref.
        identities:
            Display identity per customer ref.

        Returns
        -------
        dict
            ``CustomerRevenue`` keyed by customer ref, in first-seen order.

        Examples
        --------
        >>> from datetime import datetime
        >>> ts = datetime(2023, 1, 1)
        >>> events = [
        ...     PurchaseEvent(1, 100, 2, ts),
        ...     PurchaseEvent(1, 100, 1, ts),
        ...     PurchaseEvent(2, 200, 5, ts),
        ... ]
        >>> result = RevenueAggregator().aggregate(
        ...     events, {1: 10.0, 2: 3.0}, {100: "a@x.com"}
        ... )
        >>> result[100].revenue
        Decimal('30.0')
        >>> result[200].identity
        'no-email@unknown.com'
        """
        if not events:
            return {}

        decimal_prices = {ref: to_decimal(price) for ref, price in prices.items()}

        use_parallel = self.parallel and len(events) >= self.parallel_threshold
        if use_parallel:
            totals, missing_prices = self._aggregate_parallel(events, decimal_prices)
        else:
            totals, missing_prices = _sum_event_chunk(events, decimal_prices)

        if missing_prices:
            logger.warning(
                f"{len(missing_prices)} content refs have no price; "
                "their events contribute zero revenue"
            )

        return {
            customer_ref: CustomerRevenue(
                customer_ref=customer_ref,
                identity=resolve_identity(identities, customer_ref),
                revenue=revenue,
            )
            for customer_ref, revenue in totals.items()
        }

    def _aggregate_parallel(
        self, events: Sequence[PurchaseEvent], prices: dict[Hashable, Decimal]
    ) -> tuple[dict[Hashable, Decimal], set[Hashable]]:
        if self.n_workers is None:
            workers = os.cpu_count() or 1
        else:
            workers = max(1, self.n_workers)

        chunk_size = max(1, -(-len(events) // workers))
        chunks = [
            (list(events[i : i + chunk_size]), prices)
            for i in range(0, len(events), chunk_size)
        ]
        logger.info(
            f"Aggregating {len(events)} events in {len(chunks)} chunks "
            f"across {workers} workers"
        )

        with multiprocessing.Pool(processes=workers) as pool:
            partials = pool.starmap(_sum_event_chunk, chunks)

        # Chunks are contiguous and merged in order, which keeps first-seen
        # ordering identical to the serial path.
        totals: dict[Hashable, Decimal] = {}
        missing_prices: set[Hashable] = set()
        for partial_totals, partial_missing in partials:
            for customer_ref, revenue in partial_totals.items():
                totals[customer_ref] = totals.get(customer_ref, ZERO) + revenue
            missing_prices |= partial_missing
        return totals, missing_prices


def aggregate_revenue(
    events: Sequence[PurchaseEvent],
    prices: PriceTable,
    identities: IdentityTable,
    parallel: bool = True,
    parallel_threshold: int = 1_000_000,
    n_workers: Optional[int] = None,
) -> dict[Hashable, CustomerRevenue]:
    """Functional wrapper around :meth:`RevenueAggregator.aggregate`."""
    aggregator = RevenueAggregator(
        parallel=parallel, parallel_threshold=parallel_threshold, n_workers=n_workers
    )
    return aggregator.aggregate(events, prices, identities)
