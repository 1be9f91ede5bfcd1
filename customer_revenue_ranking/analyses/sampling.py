"""Random preview of customer revenue records for diagnostics."""

from __future__ import annotations

import logging
import random
from typing import Hashable, Mapping, Optional

from customer_revenue_ranking.foundation.events import CustomerRevenue, ref_sort_key

logger = logging.getLogger(__name__)


def sample_customers(
    revenues: Mapping[Hashable, CustomerRevenue],
    count: int,
    rng: Optional[random.Random] = None,
    *,
    seed: Optional[int] = None,
) -> list[CustomerRevenue]:
    """Pick up to ``count`` customers at random.

    Parameters
    ----------
    revenues:
        Customer revenue records to sample from.
    count:
        Number of customers to return; all customers when ``count`` exceeds
        the population.
    rng:
        Random source. Takes precedence over ``seed``.
    seed:
        Seed for a private ``random.Random`` when ``rng`` is not given.

    The candidates are put in ``customer_ref`` order before sampling, so the
    result depends only on the random source and not on mapping order.
    """
    if count < 0:
        raise ValueError(f"Sample size cannot be negative: {count}")
    if rng is None:
        rng = random.Random(seed)

    candidates = sorted(
        revenues.values(), key=lambda c: ref_sort_key(c.customer_ref)
    )
    return rng.sample(candidates, min(count, len(candidates)))


def log_customer_sample(
    revenues: Mapping[Hashable, CustomerRevenue],
    count: int = 10,
    rng: Optional[random.Random] = None,
    *,
    seed: Optional[int] = None,
) -> list[CustomerRevenue]:
    """Log a random sample of customers and return it."""
    sample = sample_customers(revenues, count, rng, seed=seed)
    logger.info(f"Random sample of {len(sample)} customer revenue entries:")
    for customer in sample:
        logger.info(
            f"  CustomerID: {customer.customer_ref} | Email: {customer.identity} "
            f"| Revenue: {customer.revenue:.2f}"
        )
    return sample
