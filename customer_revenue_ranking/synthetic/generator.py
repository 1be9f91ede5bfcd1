from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import math
import random
from decimal import Decimal
from typing import Dict, List, Optional

from customer_revenue_ranking.foundation.events import PurchaseEvent


@dataclass(frozen=True)
class DatasetConfig:
    """Configuration for synthetic purchase datasets.

    Attributes
    ----------
    events_per_customer: Average number of purchases per customer.
    mean_unit_price: Average content price.
    price_variability: Coefficient in (0, 1] controlling price variance.
    quantity_mean: Average quantity per purchase.
    missing_price_rate: Share of content refs left out of the price table.
    missing_identity_rate: Share of customers left out of the identity table.
    seed: Optional RNG seed for reproducibility.
    """

    events_per_customer: float = 4.0
    mean_unit_price: float = 12.0
    price_variability: float = 0.5
    quantity_mean: float = 1.5
    missing_price_rate: float = 0.0
    missing_identity_rate: float = 0.0
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("missing_price_rate", "missing_identity_rate"):
            rate = getattr(self, name)
            if not 0 <= rate <= 1:
                raise ValueError(f"{name} must be between 0 and 1: {rate}")
        if self.events_per_customer < 0:
            raise ValueError(
                f"events_per_customer cannot be negative: {self.events_per_customer}"
            )


@dataclass
class PurchaseDataset:
    """Events plus the price and identity tables they refer to."""

    events: List[PurchaseEvent]
    prices: Dict[int, Decimal] = field(default_factory=dict)
    identities: Dict[int, str] = field(default_factory=dict)


def _sample_price(rng: random.Random, mean: float, variability: float) -> Decimal:
    variability = min(max(variability, 0.01), 1.0)
    # Log-normal-ish by exponentiating a normal draw for positivity
    sigma = variability
    mu = math.log(max(mean, 0.01)) - 0.5 * sigma * sigma
    price = math.exp(rng.normalvariate(mu, sigma))
    return Decimal(str(round(max(price, 0.01), 2)))


def _sample_quantity(rng: random.Random, mean_q: float) -> int:
    # Discretized log-normal for positive integer quantities
    q = max(1.0, rng.lognormvariate(mu=math.log(max(mean_q, 0.1)), sigma=0.5))
    return max(1, int(round(q)))


def _sample_event_count(rng: random.Random, lam: float) -> int:
    # Knuth's Poisson draw; at least one event so every customer is observed
    if lam <= 0:
        return 1
    L = math.exp(-lam)
    k = 0
    p = 1.0
    while p > L:
        k += 1
        p *= rng.random()
    return max(1, k - 1)


def generate_purchase_dataset(
    n_customers: int,
    n_contents: int,
    start: date,
    end: date,
    *,
    config: Optional[DatasetConfig] = None,
) -> PurchaseDataset:
    """Generate purchase events for ``n_customers`` over ``n_contents`` items.

    Customer refs are ``1..n_customers`` and content refs ``1..n_contents``.
    Every customer has at least one event dated between ``start`` and
    ``end``. Identities follow the ``customer{ref}@example.com`` pattern.
    """

    if n_customers < 0 or n_contents < 0:
        raise ValueError("n_customers and n_contents cannot be negative")
    if start > end:
        raise ValueError("start date must be <= end date")
    if n_customers > 0 and n_contents == 0:
        raise ValueError("n_contents must be positive when generating events")
    config = config or DatasetConfig()
    rng = random.Random(config.seed)
    total_days = (end - start).days + 1

    prices: Dict[int, Decimal] = {}
    for content_ref in range(1, n_contents + 1):
        price = _sample_price(rng, config.mean_unit_price, config.price_variability)
        if rng.random() >= config.missing_price_rate:
            prices[content_ref] = price

    identities: Dict[int, str] = {}
    events: List[PurchaseEvent] = []
    for customer_ref in range(1, n_customers + 1):
        if rng.random() >= config.missing_identity_rate:
            identities[customer_ref] = f"customer{customer_ref}@example.com"

        for _ in range(_sample_event_count(rng, config.events_per_customer)):
            day = start + timedelta(days=rng.randrange(total_days))
            events.append(
                PurchaseEvent(
                    content_ref=rng.randint(1, n_contents),
                    customer_ref=customer_ref,
                    quantity=_sample_quantity(rng, config.quantity_mean),
                    event_ts=datetime(
                        day.year, day.month, day.day, rng.randrange(24), rng.randrange(60)
                    ),
                    event_type_id=6,
                )
            )

    events.sort(key=lambda e: (e.event_ts, e.customer_ref))
    return PurchaseDataset(events=events, prices=prices, identities=identities)
