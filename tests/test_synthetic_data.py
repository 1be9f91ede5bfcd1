from datetime import date

import pytest

from customer_revenue_ranking.foundation.revenue import aggregate_revenue
from customer_revenue_ranking.synthetic import (
    DatasetConfig,
    generate_purchase_dataset,
)


def test_generate_purchase_dataset_basic_properties():
    dataset = generate_purchase_dataset(
        50, 10, date(2024, 1, 1), date(2024, 3, 31), config=DatasetConfig(seed=7)
    )

    customers = {e.customer_ref for e in dataset.events}
    assert customers == set(range(1, 51))  # every customer purchases at least once
    assert all(1 <= e.content_ref <= 10 for e in dataset.events)
    assert all(e.quantity >= 1 for e in dataset.events)
    assert all(date(2024, 1, 1) <= e.event_ts.date() <= date(2024, 3, 31) for e in dataset.events)
    assert all(e.event_type_id == 6 for e in dataset.events)
    assert set(dataset.prices) == set(range(1, 11))
    assert dataset.identities[3] == "customer3@example.com"
    assert all(price > 0 for price in dataset.prices.values())


def test_generate_purchase_dataset_is_sorted_by_time():
    dataset = generate_purchase_dataset(
        20, 5, date(2024, 1, 1), date(2024, 1, 31), config=DatasetConfig(seed=1)
    )
    keys = [(e.event_ts, e.customer_ref) for e in dataset.events]
    assert keys == sorted(keys)


def test_generate_purchase_dataset_is_reproducible_with_seed():
    args = (30, 8, date(2024, 1, 1), date(2024, 6, 30))
    first = generate_purchase_dataset(*args, config=DatasetConfig(seed=42))
    second = generate_purchase_dataset(*args, config=DatasetConfig(seed=42))
    assert first.events == second.events
    assert first.prices == second.prices


def test_missing_rates_drop_prices_and_identities():
    config = DatasetConfig(missing_price_rate=1.0, missing_identity_rate=1.0, seed=3)
    dataset = generate_purchase_dataset(
        10, 4, date(2024, 1, 1), date(2024, 1, 31), config=config
    )
    assert dataset.prices == {}
    assert dataset.identities == {}

    revenues = aggregate_revenue(dataset.events, dataset.prices, dataset.identities, parallel=False)
    assert all(c.revenue == 0 for c in revenues.values())
    assert all(c.identity == "no-email@unknown.com" for c in revenues.values())


def test_zero_customers_yields_empty_events():
    dataset = generate_purchase_dataset(0, 3, date(2024, 1, 1), date(2024, 1, 2))
    assert dataset.events == []
    assert len(dataset.prices) == 3


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"missing_price_rate": 1.5}, "missing_price_rate"),
        ({"missing_identity_rate": -0.1}, "missing_identity_rate"),
        ({"events_per_customer": -1}, "events_per_customer"),
    ],
)
def test_dataset_config_validation(kwargs, message):
    with pytest.raises(ValueError, match=message):
        DatasetConfig(**kwargs)


def test_invalid_arguments_raise():
    with pytest.raises(ValueError, match="start date"):
        generate_purchase_dataset(1, 1, date(2024, 2, 1), date(2024, 1, 1))
    with pytest.raises(ValueError, match="n_contents must be positive"):
        generate_purchase_dataset(1, 0, date(2024, 1, 1), date(2024, 1, 2))
