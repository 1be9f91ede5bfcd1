"""Shared fixtures: a seeded SQLite copy of the source schema."""

import logging
from datetime import datetime
from decimal import Decimal

import pytest
import structlog
from sqlalchemy import create_engine

from customer_revenue_ranking.storage.schema import (
    content_price,
    customer_data,
    customer_event_data,
    source_metadata,
)

PURCHASE = 6

# (ContentID, CustomerID, Quantity, EventTypeID, EventDate)
SOURCE_EVENTS = [
    (3, 1, 2, PURCHASE, datetime(2021, 5, 1, 10, 0)),
    (1, 2, 5, PURCHASE, datetime(2021, 6, 2, 11, 30)),
    (2, 3, 4, PURCHASE, datetime(2022, 1, 3, 9, 15)),
    (1, 3, 1, PURCHASE, datetime(2022, 2, 3, 9, 15)),
    (1, 4, 3, PURCHASE, datetime(2022, 3, 4, 8, 0)),
    (2, 5, 1, PURCHASE, datetime(2022, 4, 5, 12, 0)),
    (4, 6, 7, PURCHASE, datetime(2022, 5, 6, 13, 0)),
    (1, 7, 1, PURCHASE, datetime(2022, 6, 7, 14, 0)),
    (3, 8, 1, PURCHASE, datetime(2023, 7, 8, 15, 0)),
    # Before the default since date of 2020-04-01
    (3, 2, 10, PURCHASE, datetime(2019, 12, 31, 23, 0)),
    # Not a purchase
    (3, 5, 10, 5, datetime(2022, 4, 5, 12, 0)),
]

SOURCE_PRICES = {1: Decimal("10.00"), 2: Decimal("2.50"), 3: Decimal("99.99")}

#: Expected revenue per customer for purchases since 2020-04-01
EXPECTED_REVENUE = {
    1: Decimal("199.98"),
    8: Decimal("99.99"),
    2: Decimal("50.00"),
    4: Decimal("30.00"),
    3: Decimal("20.00"),
    7: Decimal("10.00"),
    5: Decimal("2.50"),
    6: Decimal("0"),
}


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo configure_logging() calls made by the code under test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def database_url(tmp_path):
    # File-backed so that every pooled connection sees the same data
    return f"sqlite:///{tmp_path / 'source.db'}"


@pytest.fixture
def seeded_engine(database_url):
    """Engine over a SQLite database holding the source tables and sample rows."""
    engine = create_engine(database_url)
    source_metadata.create_all(engine)

    with engine.begin() as conn:
        conn.execute(
            customer_data.insert(),
            [
                {
                    "CustomerChannelID": ref,
                    "CustomerID": ref,
                    "ChannelTypeID": 1,
                    "ChannelValue": f"customer{ref}@example.com",
                }
                for ref in range(1, 8)
            ]
            + [
                # Phone channel, must not be read as an email
                {
                    "CustomerChannelID": 100,
                    "CustomerID": 1,
                    "ChannelTypeID": 2,
                    "ChannelValue": "+33600000000",
                }
            ],
        )
        conn.execute(
            content_price.insert(),
            [
                {"ContentPriceID": ref, "ContentID": ref, "Price": price, "Currency": "EUR"}
                for ref, price in SOURCE_PRICES.items()
            ],
        )
        conn.execute(
            customer_event_data.insert(),
            [
                {
                    "EventDataID": idx,
                    "EventID": 1000 + idx,
                    "ContentID": content,
                    "CustomerID": customer,
                    "Quantity": quantity,
                    "EventTypeID": event_type,
                    "EventDate": event_date,
                    "InsertDate": event_date,
                }
                for idx, (content, customer, quantity, event_type, event_date) in enumerate(
                    SOURCE_EVENTS, start=1
                )
            ],
        )

    yield engine
    engine.dispose()


@pytest.fixture
def expected_revenue():
    return dict(EXPECTED_REVENUE)
