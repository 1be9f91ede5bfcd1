"""Load identities, prices and purchase events from the source database."""

from __future__ import annotations

import logging
import time
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from tqdm import tqdm

from customer_revenue_ranking.config import (
    EMAIL_CHANNEL_TYPE_ID,
    PURCHASE_EVENT_TYPE_ID,
)
from customer_revenue_ranking.foundation.events import PurchaseEvent, to_decimal
from customer_revenue_ranking.storage.errors import DataLoadError
from customer_revenue_ranking.storage.schema import (
    content_price,
    customer_data,
    customer_event_data,
)

logger = logging.getLogger(__name__)


class PurchaseDataLoader:
    """Read the three inputs of the revenue engine from the source schema.

    Parameters
    ----------
    engine:
        SQLAlchemy engine connected to the source database.
    show_progress:
        Display a tqdm progress bar while reading purchase events.
    """

    def __init__(self, engine: Engine, show_progress: bool = False) -> None:
        self.engine = engine
        self.show_progress = show_progress

    def load_customer_identities(
        self, channel_type_id: int = EMAIL_CHANNEL_TYPE_ID
    ) -> dict[int, str]:
        """Map CustomerID to the channel value (email) of the given channel type."""
        logger.info("Loading customer emails...")
        started = time.perf_counter()

        query = select(customer_data.c.CustomerID, customer_data.c.ChannelValue).where(
            customer_data.c.ChannelTypeID == channel_type_id
        )
        try:
            with self.engine.connect() as conn:
                identities = {
                    int(customer_id): value
                    for customer_id, value in conn.execute(query)
                }
        except SQLAlchemyError as exc:
            raise DataLoadError("customer emails", str(exc)) from exc

        logger.info(
            f"Loaded {len(identities)} customer emails in "
            f"{time.perf_counter() - started:.2f}s"
        )
        return identities

    def load_content_prices(self) -> dict[int, Decimal]:
        """Map ContentID to unit price."""
        logger.info("Loading content prices...")
        started = time.perf_counter()

        query = select(content_price.c.ContentID, content_price.c.Price)
        try:
            with self.engine.connect() as conn:
                prices = {
                    int(content_id): to_decimal(price)
                    for content_id, price in conn.execute(query)
                }
        except SQLAlchemyError as exc:
            raise DataLoadError("content prices", str(exc)) from exc

        logger.info(
            f"Loaded {len(prices)} content prices in "
            f"{time.perf_counter() - started:.2f}s"
        )
        return prices

    def load_purchase_events(
        self,
        since: date | datetime,
        event_type_id: int = PURCHASE_EVENT_TYPE_ID,
    ) -> list[PurchaseEvent]:
        """Load purchase events dated on or after ``since``."""
        if not isinstance(since, datetime):
            since = datetime(since.year, since.month, since.day)
        logger.info(f"Loading purchase events since {since:%Y-%m-%d}...")
        started = time.perf_counter()

        table = customer_event_data
        condition = (table.c.EventTypeID == event_type_id) & (table.c.EventDate >= since)
        count_query = select(func.count()).select_from(table).where(condition)
        query = select(
            table.c.EventDataID,
            table.c.EventID,
            table.c.ContentID,
            table.c.CustomerID,
            table.c.EventTypeID,
            table.c.EventDate,
            table.c.Quantity,
            table.c.InsertDate,
        ).where(condition)

        try:
            with self.engine.connect() as conn:
                total = conn.execute(count_query).scalar_one()
                logger.info(f"Found {total} purchase events to load")

                rows = tqdm(
                    conn.execute(query),
                    total=total,
                    desc="Loading purchases",
                    disable=not self.show_progress,
                )
                events = [
                    PurchaseEvent(
                        content_ref=row.ContentID,
                        customer_ref=row.CustomerID,
                        quantity=int(row.Quantity),
                        event_ts=row.EventDate,
                        event_data_id=row.EventDataID,
                        event_id=row.EventID,
                        event_type_id=row.EventTypeID,
                        insert_ts=row.InsertDate,
                    )
                    for row in rows
                ]
        except SQLAlchemyError as exc:
            raise DataLoadError("purchase events", str(exc)) from exc

        logger.info(
            f"Loaded {len(events)} purchase events in "
            f"{time.perf_counter() - started:.2f}s"
        )
        return events
