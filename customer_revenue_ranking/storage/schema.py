"""SQLAlchemy table definitions for the source schema and export tables."""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    SmallInteger,
    String,
    Table,
    func,
)

source_metadata = MetaData()

customer_data = Table(
    "CustomerData",
    source_metadata,
    Column("CustomerChannelID", BigInteger, primary_key=True),
    Column("CustomerID", BigInteger, nullable=False),
    Column("ChannelTypeID", SmallInteger, nullable=False),
    Column("ChannelValue", String(600), nullable=False),
    Column("InsertDate", DateTime),
)

content_price = Table(
    "ContentPrice",
    source_metadata,
    Column("ContentPriceID", Integer, primary_key=True),
    Column("ContentID", Integer, nullable=False),
    Column("Price", Numeric(12, 2), nullable=False),
    Column("Currency", String(3)),
    Column("InsertDate", DateTime),
)

customer_event_data = Table(
    "CustomerEventData",
    source_metadata,
    Column("EventDataID", BigInteger, primary_key=True),
    Column("EventID", BigInteger),
    Column("ContentID", Integer, nullable=False),
    Column("CustomerID", BigInteger, nullable=False),
    Column("EventTypeID", SmallInteger, nullable=False),
    Column("EventDate", DateTime, nullable=False),
    Column("Quantity", SmallInteger, nullable=False),
    Column("InsertDate", DateTime),
)


def export_table(name: str, metadata: MetaData | None = None) -> Table:
    """Definition of a top-customer export table: CustomerID # Email # CA."""
    if metadata is None:
        metadata = MetaData()
    return Table(
        name,
        metadata,
        Column("CustomerID", BigInteger, primary_key=True, autoincrement=False),
        Column("Email", String(600), nullable=False),
        Column("CA", Numeric(12, 2), nullable=False),
        Column("InsertDate", DateTime, server_default=func.now()),
        Column("UpdateDate", DateTime, server_default=func.now(), onupdate=func.now()),
        Index(f"idx_{name}_ca", "CA"),
    )
