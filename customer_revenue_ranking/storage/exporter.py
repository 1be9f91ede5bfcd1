"""Export top customers to a dated table and report on exported data."""

from __future__ import annotations

import logging
import time
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Hashable, Mapping, Optional, Sequence

from sqlalchemy import Table, func, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from tqdm import tqdm

from customer_revenue_ranking.analyses.summary import RevenueSummary
from customer_revenue_ranking.foundation.events import CustomerRevenue, to_decimal
from customer_revenue_ranking.storage.errors import ExportError
from customer_revenue_ranking.storage.schema import export_table

logger = logging.getLogger(__name__)

# Persisted revenue precision: DECIMAL(12,2)
REVENUE_PRECISION = Decimal("0.01")

DEFAULT_BATCH_SIZE = 1000
DEFAULT_TABLE_PREFIX = "test_export_"


def round_revenue(revenue: Decimal) -> Decimal:
    """Round revenue to 2 decimal places for storage."""
    return revenue.quantize(REVENUE_PRECISION, rounding=ROUND_HALF_UP)


class TopCustomerExporter:
    """Upsert top customers into a date-stamped table.

    Re-exporting a customer already present in the table overwrites its
    email and revenue, so running the export twice on the same day is
    idempotent.

    Parameters
    ----------
    engine:
        SQLAlchemy engine for the destination database (MySQL, PostgreSQL
        or SQLite).
    batch_size:
        Rows per multi-row INSERT statement.
    table_prefix:
        Prefix of the export table name; the run date (YYYYMMDD) is appended.
    show_progress:
        Display a tqdm progress bar while inserting.
    """

    def __init__(
        self,
        engine: Engine,
        batch_size: int = DEFAULT_BATCH_SIZE,
        table_prefix: str = DEFAULT_TABLE_PREFIX,
        show_progress: bool = False,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive: {batch_size}")
        self.engine = engine
        self.batch_size = batch_size
        self.table_prefix = table_prefix
        self.show_progress = show_progress

    def export_table_name(self, day: Optional[date] = None) -> str:
        """Return the export table name for ``day`` (today by default)."""
        day = day or date.today()
        return f"{self.table_prefix}{day:%Y%m%d}"

    def export_top_customers(
        self,
        top_customers: Mapping[Hashable, CustomerRevenue],
        day: Optional[date] = None,
    ) -> str:
        """Create the dated export table if needed and upsert ``top_customers``.

        Returns
        -------
        str
            Name of the export table.
        """
        logger.info("Exporting top customers to database...")
        started = time.perf_counter()

        table_name = self.export_table_name(day)
        table = export_table(table_name)

        try:
            logger.info(f"Creating/verifying table '{table_name}'...")
            table.create(self.engine, checkfirst=True)
            logger.info(f"Table '{table_name}' ready")

            customers = list(top_customers.values())
            if not customers:
                logger.warning("No customers to export")
                return table_name

            with self.engine.begin() as conn:
                self._upsert_customers(conn, table, customers)
        except SQLAlchemyError as exc:
            raise ExportError(f"Error exporting to table '{table_name}': {exc}") from exc

        logger.info(
            f"Successfully exported {len(customers)} customers to table "
            f"'{table_name}' in {time.perf_counter() - started:.2f}s"
        )
        return table_name

    def _upsert_customers(
        self, conn: Connection, table: Table, customers: Sequence[CustomerRevenue]
    ) -> None:
        total_batches = -(-len(customers) // self.batch_size)
        logger.info(f"Inserting {len(customers)} customers in {total_batches} batches...")

        with tqdm(
            total=len(customers), desc="Exporting", disable=not self.show_progress
        ) as progress:
            for start in range(0, len(customers), self.batch_size):
                batch = customers[start : start + self.batch_size]
                rows = [
                    {
                        "CustomerID": customer.customer_ref,
                        "Email": customer.identity,
                        "CA": round_revenue(customer.revenue),
                    }
                    for customer in batch
                ]
                conn.execute(self._upsert_statement(table, rows))
                progress.update(len(batch))

    def _upsert_statement(self, table: Table, rows: list[dict[str, Any]]):
        dialect = self.engine.dialect.name
        if dialect == "mysql":
            from sqlalchemy.dialects.mysql import insert as mysql_insert

            stmt = mysql_insert(table).values(rows)
            return stmt.on_duplicate_key_update(
                Email=stmt.inserted.Email,
                CA=stmt.inserted.CA,
                UpdateDate=func.now(),
            )
        if dialect in ("sqlite", "postgresql"):
            if dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert as conflict_insert
            else:
                from sqlalchemy.dialects.postgresql import insert as conflict_insert

            stmt = conflict_insert(table).values(rows)
            return stmt.on_conflict_do_update(
                index_elements=[table.c.CustomerID],
                set_={
                    "Email": stmt.excluded.Email,
                    "CA": stmt.excluded.CA,
                    "UpdateDate": func.now(),
                },
            )
        raise ExportError(f"Upsert is not supported for dialect '{dialect}'")

    def get_export_stats(self, table_name: str) -> RevenueSummary:
        """Compute count, sum, average, max and min revenue of an export table."""
        table = export_table(table_name)
        query = select(
            func.count(),
            func.sum(table.c.CA),
            func.avg(table.c.CA),
            func.max(table.c.CA),
            func.min(table.c.CA),
        ).select_from(table)

        try:
            with self.engine.connect() as conn:
                count, total, average, maximum, minimum = conn.execute(query).one()
        except SQLAlchemyError as exc:
            raise ExportError(
                f"Error getting export stats for table '{table_name}': {exc}"
            ) from exc

        def as_money(value: object) -> Decimal:
            if value is None:
                return round_revenue(Decimal("0"))
            return round_revenue(to_decimal(value))

        stats = RevenueSummary(
            customer_count=int(count),
            total_revenue=as_money(total),
            average_revenue=as_money(average),
            max_revenue=as_money(maximum),
            min_revenue=as_money(minimum),
        )
        logger.info(f"Export statistics for table '{table_name}':")
        logger.info(f"  Total Customers: {stats.customer_count}")
        logger.info(f"  Total Revenue: {stats.total_revenue}")
        logger.info(f"  Average Revenue: {stats.average_revenue}")
        logger.info(f"  Max Revenue: {stats.max_revenue}")
        logger.info(f"  Min Revenue: {stats.min_revenue}")
        return stats
