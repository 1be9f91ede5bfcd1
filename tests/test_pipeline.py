"""Tests for the LOAD → COMPUTE → EXPORT pipeline."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select

from customer_revenue_ranking.analyses.quantiles import InvalidQuantileError
from customer_revenue_ranking.config import ConfigurationError, load_settings
from customer_revenue_ranking.foundation.events import UNKNOWN_IDENTITY, PurchaseEvent
from customer_revenue_ranking.foundation.revenue import RevenueAggregator
from customer_revenue_ranking.pipeline import compute_top_customers, run_pipeline
from customer_revenue_ranking.storage.schema import export_table

TODAY = date(2024, 1, 15)


class TestComputeTopCustomers:
    """Test the in-memory compute phase."""

    def test_example_scenario(self):
        events = [
            PurchaseEvent(1, 100, 2, datetime(2023, 1, 1)),
            PurchaseEvent(1, 100, 1, datetime(2023, 1, 2)),
            PurchaseEvent(2, 200, 5, datetime(2023, 1, 3)),
        ]

        result = compute_top_customers(
            events, {1: 10.0, 2: 3.0}, {100: "a@x.com"}, quantile=0.5
        )

        assert list(result.top_customers) == [100]
        assert result.top_customers[100].revenue == Decimal("30.0")
        assert result.revenues[200].identity == UNKNOWN_IDENTITY
        assert [b.customer_count for b in result.buckets] == [1, 1]
        assert result.top_summary.total_revenue == Decimal("30.00")

    def test_small_population_skips_buckets(self):
        events = [PurchaseEvent(1, ref, 1, datetime(2023, 1, 1)) for ref in range(3)]

        result = compute_top_customers(events, {1: 5}, {}, quantile=0.1)

        assert len(result.top_customers) == 1
        assert result.buckets == []

    def test_empty_events(self):
        result = compute_top_customers([], {}, {}, quantile=0.025)

        assert result.revenues == {}
        assert result.top_customers == {}
        assert result.buckets == []
        assert result.top_summary.customer_count == 0

    def test_invalid_quantile(self):
        with pytest.raises(InvalidQuantileError):
            compute_top_customers([], {}, {}, quantile=0)

    def test_parallel_aggregator_matches_sequential(self):
        events = [
            PurchaseEvent(ref % 3, ref % 17, 1 + ref % 4, datetime(2023, 1, 1))
            for ref in range(200)
        ]
        prices = {0: Decimal("1.10"), 1: Decimal("2.25"), 2: Decimal("0.35")}

        sequential = compute_top_customers(
            events, prices, {}, 0.2, aggregator=RevenueAggregator(parallel=False)
        )
        parallel = compute_top_customers(
            events,
            prices,
            {},
            0.2,
            aggregator=RevenueAggregator(parallel_threshold=1, n_workers=2),
        )

        assert parallel.revenues == sequential.revenues
        assert list(parallel.top_customers) == list(sequential.top_customers)
        assert parallel.buckets == sequential.buckets


class TestRunPipeline:
    """Test the full pipeline against a seeded SQLite database."""

    def test_exports_top_quantile(self, seeded_engine, database_url, expected_revenue):
        settings = load_settings(database_url=database_url, quantile=0.25)

        result = run_pipeline(settings, engine=seeded_engine, today=TODAY, seed=1)

        assert result.table_name == "test_export_20240115"
        assert {
            ref: c.revenue for ref, c in result.compute.revenues.items()
        } == expected_revenue
        assert list(result.compute.top_customers) == [1, 8]
        assert result.compute.top_customers[8].identity == UNKNOWN_IDENTITY
        assert [b.max_revenue for b in result.compute.buckets] == [
            Decimal("199.98"),
            Decimal("50.00"),
            Decimal("20.00"),
            Decimal("2.50"),
        ]
        assert set(result.timings) == {"load", "compute", "export", "total"}

        table = export_table(result.table_name)
        with seeded_engine.connect() as conn:
            rows = conn.execute(
                select(table.c.CustomerID, table.c.Email, table.c.CA).order_by(
                    table.c.CustomerID
                )
            ).all()
        assert [tuple(row) for row in rows] == [
            (1, "customer1@example.com", Decimal("199.98")),
            (8, UNKNOWN_IDENTITY, Decimal("99.99")),
        ]

        stats = result.export_stats
        assert stats.customer_count == 2
        assert stats.total_revenue == Decimal("299.97")
        assert result.compute.top_summary.average_revenue == Decimal("149.99")

    def test_rerun_is_idempotent(self, seeded_engine, database_url):
        settings = load_settings(database_url=database_url, quantile=0.25)

        run_pipeline(settings, engine=seeded_engine, today=TODAY, sample_size=0)
        result = run_pipeline(settings, engine=seeded_engine, today=TODAY, sample_size=0)

        assert result.export_stats.customer_count == 2

    def test_since_date_limits_events(self, seeded_engine, database_url):
        settings = load_settings(
            database_url=database_url, quantile=1.0, since_date=date(2023, 1, 1)
        )

        result = run_pipeline(settings, engine=seeded_engine, today=TODAY, sample_size=0)

        assert list(result.compute.revenues) == [8]
        assert list(result.compute.top_customers) == [8]

    def test_owned_engine_from_settings(self, seeded_engine, database_url):
        settings = load_settings(database_url=database_url, quantile=0.5)

        result = run_pipeline(settings, today=TODAY, sample_size=0)

        assert len(result.compute.top_customers) == 4

    def test_skip_db_is_rejected(self):
        with pytest.raises(ConfigurationError, match="SKIP_DB"):
            run_pipeline(load_settings(skip_db=True))
