"""LOAD → COMPUTE → EXPORT pipeline for the top-customer export."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date
from typing import Hashable, Optional, Sequence

import structlog
from sqlalchemy.engine import Engine

from customer_revenue_ranking.analyses.quantiles import (
    InsufficientPopulationError,
    QuantileBucket,
    QuantileSelector,
    QuantileStatsCalculator,
    validate_quantile,
)
from customer_revenue_ranking.analyses.sampling import log_customer_sample
from customer_revenue_ranking.analyses.summary import RevenueSummary, summarize_revenue
from customer_revenue_ranking.config import ConfigurationError, Settings
from customer_revenue_ranking.foundation.events import (
    CustomerRevenue,
    IdentityTable,
    PriceTable,
    PurchaseEvent,
)
from customer_revenue_ranking.foundation.revenue import RevenueAggregator
from customer_revenue_ranking.reporting.exports import log_quantile_stats
from customer_revenue_ranking.storage.database import (
    create_db_engine,
    health_check,
    server_version,
)
from customer_revenue_ranking.storage.errors import ExportError
from customer_revenue_ranking.storage.exporter import TopCustomerExporter
from customer_revenue_ranking.storage.loader import PurchaseDataLoader

logger = structlog.get_logger(__name__)


@dataclass
class ComputeResult:
    """In-memory output of the compute phase."""

    quantile: float
    revenues: dict[Hashable, CustomerRevenue]
    top_customers: dict[Hashable, CustomerRevenue]
    buckets: list[QuantileBucket]
    top_summary: RevenueSummary


@dataclass
class PipelineResult:
    """Outcome of a full pipeline run."""

    compute: ComputeResult
    table_name: str
    export_stats: Optional[RevenueSummary] = None
    timings: dict[str, float] = field(default_factory=dict)


def compute_top_customers(
    events: Sequence[PurchaseEvent],
    prices: PriceTable,
    identities: IdentityTable,
    quantile: float,
    aggregator: Optional[RevenueAggregator] = None,
) -> ComputeResult:
    """Aggregate revenue, select the top quantile and compute bucket statistics.

    A population too small for the requested number of buckets is not
    fatal here: the statistics are diagnostic, so a warning is logged and
    the bucket list is left empty.
    """
    quantile = validate_quantile(quantile)
    aggregator = aggregator or RevenueAggregator()

    revenues = aggregator.aggregate(events, prices, identities)
    top_customers = QuantileSelector(quantile).select_top(revenues)

    try:
        buckets = QuantileStatsCalculator(quantile).compute_stats(revenues)
    except InsufficientPopulationError as exc:
        logger.warning(
            "quantile_stats_skipped",
            reason=str(exc),
            customer_count=exc.customer_count,
            bucket_count=exc.bucket_count,
        )
        buckets = []

    return ComputeResult(
        quantile=quantile,
        revenues=revenues,
        top_customers=top_customers,
        buckets=buckets,
        top_summary=summarize_revenue(top_customers.values()),
    )


def run_pipeline(
    settings: Settings,
    engine: Optional[Engine] = None,
    today: Optional[date] = None,
    sample_size: int = 10,
    seed: Optional[int] = None,
    show_progress: bool = False,
) -> PipelineResult:
    """Run the full export against the configured database.

    Parameters
    ----------
    settings:
        Loaded application settings.
    engine:
        Engine to use instead of creating one from ``settings``. An engine
        passed in is not disposed at the end of the run.
    today:
        Run date used to name the export table (defaults to today).
    sample_size:
        Number of random customers to log after aggregation (0 disables).
    seed:
        Seed for the random preview.
    """
    if settings.skip_db:
        raise ConfigurationError(
            "SKIP_DB is set; the database pipeline cannot run without a database"
        )

    started = time.perf_counter()
    timings: dict[str, float] = {}
    logger.info("pipeline_starting", settings=settings.describe())

    owns_engine = engine is None
    if engine is None:
        engine = create_db_engine(settings)

    try:
        health_check(engine)
        logger.info(
            "database_connected",
            dialect=engine.dialect.name,
            version=server_version(engine),
        )

        # LOAD
        phase_started = time.perf_counter()
        loader = PurchaseDataLoader(engine, show_progress=show_progress)
        identities = loader.load_customer_identities(settings.email_channel_type_id)
        prices = loader.load_content_prices()
        events = loader.load_purchase_events(
            settings.since_date, settings.purchase_event_type_id
        )
        timings["load"] = time.perf_counter() - phase_started
        logger.info(
            "load_phase_completed",
            seconds=round(timings["load"], 3),
            events=len(events),
            prices=len(prices),
            identities=len(identities),
        )

        # COMPUTE
        phase_started = time.perf_counter()
        compute = compute_top_customers(events, prices, identities, settings.quantile)
        if sample_size > 0:
            log_customer_sample(compute.revenues, sample_size, seed=seed)
        log_quantile_stats(compute.buckets, compute.quantile)
        timings["compute"] = time.perf_counter() - phase_started
        logger.info(
            "compute_phase_completed",
            seconds=round(timings["compute"], 3),
            customers=len(compute.revenues),
            top_customers=len(compute.top_customers),
            buckets=len(compute.buckets),
        )

        # EXPORT
        phase_started = time.perf_counter()
        exporter = TopCustomerExporter(
            engine,
            batch_size=settings.export_batch_size,
            table_prefix=settings.export_table_prefix,
            show_progress=show_progress,
        )
        table_name = exporter.export_top_customers(compute.top_customers, day=today)
        try:
            export_stats: Optional[RevenueSummary] = exporter.get_export_stats(table_name)
        except ExportError as exc:
            logger.warning("export_stats_unavailable", error=str(exc))
            export_stats = None
        timings["export"] = time.perf_counter() - phase_started
        logger.info(
            "export_phase_completed",
            seconds=round(timings["export"], 3),
            table=table_name,
        )
    finally:
        if owns_engine:
            engine.dispose()

    timings["total"] = time.perf_counter() - started
    logger.info(
        "pipeline_completed",
        customers_processed=len(compute.revenues),
        top_customers=len(compute.top_customers),
        quantile_pct=round(compute.quantile * 100, 3),
        seconds=round(timings["total"], 3),
    )
    return PipelineResult(
        compute=compute,
        table_name=table_name,
        export_stats=export_stats,
        timings=timings,
    )
