"""Command line entry point for the top-customer export."""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Hashable

from customer_revenue_ranking.analyses.sampling import log_customer_sample
from customer_revenue_ranking.config import ConfigurationError, Settings, load_settings
from customer_revenue_ranking.foundation.events import PurchaseEvent
from customer_revenue_ranking.observability import configure_logging
from customer_revenue_ranking.pandas import revenues_to_dataframe
from customer_revenue_ranking.pipeline import (
    ComputeResult,
    compute_top_customers,
    run_pipeline,
)
from customer_revenue_ranking.reporting.exports import (
    export_quantile_report_markdown,
    log_quantile_stats,
)
from customer_revenue_ranking.storage.errors import StorageError

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM

_INTEGER_REF = re.compile(r"-?\d+")


def _parse_ref(value: Any) -> Hashable:
    """Normalise identifiers so JSON object keys match event fields.

    JSON object keys are always strings, so ``"100"`` and ``100`` must map
    to the same customer.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid identifier: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value) if _INTEGER_REF.fullmatch(value) else value
    raise ValueError(f"Invalid identifier: {value!r}")


def _parse_price(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"Invalid price: {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid price: {value!r}") from exc


def _load_purchase_input(path: Path) -> tuple[list[PurchaseEvent], dict, dict]:
    """Read events, prices and identities from a JSON document.

    Expected shape::

        {"events": [{"content_ref": 1, "customer_ref": 100, "quantity": 2,
                     "event_ts": "2023-01-15T10:00:00+00:00"}, ...],
         "prices": {"1": 10.0, ...},
         "identities": {"100": "a@x.com", ...}}
    """
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, dict):
        raise ValueError("Expected a JSON object with events, prices and identities")

    events = []
    for idx, item in enumerate(payload.get("events", [])):
        try:
            event_ts = item["event_ts"]
            if isinstance(event_ts, str):
                event_ts = datetime.fromisoformat(event_ts.replace("Z", "+00:00"))
            events.append(
                PurchaseEvent(
                    content_ref=_parse_ref(item["content_ref"]),
                    customer_ref=_parse_ref(item["customer_ref"]),
                    quantity=int(item["quantity"]),
                    event_ts=event_ts,
                )
            )
        except KeyError as exc:
            raise ValueError(
                f"Event at index {idx} missing key {exc.args[0]}"
            ) from exc

    prices = {
        _parse_ref(ref): _parse_price(price)
        for ref, price in payload.get("prices", {}).items()
    }
    identities = {
        _parse_ref(ref): str(identity)
        for ref, identity in payload.get("identities", {}).items()
    }
    return events, prices, identities


def _as_naive_utc(ts: datetime) -> datetime:
    """Convert an offset-aware timestamp to naive UTC; naive ones are assumed UTC."""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def _write_report(path: Path, compute: ComputeResult, metadata: dict[str, Any]) -> None:
    export_quantile_report_markdown(
        compute.buckets,
        compute.quantile,
        path,
        summary=compute.top_summary,
        metadata=metadata,
    )


def _run_offline(args: argparse.Namespace, settings: Settings) -> int:
    logger.info(f"Loading purchase data from {args.input}")
    events, prices, identities = _load_purchase_input(args.input)
    since = datetime(
        settings.since_date.year, settings.since_date.month, settings.since_date.day
    )
    # Mirror the database filter: only purchases on or after the since date
    in_window = [event for event in events if _as_naive_utc(event.event_ts) >= since]
    logger.info(f"{len(in_window)} of {len(events)} events fall on or after {since.date()}")

    compute = compute_top_customers(in_window, prices, identities, settings.quantile)
    if args.sample > 0:
        log_customer_sample(compute.revenues, args.sample, seed=args.seed)
    log_quantile_stats(compute.buckets, compute.quantile)

    top_df = revenues_to_dataframe(compute.top_customers)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        top_df.to_csv(args.output, index=False)
        logger.info(f"Top customers exported to {args.output}")
    else:  # stdout fallback enables piping in shell usage.
        top_df.to_csv(sys.stdout, index=False)

    if args.report:
        _write_report(args.report, compute, {"input": str(args.input)})

    logger.info(
        f"Top customers ({compute.quantile * 100:.1f}%): "
        f"{len(compute.top_customers)} of {len(compute.revenues)}"
    )
    return 0


def _run_database(args: argparse.Namespace, settings: Settings) -> int:
    if settings.skip_db:
        logger.error("SKIP_DB is set; pass --input to run without a database")
        return 1

    result = run_pipeline(
        settings,
        sample_size=args.sample,
        seed=args.seed,
        show_progress=args.progress,
    )
    if args.report:
        _write_report(args.report, result.compute, {"table": result.table_name})
    return 0


def top_customers_cli(argv: list[str] | None = None) -> int:
    """Compute the top revenue quantile of customers and export it.

    Without ``--input`` the purchase data is read from the configured
    database and the top customers are upserted into a dated export table.
    With ``--input`` a JSON file is processed offline and the top customers
    are written as CSV.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Export the top revenue quantile of customers"
    )
    parser.add_argument(
        "--quantile",
        type=float,
        help="Fraction of customers to export (default: QUANTILE or 0.025)",
    )
    parser.add_argument(
        "--since",
        type=date.fromisoformat,
        help="Only count purchases on or after this date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy database URL overriding the DB_* settings",
    )
    parser.add_argument(
        "--input",
        type=Path,
        help="JSON file with events, prices and identities (offline mode)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="CSV path for the top customers in offline mode (default: stdout)",
    )
    parser.add_argument(
        "--report",
        type=Path,
        help="Optional path for a Markdown quantile statistics report",
    )
    parser.add_argument(
        "--sample",
        type=int,
        default=10,
        help="Number of random customers to log after aggregation (default: 10)",
    )
    parser.add_argument("--seed", type=int, help="Seed for the random sample")
    parser.add_argument(
        "--progress", action="store_true", help="Show progress bars"
    )
    parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL or INFO)")

    args = parser.parse_args(argv)

    overrides: dict[str, Any] = {}
    if args.quantile is not None:
        overrides["quantile"] = args.quantile
    if args.since is not None:
        overrides["since_date"] = args.since
    if args.database_url:
        overrides["database_url"] = args.database_url
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.input:
        overrides["skip_db"] = True

    try:
        settings = load_settings(**overrides)
    except ConfigurationError as exc:
        configure_logging("INFO")
        logger.error(f"Failed to load configuration: {exc}")
        return 1

    configure_logging(settings.log_level)
    logger.info(f"Configuration loaded successfully ({settings.describe()})")

    try:
        if args.input:
            return _run_offline(args, settings)
        return _run_database(args, settings)
    except (OSError, ValueError, StorageError) as exc:
        logger.error(f"Top customer export failed: {exc}")
        return 1


def main() -> None:
    raise SystemExit(top_customers_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
