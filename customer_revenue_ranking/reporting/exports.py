"""Export quantile statistics to various formats.

This module provides utilities for logging and saving the revenue
distribution of a run for dashboards, stakeholder reports and audit trails.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

from customer_revenue_ranking.analyses.quantiles import (
    QuantileBucket,
    bucket_rank_range,
)
from customer_revenue_ranking.analyses.summary import RevenueSummary

logger = logging.getLogger(__name__)


def _bucket_record(bucket: QuantileBucket, quantile: float) -> dict[str, Any]:
    lower_pct, upper_pct = bucket_rank_range(bucket, quantile)
    return {
        "index": bucket.index,
        "lower_pct": lower_pct,
        "upper_pct": upper_pct,
        "customer_count": bucket.customer_count,
        "max_revenue": float(bucket.max_revenue),
        "min_revenue": float(bucket.min_revenue),
    }


def _summary_record(summary: RevenueSummary) -> dict[str, Any]:
    return {
        "customer_count": summary.customer_count,
        "total_revenue": float(summary.total_revenue),
        "average_revenue": float(summary.average_revenue),
        "max_revenue": float(summary.max_revenue),
        "min_revenue": float(summary.min_revenue),
    }


def log_quantile_stats(buckets: Sequence[QuantileBucket], quantile: float) -> None:
    """Log one line per quantile bucket."""
    logger.info("Quantile Statistics:")
    for bucket in buckets:
        lower_pct, upper_pct = bucket_rank_range(bucket, quantile)
        logger.info(
            f"  Quantile {bucket.index} ({lower_pct:.1f}%-{upper_pct:.1f}%): "
            f"{bucket.customer_count} customers | "
            f"Max Revenue: {bucket.max_revenue:.2f} | "
            f"Min Revenue: {bucket.min_revenue:.2f}"
        )


def export_quantile_report_json(
    buckets: Sequence[QuantileBucket],
    quantile: float,
    output_path: str | Path,
    summary: RevenueSummary | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Export quantile statistics to JSON.

    Examples
    --------
    >>> buckets = calculate_quantile_stats(revenues, 0.1)
    >>> export_quantile_report_json(
    ...     buckets, 0.1, "quantiles_2024-01-15.json", metadata={"run": "daily"}
    ... )
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    report_data = {
        "metadata": metadata or {},
        "timestamp": datetime.now().isoformat(),
        "quantile": quantile,
        "summary": _summary_record(summary) if summary is not None else None,
        "buckets": [_bucket_record(bucket, quantile) for bucket in buckets],
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report_data, f, indent=2)

    logger.info(f"Quantile report exported to {output_path}")


def export_quantile_report_csv(
    buckets: Sequence[QuantileBucket],
    quantile: float,
    output_path: str | Path,
) -> None:
    """Export quantile statistics to CSV, one row per bucket."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(
        [_bucket_record(bucket, quantile) for bucket in buckets],
        columns=[
            "index",
            "lower_pct",
            "upper_pct",
            "customer_count",
            "max_revenue",
            "min_revenue",
        ],
    )
    df.to_csv(output_path, index=False)

    logger.info(f"Quantile report exported to {output_path}")


def export_quantile_report_markdown(
    buckets: Sequence[QuantileBucket],
    quantile: float,
    output_path: str | Path,
    summary: RevenueSummary | None = None,
    title: str = "Customer Revenue Quantile Report",
    metadata: dict[str, Any] | None = None,
) -> None:
    """Export quantile statistics to a human-readable Markdown report."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    lines = []
    lines.append(f"# {title}\n")
    lines.append(f"**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
    lines.append(f"**Quantile:** {quantile * 100:.1f}%\n")

    if metadata:
        lines.append("## Metadata\n")
        for key, value in metadata.items():
            lines.append(f"- **{key}:** {value}")
        lines.append("")

    if summary is not None:
        lines.append("## Top Customers\n")
        lines.append(f"- **Total Customers:** {summary.customer_count}")
        lines.append(f"- **Total Revenue:** {summary.total_revenue}")
        lines.append(f"- **Average Revenue:** {summary.average_revenue}")
        lines.append(f"- **Max Revenue:** {summary.max_revenue}")
        lines.append(f"- **Min Revenue:** {summary.min_revenue}\n")

    lines.append("## Quantile Buckets\n")
    if buckets:
        lines.append("| Bucket | Range | Customers | Max Revenue | Min Revenue |")
        lines.append("|--------|-------|-----------|-------------|-------------|")
        for bucket in buckets:
            lower_pct, upper_pct = bucket_rank_range(bucket, quantile)
            lines.append(
                f"| {bucket.index} | {lower_pct:.1f}%-{upper_pct:.1f}% "
                f"| {bucket.customer_count} | {bucket.max_revenue:.2f} "
                f"| {bucket.min_revenue:.2f} |"
            )
    else:
        lines.append("_No quantile statistics available._")

    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")

    logger.info(f"Quantile report exported to {output_path}")
