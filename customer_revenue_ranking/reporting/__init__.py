"""Reporting helpers for quantile statistics."""

from customer_revenue_ranking.reporting.exports import (
    export_quantile_report_csv,
    export_quantile_report_json,
    export_quantile_report_markdown,
    log_quantile_stats,
)

__all__ = [
    "export_quantile_report_csv",
    "export_quantile_report_json",
    "export_quantile_report_markdown",
    "log_quantile_stats",
]
