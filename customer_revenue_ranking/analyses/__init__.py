"""Revenue ranking analyses.

1. Top-quantile selection - the highest-revenue customers
2. Quantile bucket statistics - revenue distribution across rank ranges
3. Revenue summaries and random previews for reporting
"""

from .quantiles import (
    InsufficientPopulationError,
    InvalidQuantileError,
    QuantileBucket,
    QuantileError,
    QuantileSelector,
    QuantileStatsCalculator,
    bucket_rank_range,
    calculate_quantile_stats,
    rank_customers,
    select_top_customers,
    validate_quantile,
)
from .sampling import log_customer_sample, sample_customers
from .summary import RevenueSummary, summarize_revenue

__all__ = [
    # Quantiles
    "InsufficientPopulationError",
    "InvalidQuantileError",
    "QuantileBucket",
    "QuantileError",
    "QuantileSelector",
    "QuantileStatsCalculator",
    "bucket_rank_range",
    "calculate_quantile_stats",
    "rank_customers",
    "select_top_customers",
    "validate_quantile",
    # Sampling
    "log_customer_sample",
    "sample_customers",
    # Summary
    "RevenueSummary",
    "summarize_revenue",
]
