"""Pandas DataFrame adapters for customer revenue ranking components."""

from .revenue import (
    aggregate_revenue_df,
    buckets_to_dataframe,
    dataframe_to_events,
    dataframe_to_revenues,
    revenues_to_dataframe,
)

__all__ = [
    "aggregate_revenue_df",
    "buckets_to_dataframe",
    "dataframe_to_events",
    "dataframe_to_revenues",
    "revenues_to_dataframe",
]
