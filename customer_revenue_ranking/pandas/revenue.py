"""Pandas DataFrame adapters for revenue aggregation and quantile analysis."""

from typing import Hashable, List, Mapping, Sequence
import pandas as pd  # type: ignore

from customer_revenue_ranking.analyses.quantiles import QuantileBucket, rank_customers
from customer_revenue_ranking.foundation.events import CustomerRevenue, PurchaseEvent
from customer_revenue_ranking.foundation.revenue import aggregate_revenue
from ._utils import (
    decimal_to_float,
    float_to_decimal,
    require_columns,
    require_no_nulls,
)

EVENT_COLUMNS = ["content_ref", "customer_ref", "quantity", "event_ts"]
REVENUE_COLUMNS = ["customer_ref", "identity", "revenue"]
BUCKET_COLUMNS = ["index", "customer_count", "max_revenue", "min_revenue"]


def revenues_to_dataframe(
    revenues: Mapping[Hashable, CustomerRevenue],
) -> pd.DataFrame:
    """Convert customer revenues to a DataFrame ranked by revenue.

    Args:
        revenues: CustomerRevenue records keyed by customer_ref

    Returns:
        DataFrame with columns customer_ref, identity, revenue (float),
        sorted by revenue descending then customer_ref

    Example:
        >>> revenues = aggregate_revenue(events, prices, identities)
        >>> revenues_to_dataframe(revenues).head()
    """
    if not revenues:
        return pd.DataFrame(columns=REVENUE_COLUMNS)

    rows = [
        {
            "customer_ref": customer.customer_ref,
            "identity": customer.identity,
            "revenue": decimal_to_float(customer.revenue),
        }
        for customer in rank_customers(revenues)
    ]
    return pd.DataFrame(rows, columns=REVENUE_COLUMNS)


def dataframe_to_revenues(revenue_df: pd.DataFrame) -> dict[Hashable, CustomerRevenue]:
    """Convert a DataFrame with customer_ref, identity, revenue columns to records.

    Raises:
        ValueError: If columns are missing, contain nulls or customer_ref is duplicated
    """
    require_columns(revenue_df, REVENUE_COLUMNS, "Revenue")
    if revenue_df.empty:
        return {}
    require_no_nulls(revenue_df, REVENUE_COLUMNS, "revenue")

    duplicated = revenue_df["customer_ref"].duplicated()
    if duplicated.any():
        refs = revenue_df.loc[duplicated, "customer_ref"].tolist()
        raise ValueError(f"Duplicate customer_ref values: {refs}")

    revenues: dict[Hashable, CustomerRevenue] = {}
    for row in revenue_df[REVENUE_COLUMNS].itertuples(index=False):
        customer_ref = _python_scalar(row.customer_ref)
        revenues[customer_ref] = CustomerRevenue(
            customer_ref=customer_ref,
            identity=str(row.identity),
            revenue=float_to_decimal(row.revenue),
        )
    return revenues


def dataframe_to_events(events_df: pd.DataFrame) -> List[PurchaseEvent]:
    """Convert a DataFrame of purchase events to PurchaseEvent records.

    Args:
        events_df: DataFrame with content_ref, customer_ref, quantity, event_ts

    Raises:
        ValueError: If columns are missing or contain nulls
    """
    require_columns(events_df, EVENT_COLUMNS, "Events")
    if events_df.empty:
        return []
    require_no_nulls(events_df, EVENT_COLUMNS, "event")

    events_df = events_df.copy()
    events_df["event_ts"] = pd.to_datetime(events_df["event_ts"])

    return [
        PurchaseEvent(
            content_ref=_python_scalar(row.content_ref),
            customer_ref=_python_scalar(row.customer_ref),
            quantity=int(row.quantity),
            event_ts=row.event_ts.to_pydatetime(),
        )
        for row in events_df[EVENT_COLUMNS].itertuples(index=False)
    ]


def buckets_to_dataframe(buckets: Sequence[QuantileBucket]) -> pd.DataFrame:
    """Convert quantile buckets to a DataFrame, one row per bucket."""
    if not buckets:
        return pd.DataFrame(columns=BUCKET_COLUMNS)

    return pd.DataFrame(
        [
            {
                "index": bucket.index,
                "customer_count": bucket.customer_count,
                "max_revenue": decimal_to_float(bucket.max_revenue),
                "min_revenue": decimal_to_float(bucket.min_revenue),
            }
            for bucket in buckets
        ],
        columns=BUCKET_COLUMNS,
    )


def aggregate_revenue_df(
    events_df: pd.DataFrame,
    prices_df: pd.DataFrame,
    identities_df: pd.DataFrame,
) -> pd.DataFrame:
    """Aggregate revenue from DataFrames.

    Convenience function combining conversion and aggregation.

    Args:
        events_df: DataFrame with content_ref, customer_ref, quantity, event_ts
        prices_df: DataFrame with content_ref, price
        identities_df: DataFrame with customer_ref, identity

    Returns:
        Revenue DataFrame as produced by :func:`revenues_to_dataframe`

    Example:
        >>> revenue_df = aggregate_revenue_df(events_df, prices_df, identities_df)
        >>> revenue_df.to_csv('customer_revenue.csv', index=False)
    """
    require_columns(prices_df, ["content_ref", "price"], "Prices")
    require_columns(identities_df, ["customer_ref", "identity"], "Identities")

    events = dataframe_to_events(events_df)
    prices = {
        _python_scalar(ref): float_to_decimal(price)
        for ref, price in zip(prices_df["content_ref"], prices_df["price"])
        if not pd.isna(price)
    }
    identities = {
        _python_scalar(ref): str(identity)
        for ref, identity in zip(identities_df["customer_ref"], identities_df["identity"])
        if not pd.isna(identity)
    }

    revenues = aggregate_revenue(events, prices, identities, parallel=False)
    return revenues_to_dataframe(revenues)


def _python_scalar(value):
    """Unwrap numpy scalars so identifiers hash and compare like Python values."""
    item = getattr(value, "item", None)
    return item() if callable(item) else value
