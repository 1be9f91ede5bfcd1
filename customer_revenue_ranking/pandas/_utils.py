"""Shared utilities for pandas conversion operations."""

from decimal import Decimal


def decimal_to_float(value: Decimal) -> float:
    """Convert Decimal to float for pandas compatibility."""
    return float(value)


def float_to_decimal(value: float) -> Decimal:
    """Convert a numeric cell to Decimal, avoiding binary float artefacts.

    Raises:
        TypeError: If value is not numeric

    Example:
        >>> float_to_decimal(123.45)
        Decimal('123.45')
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        # numpy scalars expose item() returning the Python equivalent
        item = getattr(value, "item", None)
        if item is None:
            raise TypeError(f"Expected numeric type, got {type(value)}")
        value = item()
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"Expected numeric type, got {type(value)}")
    return Decimal(str(value))


def require_columns(df, required_cols, what: str) -> None:
    """Raise ValueError if ``df`` lacks any of ``required_cols``."""
    missing_cols = set(required_cols) - set(df.columns)
    if missing_cols:
        raise ValueError(f"{what} DataFrame missing required columns: {sorted(missing_cols)}")


def require_no_nulls(df, cols, what: str) -> None:
    """Raise ValueError if any of ``cols`` contains null/NaN values."""
    null_cols = df[list(cols)].isnull().any()
    if null_cols.any():
        null_col_names = null_cols[null_cols].index.tolist()
        raise ValueError(f"Null/NaN values found in {what} columns: {null_col_names}")
