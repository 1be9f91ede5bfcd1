"""Purchase event and customer revenue records.

These are the in-memory shapes exchanged between the data loader, the
revenue engine and the exporter. Identifiers are treated as opaque keys:
the engine only hashes and compares them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from numbers import Real
from typing import Any, Hashable, Mapping, Union

#: Identity assigned to customers without a known email address.
UNKNOWN_IDENTITY = "no-email@unknown.com"

Price = Union[Decimal, int, float]
PriceTable = Mapping[Hashable, Price]
IdentityTable = Mapping[Hashable, str]


@dataclass(frozen=True)
class PurchaseEvent:
    """A single purchase of a content item by a customer.

    Attributes
    ----------
    content_ref:
        Identifier of the purchased content, used to look up its price.
    customer_ref:
        Identifier of the purchasing customer.
    quantity:
        Number of units purchased. Negative values are accepted and
        reduce revenue (refunds).
    event_ts:
        Timestamp of the purchase.
    event_data_id, event_id, event_type_id, insert_ts:
        Optional lineage fields carried over from the source table.
    """

    content_ref: Hashable
    customer_ref: Hashable
    quantity: int
    event_ts: datetime
    event_data_id: int | None = None
    event_id: int | None = None
    event_type_id: int | None = None
    insert_ts: datetime | None = None


@dataclass(frozen=True)
class CustomerRevenue:
    """Accumulated revenue for one customer.

    Attributes
    ----------
    customer_ref:
        Identifier of the customer.
    identity:
        Display identity (email) resolved when the customer was first seen,
        or :data:`UNKNOWN_IDENTITY`.
    revenue:
        Sum of ``quantity * unit_price`` over the customer's events, unrounded.
    """

    customer_ref: Hashable
    identity: str
    revenue: Decimal

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation."""

        return {
            "customer_ref": self.customer_ref,
            "identity": self.identity,
            "revenue": str(self.revenue),
        }


def to_decimal(value: Price) -> Decimal:
    """Convert a price or amount to ``Decimal`` without float artefacts.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")`` rather
    than its binary expansion.
    """

    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Expected numeric price, got {type(value).__name__}")
    return Decimal(str(value))


def resolve_identity(identities: IdentityTable, customer_ref: Hashable) -> str:
    """Look up a customer's identity, falling back to the sentinel."""

    identity = identities.get(customer_ref)
    if not identity:
        return UNKNOWN_IDENTITY
    return identity


def ref_sort_key(ref: Hashable) -> tuple[str, Any]:
    """Sort key giving a total order over opaque identifiers.

    Numbers sort first and compare numerically, strings come next in
    lexical order. Any other identifier is grouped by type name and
    ordered by its ``repr``, so refs of different types never have to be
    compared with each other.

    >>> sorted(["b", 10, "a", 2], key=ref_sort_key)
    [2, 10, 'a', 'b']
    """
    if isinstance(ref, Real) and not isinstance(ref, bool):
        return ("", ref)
    if isinstance(ref, str):
        return ("str", ref)
    return (type(ref).__name__, repr(ref))
