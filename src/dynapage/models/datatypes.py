"""Data types returned by range queries.

- `QueryPage` for one page of a query, or for a whole query once merged
- `ConsumedCapacity` for the capacity the service charged
- `KeyedResult` for a page paired with the caller's correlation key
"""

from typing import Any, Generic, TypeAlias, TypeVar

from pydantic import BaseModel, Field

K = TypeVar("K")

# Low-level attribute value as sent on the wire, e.g. {"S": "abc"}.
AttributeValue: TypeAlias = dict[str, Any]

# An item (or primary key) keyed by attribute name.
Item: TypeAlias = dict[str, AttributeValue]


class ConsumedCapacity(BaseModel, frozen=True):
    """Capacity units the service reports for a call."""

    table_name: str | None = None
    """Table the capacity was charged to."""

    capacity_units: float = Field(default=0.0, ge=0.0)
    """Total capacity units consumed."""


class QueryPage(BaseModel, frozen=True):
    """One page of query results."""

    items: list[Item] = Field(default_factory=list)
    """Returned items in server order."""

    count: int = Field(default=0, ge=0)
    """Number of items returned."""

    scanned_count: int = Field(default=0, ge=0)
    """Number of items examined before filtering."""

    consumed_capacity: ConsumedCapacity | None = None
    """Capacity charged for this page, if the service reported it."""

    last_evaluated_key: Item | None = None
    """Cursor for the next page. None or empty when the query is exhausted."""

    @property
    def has_cursor(self) -> bool:
        return bool(self.last_evaluated_key)


class KeyedResult(BaseModel, Generic[K], frozen=True):
    """A page paired with the correlation key of the query that produced it."""

    key: K
    """Opaque caller-supplied key, passed through untouched."""

    page: QueryPage
