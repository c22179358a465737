"""Request types for range queries.

A request carries the immutable query together with the cursor that says
where the next page resumes. Requests are frozen; advancing the cursor
produces a new request.
"""

from typing import Any

from pydantic import BaseModel, Field

from dynapage.models.datatypes import Item


class QueryRequest(BaseModel, frozen=True):
    """A range query against one table or index."""

    table_name: str = Field(min_length=1)
    """Target table."""

    key_condition_expression: str
    """Key condition selecting the partition and sort key range."""

    index_name: str | None = None
    """Secondary index to query instead of the base table."""

    filter_expression: str | None = None
    """Server-side filter applied after items are read."""

    projection_expression: str | None = None
    """Attributes to return. If None, returns all attributes."""

    expression_attribute_names: dict[str, str] | None = None
    expression_attribute_values: dict[str, dict[str, Any]] | None = None

    limit: int | None = Field(default=None, ge=1)
    """Maximum number of items evaluated per page."""

    consistent_read: bool = False
    scan_index_forward: bool = True

    exclusive_start_key: Item | None = None
    """Primary key of the last item of the previous page."""

    def with_cursor(self, cursor: Item | None) -> "QueryRequest":
        """Return a copy of this request resuming after `cursor`."""
        return self.model_copy(update={"exclusive_start_key": cursor})

    def to_kwargs(self) -> dict[str, Any]:
        """Build the keyword arguments for a boto3 `query` call."""
        kwargs: dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": self.key_condition_expression,
            "ConsistentRead": self.consistent_read,
            "ScanIndexForward": self.scan_index_forward,
            "ReturnConsumedCapacity": "TOTAL",
        }
        optional = {
            "IndexName": self.index_name,
            "FilterExpression": self.filter_expression,
            "ProjectionExpression": self.projection_expression,
            "ExpressionAttributeNames": self.expression_attribute_names,
            "ExpressionAttributeValues": self.expression_attribute_values,
            "Limit": self.limit,
            "ExclusiveStartKey": self.exclusive_start_key,
        }
        kwargs.update({k: v for k, v in optional.items() if v is not None})
        return kwargs
