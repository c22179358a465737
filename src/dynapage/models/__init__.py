"""Pydantic models for requests, pages and configuration."""

from dynapage.models.contexts import QueryRequest
from dynapage.models.datatypes import (
    AttributeValue,
    ConsumedCapacity,
    Item,
    KeyedResult,
    QueryPage,
)
from dynapage.models.params import BackoffParams, LimiterParams

__all__ = [
    # Requests (query + cursor)
    "QueryRequest",
    # Params (configuration)
    "BackoffParams",
    "LimiterParams",
    # Data types
    "AttributeValue",
    "ConsumedCapacity",
    "Item",
    "KeyedResult",
    "QueryPage",
]
