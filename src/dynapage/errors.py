"""Error types for query execution."""

from enum import StrEnum
from typing import final


class ErrorKind(StrEnum):
    """Classification of query errors."""

    THROTTLED = "throttled"
    UNAVAILABLE = "unavailable"
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONNECTION = "connection"
    PROVIDER = "provider"
    RETRIES_EXHAUSTED = "retries_exhausted"
    INVALID_STATE = "invalid_state"

    @property
    def recoverable(self) -> bool:
        """Whether a call failing with this kind may be retried."""
        return self in (ErrorKind.THROTTLED, ErrorKind.UNAVAILABLE)


@final
class QueryError(Exception):
    """Base error for all query operations."""

    __slots__ = ("attempts", "kind", "message", "source")

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.PROVIDER,
        source: BaseException | None = None,
        attempts: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.source = source
        self.attempts = attempts

    @property
    def recoverable(self) -> bool:
        return self.kind.recoverable

    def __repr__(self) -> str:
        return f"QueryError({self.message!r}, kind={self.kind!r})"
