"""Core protocols for paginated query execution."""

from typing import Protocol, Self, TypeVar, runtime_checkable

from dynapage.models.contexts import QueryRequest
from dynapage.models.datatypes import QueryPage

T_co = TypeVar("T_co", covariant=True)
M_co = TypeVar("M_co", covariant=True)
Cred_contra = TypeVar("Cred_contra", contravariant=True)
Params_contra = TypeVar("Params_contra", contravariant=True)


@runtime_checkable
class PaginatingTask(Protocol[T_co, M_co]):
    """Protocol for a task that fetches a query one page at a time."""

    def has_more(self) -> bool:
        """Whether another page can be fetched."""
        ...

    async def fetch_next(self) -> T_co:
        """Fetch the next page.

        Callers must check `has_more()` first; fetching from an exhausted
        task is rejected.
        """
        ...

    def merged_result(self) -> M_co:
        """Merge every page fetched so far into a single result."""
        ...


@runtime_checkable
class QueryClient(Protocol):
    """Protocol for the remote call that returns one page of a query."""

    async def query(self, request: QueryRequest) -> QueryPage:
        """Execute `request` and return the page it selects.

        Failures are raised as `QueryError` tagged with an `ErrorKind`.
        """
        ...


@runtime_checkable
class RateLimiter(Protocol):
    """Protocol for a limiter shared by every task hitting the same resources."""

    async def acquire(self, resource: str, permits: int = 1) -> None:
        """Wait until `permits` may be spent against `resource`."""
        ...


@runtime_checkable
class Provider(Protocol[Cred_contra, Params_contra]):
    """Protocol for provider lifecycle management."""

    @classmethod
    async def connect(cls, credentials: Cred_contra, params: Params_contra) -> Self:
        """Establish connection to the external service."""
        ...

    async def disconnect(self) -> None:
        """Release resources and close connections."""
        ...
