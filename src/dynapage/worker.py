"""Range-query worker that pages through a query until it is exhausted."""

import asyncio
import copy
import logging
from collections.abc import Iterable
from typing import ClassVar, Generic, Self, TypeVar

from pydantic import BaseModel, Field

from dynapage.backoff import ExponentialBackoff
from dynapage.errors import ErrorKind, QueryError
from dynapage.models.contexts import QueryRequest
from dynapage.models.datatypes import ConsumedCapacity, Item, KeyedResult, QueryPage
from dynapage.permits import DEFAULT_OVERHEAD, estimate_permits
from dynapage.protocols import QueryClient

logger = logging.getLogger(__name__)

K = TypeVar("K")


class _QueryProgress(BaseModel):
    """Running state of one query, owned by its worker."""

    request: QueryRequest
    permits: int = 1
    fetches: int = 0
    exhausted: bool = False
    returned_count: int = 0
    scanned_count: int = 0
    capacity_units: float = 0.0
    items: list[Item] = Field(default_factory=list)


class QueryWorker(Generic[K]):
    """Pages through one query, tracking totals across pages.

    Implements PaginatingTask[KeyedResult[K], KeyedResult[K]]. Every page and
    the merged result carry the correlation key given at construction, so
    callers running many queries at once can match results to queries.

    A worker is meant to be driven by a single caller; its cursor and totals
    change on every fetch.
    """

    __slots__: ClassVar[tuple[str, ...]] = ("_client", "_executor", "_key", "_overhead", "_state")

    _client: QueryClient
    _executor: ExponentialBackoff
    _key: K
    _overhead: float
    _state: _QueryProgress

    def __init__(
        self,
        client: QueryClient,
        executor: ExponentialBackoff,
        request: QueryRequest,
        key: K,
        *,
        overhead: float = DEFAULT_OVERHEAD,
    ) -> None:
        self._client = client
        self._executor = executor
        self._key = key
        self._overhead = overhead
        self._state = _QueryProgress(request=request)

    @property
    def key(self) -> K:
        return self._key

    @property
    def request(self) -> QueryRequest:
        """The request the next fetch will send, cursor included."""
        return self._state.request

    @property
    def permits(self) -> int:
        """Permits the next fetch will acquire."""
        return self._state.permits

    @property
    def fetches(self) -> int:
        return self._state.fetches

    @property
    def returned_count(self) -> int:
        return self._state.returned_count

    @property
    def scanned_count(self) -> int:
        return self._state.scanned_count

    @property
    def consumed_capacity(self) -> float:
        return self._state.capacity_units

    def has_more(self) -> bool:
        return not self._state.exhausted

    async def fetch_next(self) -> KeyedResult[K]:
        """Fetch the next page and fold it into the running totals.

        Errors from the executor propagate unchanged and leave the totals as
        they were after the last successful page.
        """
        state = self._state
        if state.exhausted:
            msg = f"Query on {state.request.table_name} is already exhausted"
            raise QueryError(msg, kind=ErrorKind.INVALID_STATE)

        request = state.request
        page = await self._executor.run(
            lambda: self._client.query(request),
            resource=request.table_name,
            permits=state.permits,
        )

        if page.consumed_capacity is not None:
            units = page.consumed_capacity.capacity_units
            state.permits = estimate_permits(units, self._overhead)
            state.capacity_units += units

        if page.has_cursor:
            state.request = request.with_cursor(page.last_evaluated_key)
        else:
            state.exhausted = True

        state.returned_count += page.count
        state.scanned_count += page.scanned_count
        state.items.extend(copy.deepcopy(page.items))
        state.fetches += 1

        logger.debug(
            "Fetched page %d of %s: %d returned, %d scanned, next permits %d%s",
            state.fetches,
            request.table_name,
            page.count,
            page.scanned_count,
            state.permits,
            "" if page.has_cursor else " (exhausted)",
        )
        return KeyedResult(key=self._key, page=page)

    def merged_result(self) -> KeyedResult[K]:
        """Merge every page fetched so far into one page.

        Before the query is exhausted the merged page keeps the cursor the
        next fetch would resume from.
        Items are held as copies, so changes made to pages returned by
        `fetch_next()` do not show up here.
        """
        state = self._state
        merged = QueryPage(
            items=list(state.items),
            count=state.returned_count,
            scanned_count=state.scanned_count,
            consumed_capacity=ConsumedCapacity(
                table_name=state.request.table_name,
                capacity_units=state.capacity_units,
            ),
            last_evaluated_key=None if state.exhausted else state.request.exclusive_start_key,
        )
        return KeyedResult(key=self._key, page=merged)

    async def run(self) -> KeyedResult[K]:
        """Fetch every remaining page and return the merged result."""
        while self.has_more():
            _ = await self.fetch_next()
        return self.merged_result()

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> KeyedResult[K]:
        if not self.has_more():
            raise StopAsyncIteration
        return await self.fetch_next()


async def run_workers(workers: Iterable[QueryWorker[K]]) -> list[KeyedResult[K]]:
    """Drive workers concurrently and return their merged results in order.

    The first failing worker cancels the others and its error is raised.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(worker.run()) for worker in workers]
    except ExceptionGroup as errors:
        raise errors.exceptions[0]  # noqa: B904
    return [task.result() for task in tasks]
