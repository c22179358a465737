"""DynamoDB provider using boto3."""

import asyncio
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, ClassVar, Self, TypeVar

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, HTTPClientError
from botocore.exceptions import ConnectionError as EndpointError
from pydantic import BaseModel, Field

from dynapage.backoff import ExponentialBackoff
from dynapage.errors import ErrorKind, QueryError
from dynapage.limiter import TokenRateLimiter
from dynapage.models.contexts import QueryRequest
from dynapage.models.datatypes import ConsumedCapacity, KeyedResult, QueryPage
from dynapage.models.params import BackoffParams, LimiterParams, PositiveRate
from dynapage.permits import DEFAULT_OVERHEAD
from dynapage.protocols import RateLimiter
from dynapage.worker import QueryWorker, run_workers

if TYPE_CHECKING:
    from mypy_boto3_dynamodb import DynamoDBClient

logger = logging.getLogger(__name__)

K = TypeVar("K")

_ERROR_KINDS: dict[str, ErrorKind] = {
    "ProvisionedThroughputExceededException": ErrorKind.THROTTLED,
    "ThrottlingException": ErrorKind.THROTTLED,
    "RequestLimitExceeded": ErrorKind.THROTTLED,
    "InternalServerError": ErrorKind.UNAVAILABLE,
    "ServiceUnavailable": ErrorKind.UNAVAILABLE,
    "ValidationException": ErrorKind.INVALID_INPUT,
    "ResourceNotFoundException": ErrorKind.NOT_FOUND,
    "AccessDeniedException": ErrorKind.PERMISSION_DENIED,
    "UnrecognizedClientException": ErrorKind.PERMISSION_DENIED,
}


def classify_client_error(error: ClientError) -> ErrorKind:
    """Map a DynamoDB error code onto an `ErrorKind`."""
    code = error.response.get("Error", {}).get("Code", "Unknown")
    return _ERROR_KINDS.get(code, ErrorKind.PROVIDER)


class DynamoDBCredentials(BaseModel, frozen=True):
    """Credentials for DynamoDB connection.

    Keys may be omitted to fall back on the default boto3 credential chain.
    """

    region: str = "us-east-1"
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None


class DynamoDBParams(BaseModel, frozen=True):
    """Parameters for DynamoDB query execution."""

    table: str
    """Table verified on connect."""

    read_rate: float | None = Field(default=None, gt=0)
    """Read permits per second for tables without an override. None is unlimited."""

    table_rates: dict[str, PositiveRate] = Field(default_factory=dict)
    """Read permits per second keyed by table name."""

    backoff: BackoffParams = Field(default_factory=BackoffParams)
    """Retry policy for every page fetch."""

    capacity_overhead: float = Field(default=DEFAULT_OVERHEAD, ge=0.0)
    """Capacity units subtracted from a page's cost when budgeting the next one."""

    def limiter_params(self) -> LimiterParams:
        return LimiterParams(default_rate=self.read_rate, rates=self.table_rates)


class DynamoDBProvider:
    """DynamoDB provider for paginated range queries.

    Implements Provider[DynamoDBCredentials, DynamoDBParams] and QueryClient.
    Workers created by the provider share one executor and one rate limiter.
    """

    __slots__: ClassVar[tuple[str, ...]] = ("_client", "_executor", "_params")

    _client: "DynamoDBClient"
    _executor: ExponentialBackoff
    _params: DynamoDBParams

    def __init__(
        self,
        client: "DynamoDBClient",
        params: DynamoDBParams,
        limiter: RateLimiter | None = None,
        executor: ExponentialBackoff | None = None,
    ) -> None:
        self._client = client
        self._params = params
        if executor is None:
            limiter = limiter or TokenRateLimiter(params.limiter_params())
            executor = ExponentialBackoff(limiter, params.backoff)
        self._executor = executor

    @classmethod
    async def connect(cls, credentials: DynamoDBCredentials, params: DynamoDBParams) -> Self:
        """Create DynamoDB client and verify the table exists."""
        try:
            client: DynamoDBClient = boto3.client(  # pyright: ignore[reportUnknownMemberType]
                "dynamodb",
                region_name=credentials.region,
                endpoint_url=credentials.endpoint_url,
                aws_access_key_id=credentials.access_key_id,
                aws_secret_access_key=credentials.secret_access_key,
                # Retries belong to the executor, not to botocore.
                config=Config(retries={"mode": "standard", "total_max_attempts": 1}),
            )
            _ = await asyncio.to_thread(client.describe_table, TableName=params.table)
        except ClientError as e:
            if classify_client_error(e) is ErrorKind.NOT_FOUND:
                msg = f"Table '{params.table}' not found"
                raise QueryError(msg, kind=ErrorKind.NOT_FOUND, source=e) from e
            msg = f"Failed to connect to DynamoDB: {e}"
            raise QueryError(msg, kind=ErrorKind.CONNECTION, source=e) from e
        except Exception as e:
            msg = f"Failed to connect to DynamoDB: {e}"
            raise QueryError(msg, kind=ErrorKind.CONNECTION, source=e) from e

        logger.info("Connected to DynamoDB table %s in %s", params.table, credentials.region)
        return cls(client, params)

    async def disconnect(self) -> None:
        """Close the DynamoDB client."""
        self._client.close()

    @property
    def executor(self) -> ExponentialBackoff:
        return self._executor

    async def query(self, request: QueryRequest) -> QueryPage:
        """Fetch the single page selected by `request`."""
        try:
            response = await asyncio.to_thread(self._client.query, **request.to_kwargs())
        except ClientError as e:
            msg = f"Failed to query {request.table_name}: {e}"
            raise QueryError(msg, kind=classify_client_error(e), source=e) from e
        except (HTTPClientError, EndpointError) as e:
            msg = f"Failed to reach DynamoDB for {request.table_name}: {e}"
            raise QueryError(msg, kind=ErrorKind.UNAVAILABLE, source=e) from e

        return _to_page(response)

    def worker(self, request: QueryRequest, key: K) -> QueryWorker[K]:
        """Create a worker paging through `request` on behalf of `key`."""
        return QueryWorker(
            self,
            self._executor,
            request,
            key,
            overhead=self._params.capacity_overhead,
        )

    async def query_many(
        self, requests: Iterable[tuple[K, QueryRequest]]
    ) -> list[KeyedResult[K]]:
        """Run every query to completion concurrently.

        Results are merged per query and returned in input order.
        """
        return await run_workers(self.worker(request, key) for key, request in requests)


def _to_page(response: Any) -> QueryPage:
    consumed = response.get("ConsumedCapacity")
    return QueryPage(
        items=response.get("Items", []),
        count=response.get("Count", 0),
        scanned_count=response.get("ScannedCount", 0),
        consumed_capacity=(
            ConsumedCapacity(
                table_name=consumed.get("TableName"),
                capacity_units=consumed.get("CapacityUnits", 0.0),
            )
            if consumed
            else None
        ),
        last_evaluated_key=response.get("LastEvaluatedKey"),
    )


Provider = DynamoDBProvider
