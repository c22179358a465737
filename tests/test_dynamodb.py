"""
Tests for the DynamoDB provider against a stubbed boto3 client.
"""

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber
from pydantic import ValidationError

from dynapage.backoff import ExponentialBackoff
from dynapage.errors import ErrorKind, QueryError
from dynapage.limiter import TokenRateLimiter
from dynapage.models import BackoffParams, QueryRequest
from dynapage.protocols import Provider, QueryClient
from dynapage.providers import dynamodb
from dynapage.providers.dynamodb import (
    DynamoDBCredentials,
    DynamoDBParams,
    DynamoDBProvider,
    classify_client_error,
)

EXPECTED_QUERY = {
    "TableName": "edges",
    "KeyConditionExpression": "pk = :pk",
    "ConsistentRead": False,
    "ScanIndexForward": True,
    "ReturnConsumedCapacity": "TOTAL",
    "ExpressionAttributeValues": {":pk": {"S": "vertex"}},
}


def query_response(start, count, *, units=None, cursor=None, scanned=None):
    response = {
        "Items": [{"pk": {"S": "vertex"}, "sk": {"N": str(i)}} for i in range(start, start + count)],
        "Count": count,
        "ScannedCount": count if scanned is None else scanned,
    }
    if units is not None:
        response["ConsumedCapacity"] = {"TableName": "edges", "CapacityUnits": units}
    if cursor is not None:
        response["LastEvaluatedKey"] = {"pk": {"S": "vertex"}, "sk": {"N": str(cursor)}}
    return response


@pytest.fixture
def client():
    """Provide a DynamoDB client that never leaves the process."""
    return boto3.client(
        "dynamodb",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubber(client):
    with Stubber(client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def provider(client, limiter, sleep):
    """Provide a provider whose executor records instead of sleeping."""
    params = DynamoDBParams(
        table="edges",
        backoff=BackoffParams(base_delay=0.05, max_delay=0.2, max_attempts=3),
    )
    executor = ExponentialBackoff(limiter, params.backoff, sleep=sleep)
    return DynamoDBProvider(client, params, executor=executor)


class TestClassifyClientError:
    """Mapping of service error codes onto error kinds."""

    @pytest.mark.parametrize(
        ("code", "kind"),
        [
            ("ProvisionedThroughputExceededException", ErrorKind.THROTTLED),
            ("ThrottlingException", ErrorKind.THROTTLED),
            ("RequestLimitExceeded", ErrorKind.THROTTLED),
            ("InternalServerError", ErrorKind.UNAVAILABLE),
            ("ServiceUnavailable", ErrorKind.UNAVAILABLE),
            ("ValidationException", ErrorKind.INVALID_INPUT),
            ("ResourceNotFoundException", ErrorKind.NOT_FOUND),
            ("AccessDeniedException", ErrorKind.PERMISSION_DENIED),
            ("ConditionalCheckFailedException", ErrorKind.PROVIDER),
        ],
    )
    def test_codes(self, code, kind):
        """Test each code lands in its taxonomy bucket."""
        error = ClientError({"Error": {"Code": code, "Message": "x"}}, "Query")
        assert classify_client_error(error) is kind

    def test_recoverable_kinds(self):
        """Test only throttling and unavailability are retried."""
        recoverable = {kind for kind in ErrorKind if kind.recoverable}
        assert recoverable == {ErrorKind.THROTTLED, ErrorKind.UNAVAILABLE}


class TestDynamoDBQuery:
    """Single page queries."""

    async def test_query_converts_response(self, provider, stubber, request_template):
        """Test a response becomes a page with capacity and cursor."""
        stubber.add_response(
            "query", query_response(0, 3, units=2.5, cursor=2, scanned=4), EXPECTED_QUERY
        )

        page = await provider.query(request_template)

        assert page.count == 3
        assert page.scanned_count == 4
        assert page.items[0] == {"pk": {"S": "vertex"}, "sk": {"N": "0"}}
        assert page.consumed_capacity.capacity_units == 2.5
        assert page.consumed_capacity.table_name == "edges"
        assert page.last_evaluated_key == {"pk": {"S": "vertex"}, "sk": {"N": "2"}}

    async def test_query_without_capacity(self, provider, stubber, request_template):
        """Test a response without consumed capacity keeps it unset."""
        stubber.add_response("query", query_response(0, 1), EXPECTED_QUERY)

        page = await provider.query(request_template)

        assert page.consumed_capacity is None
        assert not page.has_cursor

    async def test_query_error_is_classified(self, provider, stubber, request_template):
        """Test a service error surfaces as a tagged query error."""
        stubber.add_client_error("query", service_error_code="ValidationException")

        with pytest.raises(QueryError) as exc_info:
            await provider.query(request_template)

        assert exc_info.value.kind is ErrorKind.INVALID_INPUT
        assert isinstance(exc_info.value.source, ClientError)

    def test_provider_satisfies_protocols(self, provider):
        """Test the provider is both a query client and a provider."""
        assert isinstance(provider, QueryClient)
        assert isinstance(provider, Provider)


class TestDynamoDBWorker:
    """Paging through the provider."""

    async def test_worker_pages_to_completion(
        self, provider, stubber, limiter, request_template
    ):
        """Test a worker follows cursors and merges three pages."""
        stubber.add_response("query", query_response(0, 40, units=5.0, cursor=39), EXPECTED_QUERY)
        stubber.add_response(
            "query",
            query_response(40, 35, units=3.0, cursor=74),
            {**EXPECTED_QUERY, "ExclusiveStartKey": {"pk": {"S": "vertex"}, "sk": {"N": "39"}}},
        )
        stubber.add_response(
            "query",
            query_response(75, 25, units=1.0),
            {**EXPECTED_QUERY, "ExclusiveStartKey": {"pk": {"S": "vertex"}, "sk": {"N": "74"}}},
        )

        result = await provider.worker(request_template, key=b"vertex").run()

        assert result.key == b"vertex"
        assert result.page.count == 100
        assert result.page.consumed_capacity.capacity_units == pytest.approx(9.0)
        assert [permits for _, permits in limiter.acquired] == [1, 4, 2]

    async def test_throttling_is_retried(self, provider, stubber, sleep, request_template):
        """Test throughput errors back off and then succeed."""
        stubber.add_client_error(
            "query",
            service_error_code="ProvisionedThroughputExceededException",
            http_status_code=400,
        )
        stubber.add_client_error(
            "query", service_error_code="InternalServerError", http_status_code=500
        )
        stubber.add_response("query", query_response(0, 2, units=1.0), EXPECTED_QUERY)

        result = await provider.worker(request_template, key="k").run()

        assert result.page.count == 2
        assert sleep.delays == pytest.approx([0.05, 0.1])

    async def test_persistent_throttling_gives_up(self, provider, stubber, request_template):
        """Test the attempt budget bounds retries against the service."""
        for _ in range(3):
            stubber.add_client_error("query", service_error_code="ThrottlingException")

        with pytest.raises(QueryError) as exc_info:
            await provider.worker(request_template, key="k").fetch_next()

        assert exc_info.value.kind is ErrorKind.RETRIES_EXHAUSTED
        assert exc_info.value.attempts == 3

    async def test_query_many(self, provider, stubber):
        """Test concurrent queries return merged results in input order."""
        requests = [
            (
                key,
                QueryRequest(
                    table_name="edges",
                    key_condition_expression="pk = :pk",
                    expression_attribute_values={":pk": {"S": key}},
                ),
            )
            for key in ("a", "b")
        ]
        for _ in requests:
            stubber.add_response("query", query_response(0, 2, units=1.0))

        results = await provider.query_many(requests)

        assert [result.key for result in results] == ["a", "b"]
        assert [result.page.count for result in results] == [2, 2]


class TestDynamoDBConnect:
    """Connection lifecycle."""

    @pytest.fixture
    def patched_boto3(self, client, monkeypatch):
        monkeypatch.setattr(dynamodb.boto3, "client", lambda *args, **kwargs: client)

    async def test_connect_verifies_table(self, client, stubber, patched_boto3):
        """Test connecting describes the configured table."""
        stubber.add_response(
            "describe_table", {"Table": {"TableName": "edges"}}, {"TableName": "edges"}
        )

        provider = await DynamoDBProvider.connect(
            DynamoDBCredentials(), DynamoDBParams(table="edges", read_rate=50.0)
        )

        assert isinstance(provider.executor, ExponentialBackoff)
        await provider.disconnect()

    async def test_connect_missing_table(self, stubber, patched_boto3):
        """Test a missing table is reported as not found."""
        stubber.add_client_error(
            "describe_table", service_error_code="ResourceNotFoundException"
        )

        with pytest.raises(QueryError) as exc_info:
            await DynamoDBProvider.connect(DynamoDBCredentials(), DynamoDBParams(table="edges"))

        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    async def test_connect_other_failure(self, stubber, patched_boto3):
        """Test any other failure is reported as a connection error."""
        stubber.add_client_error("describe_table", service_error_code="AccessDeniedException")

        with pytest.raises(QueryError) as exc_info:
            await DynamoDBProvider.connect(DynamoDBCredentials(), DynamoDBParams(table="edges"))

        assert exc_info.value.kind is ErrorKind.CONNECTION

    @pytest.mark.parametrize("rate", [0.0, -1.0])
    def test_params_reject_non_positive_table_rates(self, rate):
        """Test a table rate that would stall or disable throttling is refused."""
        with pytest.raises(ValidationError):
            DynamoDBParams(table="edges", table_rates={"edges": rate})

    def test_params_build_limiter(self):
        """Test table rates override the default read rate."""
        params = DynamoDBParams(table="edges", read_rate=10.0, table_rates={"vertices": 20.0})
        limiter = TokenRateLimiter(params.limiter_params())

        assert limiter.rate_for("edges") == 10.0
        assert limiter.rate_for("vertices") == 20.0
