"""
Shared pytest fixtures for query execution tests.
"""

import pytest

from dynapage.backoff import ExponentialBackoff
from dynapage.models import BackoffParams, QueryRequest
from tests.fakes import FakeLimiter, RecordingSleep


@pytest.fixture
def request_template():
    """Provide a range query on the edges table."""
    return QueryRequest(
        table_name="edges",
        key_condition_expression="pk = :pk",
        expression_attribute_values={":pk": {"S": "vertex"}},
    )


@pytest.fixture
def backoff_params():
    """Provide a small, fast retry policy."""
    return BackoffParams(base_delay=0.1, growth_factor=2.0, max_delay=0.5, max_attempts=5)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def limiter():
    return FakeLimiter()


@pytest.fixture
def executor(limiter, backoff_params, sleep):
    """Provide an executor that records instead of sleeping."""
    return ExponentialBackoff(limiter, backoff_params, sleep=sleep)
