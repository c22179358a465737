"""Self-throttling paginated query execution for capacity-limited key-value stores."""

from dynapage.backoff import ExponentialBackoff
from dynapage.errors import ErrorKind, QueryError
from dynapage.limiter import TokenRateLimiter
from dynapage.permits import estimate_permits
from dynapage.protocols import PaginatingTask, Provider, QueryClient, RateLimiter
from dynapage.worker import QueryWorker, run_workers

__all__ = [
    "ErrorKind",
    "ExponentialBackoff",
    "PaginatingTask",
    "Provider",
    "QueryClient",
    "QueryError",
    "QueryWorker",
    "RateLimiter",
    "TokenRateLimiter",
    "estimate_permits",
    "run_workers",
]
