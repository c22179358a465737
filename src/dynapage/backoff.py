"""Retrying executor for single remote calls."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Iterator
from typing import ClassVar, TypeVar

from dynapage.errors import ErrorKind, QueryError
from dynapage.models.params import BackoffParams
from dynapage.protocols import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExponentialBackoff:
    """Runs one logical remote call with permit acquisition and retries.

    Every attempt first acquires its permits from the shared limiter. Calls
    failing with a recoverable `QueryError` are retried after an exponentially
    growing delay, capped at `max_delay`, until `max_attempts` attempts have
    been made. Fatal errors propagate after a single attempt.
    """

    __slots__: ClassVar[tuple[str, ...]] = ("_limiter", "_params", "_rng", "_sleep")

    _limiter: RateLimiter
    _params: BackoffParams
    _rng: random.Random
    _sleep: Callable[[float], Awaitable[None]]

    def __init__(
        self,
        limiter: RateLimiter,
        params: BackoffParams | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._limiter = limiter
        self._params = params or BackoffParams()
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def params(self) -> BackoffParams:
        return self._params

    def delays(self) -> Iterator[float]:
        """Yield the nominal delay before each retry, without jitter."""
        delay = self._params.base_delay
        for _ in range(self._params.max_attempts - 1):
            yield delay
            delay = min(delay * self._params.growth_factor, self._params.max_delay)

    def _jittered(self, delay: float) -> float:
        if not self._params.jitter:
            return delay
        return delay - self._rng.uniform(0.0, delay * self._params.jitter)

    async def run(
        self,
        call: Callable[[], Awaitable[T]],
        *,
        resource: str,
        permits: int = 1,
    ) -> T:
        """Execute `call` against `resource`, retrying recoverable failures.

        Raises:
            QueryError: The call's own error when it is fatal, or an error of
                kind `RETRIES_EXHAUSTED` wrapping the last recoverable failure
                once every attempt has been spent.
        """
        delays = self.delays()
        last_error: QueryError | None = None

        for attempt in range(1, self._params.max_attempts + 1):
            await self._limiter.acquire(resource, permits)
            try:
                return await call()
            except QueryError as e:
                if not e.recoverable:
                    logger.debug("Fatal %s error on %s, attempt %d", e.kind, resource, attempt)
                    raise
                last_error = e

            delay = next(delays, None)
            if delay is None:
                break
            logger.warning(
                "Recoverable %s error on %s (attempt %d/%d), retrying in %.3fs",
                last_error.kind,
                resource,
                attempt,
                self._params.max_attempts,
                delay,
            )
            await self._sleep(self._jittered(delay))

        attempts = self._params.max_attempts
        logger.error("Giving up on %s after %d attempts: %s", resource, attempts, last_error)
        msg = f"Gave up on {resource} after {attempts} attempts: {last_error}"
        raise QueryError(
            msg,
            kind=ErrorKind.RETRIES_EXHAUSTED,
            source=last_error,
            attempts=attempts,
        ) from last_error
