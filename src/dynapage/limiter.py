"""Shared per-resource rate limiter."""

import asyncio
import logging
import math
import threading
import time
from collections.abc import Awaitable, Callable
from typing import ClassVar

from dynapage.models.params import LimiterParams

logger = logging.getLogger(__name__)


class TokenRateLimiter:
    """Smooth permits-per-second limiter keyed by resource name.

    Each acquisition reserves the next free slot for its resource and pushes
    that slot forward by `permits / rate` seconds. The reservation is taken
    under a short lock and the wait happens outside it, so the limiter may be
    shared by any number of tasks and threads. A request larger than the rate
    is granted once its slot comes up; the debt is paid by later callers.
    """

    __slots__: ClassVar[tuple[str, ...]] = ("_clock", "_lock", "_next_free", "_params", "_sleep")

    _clock: Callable[[], float]
    _lock: threading.Lock
    _next_free: dict[str, float]
    _params: LimiterParams
    _sleep: Callable[[float], Awaitable[None]]

    def __init__(
        self,
        params: LimiterParams | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._params = params or LimiterParams()
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_free = {}

    def rate_for(self, resource: str) -> float | None:
        """Permits per second for `resource`, or None when unlimited."""
        return self._params.rates.get(resource, self._params.default_rate)

    def reserve(self, resource: str, permits: int = 1) -> float:
        """Reserve `permits` and return how long the caller must wait."""
        if permits < 1:
            msg = f"permits must be at least 1, got {permits}"
            raise ValueError(msg)

        rate = self.rate_for(resource)
        if rate is None or math.isinf(rate):
            return 0.0

        with self._lock:
            now = self._clock()
            slot = max(self._next_free.get(resource, now), now)
            self._next_free[resource] = slot + permits / rate
        return slot - now

    async def acquire(self, resource: str, permits: int = 1) -> None:
        """Wait until `permits` may be spent against `resource`."""
        wait = self.reserve(resource, permits)
        if wait > 0:
            logger.debug("Waiting %.3fs for %d permit(s) on %s", wait, permits, resource)
            await self._sleep(wait)
