"""Parameter types for executor configuration.

Params define how the executor behaves (delays, attempt budgets, rates),
while requests carry the query itself and its continuation cursor.
"""

from typing import Annotated, Self, TypeAlias

from pydantic import BaseModel, Field, model_validator

PositiveRate: TypeAlias = Annotated[float, Field(gt=0)]


class BackoffParams(BaseModel, frozen=True):
    """Retry policy for a single remote call."""

    base_delay: float = Field(default=0.025, gt=0)
    """Delay in seconds before the first retry."""

    growth_factor: float = Field(default=2.0, ge=1.0)
    """Multiplier applied to the delay after every retry."""

    max_delay: float = Field(default=5.0, gt=0)
    """Upper bound for the delay between two attempts."""

    max_attempts: int = Field(default=10, ge=1)
    """Total attempts per call, the first one included."""

    jitter: float = Field(default=0.0, ge=0.0, lt=1.0)
    """Largest fraction of the delay randomly shaved off each sleep."""

    @model_validator(mode="after")
    def _check_delays(self) -> Self:
        if self.max_delay < self.base_delay:
            msg = "max_delay must not be smaller than base_delay"
            raise ValueError(msg)
        return self


class LimiterParams(BaseModel, frozen=True):
    """Permit rates for the shared rate limiter."""

    default_rate: float | None = Field(default=None, gt=0)
    """Permits per second for resources without an override. None is unlimited."""

    rates: dict[str, PositiveRate] = Field(default_factory=dict)
    """Per-resource permits per second, keyed by table name."""
