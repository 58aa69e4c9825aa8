"""Immutable snapshot of retry progress."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt


class RetryStatus(BaseModel):
    """Stats about retries made thus far.

    A new status is derived every time a policy is consulted; instances are
    never mutated. Delays are in microseconds.

    Attributes:
        iter_number: Iteration number, 0 on the first try
        cumulative_delay: Saturating sum of every delay scheduled so far
        previous_delay: Delay chosen for the latest retry, None on the first try
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        json_schema_extra={
            "title": "Retry Status",
            "examples": [{"iter_number": 2, "cumulative_delay": 150000, "previous_delay": 100000}],
        },
    )

    iter_number: NonNegativeInt = Field(default=0, description="Retries performed so far")
    cumulative_delay: NonNegativeInt = Field(default=0, description="Total delay in microseconds")
    previous_delay: NonNegativeInt | None = Field(default=None, description="Latest delay in microseconds")

    def _replace(self, **changes: int | None) -> RetryStatus:
        # model_copy skips validation; rebuild so field bounds still hold
        return RetryStatus.model_validate({**self.model_dump(), **changes})

    def with_iter_number(self, value: int) -> RetryStatus:
        return self._replace(iter_number=value)

    def with_cumulative_delay(self, value: int) -> RetryStatus:
        return self._replace(cumulative_delay=value)

    def with_previous_delay(self, value: int | None) -> RetryStatus:
        return self._replace(previous_delay=value)


DEFAULT_RETRY_STATUS = RetryStatus()
