"""Retry policies and policy transformers.

Each strategy is a small frozen dataclass implementing the ``Policy``
protocol; the snake_case constructors wrap them into composable
``RetryPolicy`` values:

- limit_retries: Retry immediately, up to N times
- constant_delay: Fixed delay, unlimited retries
- exponential_backoff: Delay doubles every iteration
- fibonacci_backoff: Delay follows the Fibonacci sequence
- full_jitter_backoff: Exponential with randomization (many retriers)
- limit_retries_by_delay / limit_retries_by_cumulative_delay: Stop on a delay budget
- cap_delay: Clamp delays without ever stopping

All delays are integers in microseconds. Iteration numbers are 0-indexed.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable

from retrykit.foundation.errors import require_non_negative

from .bounded import bounded_add, bounded_multiply, bounded_power
from .policy import Policy, RetryPolicy
from .status import RetryStatus

RandInt = Callable[[int, int], int]


@dataclass(frozen=True, slots=True)
class LimitRetries:
    """Zero delay while iter_number < max_count, then stop."""

    max_count: int

    def __post_init__(self) -> None:
        require_non_negative("max_count", self.max_count)

    def consult(self, status: RetryStatus) -> int | None:
        return None if status.iter_number >= self.max_count else 0


@dataclass(frozen=True, slots=True)
class ConstantDelay:
    """Fixed delay between retries; never stops on its own."""

    delay: int

    def __post_init__(self) -> None:
        require_non_negative("delay", self.delay)

    def consult(self, status: RetryStatus) -> int | None:
        return self.delay


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Delay = base * 2 ** n, saturating."""

    base: int

    def __post_init__(self) -> None:
        require_non_negative("base", self.base)

    def consult(self, status: RetryStatus) -> int | None:
        return bounded_multiply(self.base, bounded_power(2, status.iter_number))


@dataclass(frozen=True, slots=True)
class FibonacciBackoff:
    """Delay is the (n+1)-th term of the sequence seeded with (0, base)."""

    base: int

    def __post_init__(self) -> None:
        require_non_negative("base", self.base)

    def consult(self, status: RetryStatus) -> int | None:
        a, b = 0, self.base
        for _ in range(status.iter_number + 1):
            nxt = (b, bounded_add(a, b))
            if nxt == (a, b):  # fixed point (zero base or saturated)
                break
            a, b = nxt
        return a


@dataclass(frozen=True, slots=True)
class FullJitterBackoff:
    """AWS-style full jitter exponential backoff.

    temp = base * 2 ** n / 2; delay = temp + randint(0, temp)

    Reference: https://aws.amazon.com/blogs/architecture/exponential-backoff-and-jitter/

    Attributes:
        base: Base delay in microseconds
        randint: Inclusive uniform integer source (default: random.randint)
    """

    base: int
    randint: RandInt = field(default=random.randint, compare=False, repr=False)

    def __post_init__(self) -> None:
        require_non_negative("base", self.base)

    def consult(self, status: RetryStatus) -> int | None:
        d = bounded_multiply(self.base, bounded_power(2, status.iter_number)) // 2
        return bounded_add(d, self.randint(0, d))


@dataclass(frozen=True, slots=True)
class LimitByDelay:
    """Stop once the wrapped policy's per-try delay reaches the limit."""

    limit: int
    policy: Policy

    def __post_init__(self) -> None:
        require_non_negative("limit", self.limit)

    def consult(self, status: RetryStatus) -> int | None:
        delay = self.policy.consult(status)
        if delay is None or delay >= self.limit:
            return None
        return delay


@dataclass(frozen=True, slots=True)
class LimitByCumulativeDelay:
    """Stop once cumulative delay plus the next delay would exceed the limit."""

    limit: int
    policy: Policy

    def __post_init__(self) -> None:
        require_non_negative("limit", self.limit)

    def consult(self, status: RetryStatus) -> int | None:
        delay = self.policy.consult(status)
        if delay is None or bounded_add(status.cumulative_delay, delay) > self.limit:
            return None
        return delay


@dataclass(frozen=True, slots=True)
class CapDelay:
    """Clamp delays to at most ``limit``; never turns a delay into a stop."""

    limit: int
    policy: Policy

    def __post_init__(self) -> None:
        require_non_negative("limit", self.limit)

    def consult(self, status: RetryStatus) -> int | None:
        delay = self.policy.consult(status)
        return None if delay is None else min(delay, self.limit)


# ─────────────────────────────────────────────────────────────────────────────
# Constructors
# ─────────────────────────────────────────────────────────────────────────────


def limit_retries(max_count: int) -> RetryPolicy:
    """Retry immediately, but only up to ``max_count`` times."""
    return RetryPolicy.of(LimitRetries(max_count))


def constant_delay(delay: int) -> RetryPolicy:
    """Constant delay with unlimited retries."""
    return RetryPolicy.of(ConstantDelay(delay))


def exponential_backoff(base: int) -> RetryPolicy:
    """Grow delay exponentially; each delay doubles the previous one."""
    return RetryPolicy.of(ExponentialBackoff(base))


def fibonacci_backoff(base: int) -> RetryPolicy:
    return RetryPolicy.of(FibonacciBackoff(base))


def full_jitter_backoff(base: int, *, randint: RandInt = random.randint) -> RetryPolicy:
    """Full jitter backoff; ``randint`` is the random source (inclusive bounds)."""
    return RetryPolicy.of(FullJitterBackoff(base, randint))


def limit_retries_by_delay(limit: int, policy: Policy) -> RetryPolicy:
    """Stop retrying once the per-try delay reaches or exceeds ``limit``.

    To stop on total time spent waiting, use limit_retries_by_cumulative_delay.
    """
    return RetryPolicy.of(LimitByDelay(limit, policy))


def limit_retries_by_cumulative_delay(limit: int, policy: Policy) -> RetryPolicy:
    """Stop retrying once the cumulative delay would exceed ``limit``."""
    return RetryPolicy.of(LimitByCumulativeDelay(limit, policy))


def cap_delay(limit: int, policy: Policy) -> RetryPolicy:
    """Set an upper bound on any delay directed by ``policy``.

    This does not terminate retrying: ``cap_delay(m, exponential_backoff(n))``
    retries forever with a delay of ``m``. Combine with limit_retries (or one
    of its variants) to get termination.
    """
    return RetryPolicy.of(CapDelay(limit, policy))
