"""Retry policy algebra.

A policy maps a RetryStatus to a delay in microseconds, or None to stop.
Policies are immutable values; combining them never mutates either side.

Combination (``a & b`` / ``a.combine(b)``):

1. If either policy stops, the combined policy stops. This is how limits
   inhibit a backoff after a number of retries.
2. If both return a delay, the larger one is used.

``RetryPolicy.identity()`` always answers 0 and never stops. It is the
identity with respect to stopping, and since delays are never negative the
max rule means it never changes another policy's delay either.

Example:
    >>> from retrykit.retry import exponential_backoff, limit_retries
    >>> limited = exponential_backoff(50_000) & limit_retries(5)
    >>> limited.consult(RetryStatus(iter_number=2))
    200000
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Awaitable
from typing import Callable, Protocol, runtime_checkable

from retrykit.foundation.errors import InvalidArgument

from .bounded import bounded_add
from .status import RetryStatus

DecisionFn = Callable[[RetryStatus], "int | None"]

MICROSECONDS = 1_000_000

# longest single wait accepted by time.sleep, asyncio.sleep and threading
# timeouts (about 68 years, less where the platform lock timeout is shorter)
MAX_SLEEP_SECONDS = min(float(2**31 - 1), threading.TIMEOUT_MAX)


def delay_seconds(delay: int) -> float:
    """Microseconds to seconds for a sleep primitive, clamped to MAX_SLEEP_SECONDS.

    Saturated delays (up to MAX_INT microseconds) become the longest wait the
    sleep primitive can take instead of an OverflowError.
    """
    return min(delay / MICROSECONDS, MAX_SLEEP_SECONDS)


@runtime_checkable
class Policy(Protocol):
    """Anything that can decide the next delay from retry progress."""

    def consult(self, status: RetryStatus) -> int | None:
        """Return a delay in microseconds, or None to stop retrying."""
        ...


class RetryPolicy:
    """Composable retry decision function.

    Build one with the constructors in ``retrykit.retry.backoff`` or from a
    plain function with ``retry_policy``.
    """

    __slots__ = ("_decide", "_name")

    def __init__(self, decide: DecisionFn, *, name: str | None = None) -> None:
        self._decide = decide
        self._name = name or getattr(decide, "__name__", "policy")

    @classmethod
    def of(cls, policy: Policy | RetryPolicy) -> RetryPolicy:
        """Lift any Policy implementation into a RetryPolicy."""
        if isinstance(policy, RetryPolicy):
            return policy
        return cls(policy.consult, name=type(policy).__name__)

    @classmethod
    def identity(cls) -> RetryPolicy:
        """Retry immediately, forever."""
        return _IDENTITY

    @property
    def name(self) -> str:
        return self._name

    def consult(self, status: RetryStatus) -> int | None:
        return self._decide(status)

    __call__ = consult

    def combine(self, other: Policy | RetryPolicy) -> RetryPolicy:
        """Stop if either side stops, otherwise wait the longer of both delays."""
        right = RetryPolicy.of(other)

        def combined(status: RetryStatus) -> int | None:
            if (a := self._decide(status)) is None:
                return None
            if (b := right._decide(status)) is None:
                return None
            return max(a, b)

        return RetryPolicy(combined, name=f"{self._name} & {right._name}")

    __and__ = combine

    def __rand__(self, other: Policy) -> RetryPolicy:
        """``ConstantDelay(9) & policy``: the left operand is consulted first."""
        if not isinstance(other, Policy):
            return NotImplemented
        return RetryPolicy.of(other).combine(self)

    def map_delay(self, fn: Callable[[int], int]) -> RetryPolicy:
        """Transform returned delays; stop decisions are left untouched."""
        def mapped(status: RetryStatus) -> int | None:
            delay = self._decide(status)
            return None if delay is None else fn(delay)

        return RetryPolicy(mapped, name=self._name)

    def override_delay(self, delay: int) -> RetryPolicy:
        """Keep this policy's stop decisions but always wait ``delay``."""
        return self.map_delay(lambda _: delay)

    def __repr__(self) -> str:
        return f"RetryPolicy({self._name})"


_IDENTITY = RetryPolicy(lambda _: 0, name="identity")


def retry_policy(fn: DecisionFn) -> RetryPolicy:
    """Make a policy from a plain ``RetryStatus -> int | None`` function.

    Example:
        >>> policy = retry_policy(lambda s: 1000 if s.iter_number > 10 else 10000)
    """
    return RetryPolicy(fn)


def combine_all(*policies: Policy | RetryPolicy) -> RetryPolicy:
    """Fold policies with ``&``, starting from the identity."""
    result = RetryPolicy.identity()
    for p in policies:
        result = result & p
    return result


def retry_policy_default() -> RetryPolicy:
    """Constant 50ms delay, up to 5 retries."""
    from .backoff import constant_delay, limit_retries
    return constant_delay(50_000) & limit_retries(5)


# ─────────────────────────────────────────────────────────────────────────────
# Application
# ─────────────────────────────────────────────────────────────────────────────


def apply_policy(policy: Policy | RetryPolicy, status: RetryStatus) -> RetryStatus | None:
    """Consult policy at status without sleeping.

    Returns:
        The status for the next attempt, or None if the policy stops
    """
    delay = policy.consult(status)
    if delay is None:
        return None
    if delay < 0:
        raise InvalidArgument(f"Policy {policy!r} returned negative delay {delay}")
    return RetryStatus(
        iter_number=status.iter_number + 1,
        cumulative_delay=bounded_add(status.cumulative_delay, delay),
        previous_delay=delay,
    )


async def apply_and_delay(
    policy: Policy | RetryPolicy,
    status: RetryStatus,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> RetryStatus | None:
    """Apply policy and, if it continues, wait for the chosen delay.

    The wait is an ordinary await, so cancelling the task aborts it.
    """
    if (next_status := apply_policy(policy, status)) is None:
        return None
    if next_status.previous_delay is not None:
        await sleep(delay_seconds(next_status.previous_delay))
    return next_status


def apply_and_delay_sync(
    policy: Policy | RetryPolicy,
    status: RetryStatus,
    *,
    sleep: Callable[[float], object] = time.sleep,
) -> RetryStatus | None:
    """Blocking version of apply_and_delay."""
    if (next_status := apply_policy(policy, status)) is None:
        return None
    if next_status.previous_delay is not None:
        sleep(delay_seconds(next_status.previous_delay))
    return next_status
