"""Driving loops that apply a retry policy around an operation.

Every driver comes in two flavours: the unsuffixed coroutine for asyncio
code and a ``_sync`` version that blocks the calling thread.

- retrying / retrying_dynamic: retry based on the returned value
- recovering / recovering_dynamic: retry based on raised exceptions
- recover_all: retry any exception except interruptions
- stepping: run a single attempt and hand the next one to a scheduler

Operations receive the current RetryStatus. Attempts are strictly
sequential. Classifiers, handlers and policies are plain synchronous calls,
so the bookkeeping between attempts has no await point and a task
cancellation can only land inside the operation, inside the delay, or at
the checkpoint taken before each re-attempt. Interruptions
(``asyncio.CancelledError``, ``KeyboardInterrupt``, ...) are re-raised before
any handler is matched.

On exhaustion the caller always sees the last result, or the original
exception object with its traceback; nothing is wrapped.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Sequence
from typing import Callable, TypeVar

from retrykit.runtime.concurrency import checkpoint, is_interruption

from .action import (
    ConsultPolicy,
    ConsultPolicyOverrideDelay,
    DontRetry,
    RetryAction,
    to_retry_action,
)
from .handlers import Handler, first_match, skip_async_exceptions
from .policy import (
    Policy,
    RetryPolicy,
    apply_and_delay,
    apply_and_delay_sync,
    apply_policy,
    delay_seconds,
)
from .status import DEFAULT_RETRY_STATUS, RetryStatus

T = TypeVar("T")

logger = logging.getLogger("retrykit.retry.drivers")

AsyncSleep = Callable[[float], Awaitable[object]]
SyncSleep = Callable[[float], object]


def _policy_for(policy: Policy, action: RetryAction) -> Policy | None:
    """Policy to consult for action, or None when the action forbids retrying."""
    match action:
        case DontRetry():
            return None
        case ConsultPolicy():
            return policy
        case ConsultPolicyOverrideDelay(delay=delay):
            return RetryPolicy.of(policy).override_delay(delay)
    raise TypeError(f"Expected a RetryAction, got {action!r}")


def _dynamic(handlers: Sequence[Handler[bool]]) -> list[Handler[RetryAction]]:
    """Turn boolean handlers into RetryAction handlers."""
    def lift(decide: Callable[[BaseException, RetryStatus], bool]) -> Callable[[BaseException, RetryStatus], RetryAction]:
        return lambda exc, status: to_retry_action(decide(exc, status))

    return [Handler(h.kind, lift(h.decide)) for h in handlers]


def _recover(
    policy: Policy, handlers: Sequence[Handler[RetryAction]], exc: BaseException, status: RetryStatus,
) -> RetryStatus | None:
    """Classify a failure and compute the next status, None meaning "re-raise"."""
    if is_interruption(exc) or (handler := first_match(handlers, exc)) is None:
        return None
    if (effective := _policy_for(policy, handler(exc, status))) is None:
        return None
    if (next_status := apply_policy(effective, status)) is None:
        logger.info(f"[retry:{status.iter_number}] Policy exhausted, re-raising {type(exc).__name__}")
        return None
    logger.debug(
        f"[retry:{status.iter_number}] {type(exc).__name__}: retrying in {next_status.previous_delay}us "
        f"(cumulative {next_status.cumulative_delay}us)"
    )
    return next_status


def _catch_all() -> list[Handler[bool]]:
    return [*skip_async_exceptions(), Handler(BaseException, lambda e, s: True)]


# ─────────────────────────────────────────────────────────────────────────────
# Value-based retries
# ─────────────────────────────────────────────────────────────────────────────


async def retrying_dynamic(
    policy: Policy,
    classify: Callable[[RetryStatus, T], RetryAction],
    operation: Callable[[RetryStatus], Awaitable[T]],
    *,
    sleep: AsyncSleep = asyncio.sleep,
) -> T:
    """Retry while ``classify`` asks for it and the policy allows it.

    ``ConsultPolicyOverrideDelay`` replaces the policy's delay for one
    consultation (e.g. from a Retry-After header); the policy still decides
    whether to stop.

    Returns:
        The first accepted result, or the last result once the policy stops
    """
    status = DEFAULT_RETRY_STATUS
    while True:
        result = await operation(status)
        if (effective := _policy_for(policy, classify(status, result))) is None:
            return result
        if (next_status := await apply_and_delay(effective, status, sleep=sleep)) is None:
            logger.info(f"[retry:{status.iter_number}] Policy exhausted, returning last result")
            return result
        status = next_status
        await checkpoint()


async def retrying(
    policy: Policy,
    check: Callable[[RetryStatus, T], bool],
    operation: Callable[[RetryStatus], Awaitable[T]],
    *,
    sleep: AsyncSleep = asyncio.sleep,
) -> T:
    """Retry operations that signal failure in their result.

    Example:
        >>> result = await retrying(
        ...     retry_policy_default(),
        ...     lambda status, r: r is None,
        ...     lambda status: fetch_optional(),
        ... )
    """
    return await retrying_dynamic(
        policy, lambda status, result: to_retry_action(check(status, result)), operation, sleep=sleep,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Exception-based retries
# ─────────────────────────────────────────────────────────────────────────────


async def recovering_dynamic(
    policy: Policy,
    handlers: Sequence[Handler[RetryAction]],
    operation: Callable[[RetryStatus], Awaitable[T]],
    *,
    sleep: AsyncSleep = asyncio.sleep,
) -> T:
    """Run operation, recovering from exceptions according to ``handlers``.

    Handlers are tried in order; the first one whose kind matches decides.
    Unmatched exceptions, DontRetry and policy exhaustion all re-raise the
    original exception unchanged.
    """
    status = DEFAULT_RETRY_STATUS
    while True:
        try:
            return await operation(status)
        except BaseException as exc:
            if (next_status := _recover(policy, handlers, exc, status)) is None:
                raise
        # outside the except block: exc is not held across the delay
        await sleep(delay_seconds(next_status.previous_delay))
        status = next_status
        await checkpoint()


async def recovering(
    policy: Policy,
    handlers: Sequence[Handler[bool]],
    operation: Callable[[RetryStatus], Awaitable[T]],
    *,
    sleep: AsyncSleep = asyncio.sleep,
) -> T:
    """recovering_dynamic with boolean handlers (True = consult the policy).

    If you use a catch-all handler, put ``skip_async_exceptions()`` first.
    """
    return await recovering_dynamic(policy, _dynamic(handlers), operation, sleep=sleep)


async def recover_all(
    policy: Policy,
    operation: Callable[[RetryStatus], Awaitable[T]],
    *,
    sleep: AsyncSleep = asyncio.sleep,
) -> T:
    """Retry every exception except cancellation and interruption. Use with caution."""
    return await recovering(policy, _catch_all(), operation, sleep=sleep)


async def stepping(
    policy: Policy,
    handlers: Sequence[Handler[bool]],
    schedule: Callable[[RetryStatus], object],
    operation: Callable[[RetryStatus], Awaitable[T]],
    status: RetryStatus,
) -> T | None:
    """Run a single attempt; never sleeps.

    On a retryable failure the next status is passed to ``schedule`` (which
    may be a coroutine function), typically to re-deliver the work item
    later, and None is returned. Operations returning None on success are
    indistinguishable from a scheduled retry by return value alone.

    Raises:
        The original exception when it is unmatched, not retryable, or the
        policy stops
    """
    try:
        return await operation(status)
    except BaseException as exc:
        if (next_status := _recover(policy, _dynamic(handlers), exc, status)) is None:
            raise
    if inspect.isawaitable(scheduled := schedule(next_status)):
        await scheduled
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Blocking variants
# ─────────────────────────────────────────────────────────────────────────────


def retrying_dynamic_sync(
    policy: Policy,
    classify: Callable[[RetryStatus, T], RetryAction],
    operation: Callable[[RetryStatus], T],
    *,
    sleep: SyncSleep = time.sleep,
) -> T:
    """Blocking version of retrying_dynamic."""
    status = DEFAULT_RETRY_STATUS
    while True:
        result = operation(status)
        if (effective := _policy_for(policy, classify(status, result))) is None:
            return result
        if (next_status := apply_and_delay_sync(effective, status, sleep=sleep)) is None:
            logger.info(f"[retry:{status.iter_number}] Policy exhausted, returning last result")
            return result
        status = next_status


def retrying_sync(
    policy: Policy,
    check: Callable[[RetryStatus, T], bool],
    operation: Callable[[RetryStatus], T],
    *,
    sleep: SyncSleep = time.sleep,
) -> T:
    """Blocking version of retrying."""
    return retrying_dynamic_sync(
        policy, lambda status, result: to_retry_action(check(status, result)), operation, sleep=sleep,
    )


def recovering_dynamic_sync(
    policy: Policy,
    handlers: Sequence[Handler[RetryAction]],
    operation: Callable[[RetryStatus], T],
    *,
    sleep: SyncSleep = time.sleep,
) -> T:
    """Blocking version of recovering_dynamic."""
    status = DEFAULT_RETRY_STATUS
    while True:
        try:
            return operation(status)
        except BaseException as exc:
            if (next_status := _recover(policy, handlers, exc, status)) is None:
                raise
        sleep(delay_seconds(next_status.previous_delay))
        status = next_status


def recovering_sync(
    policy: Policy,
    handlers: Sequence[Handler[bool]],
    operation: Callable[[RetryStatus], T],
    *,
    sleep: SyncSleep = time.sleep,
) -> T:
    """Blocking version of recovering."""
    return recovering_dynamic_sync(policy, _dynamic(handlers), operation, sleep=sleep)


def recover_all_sync(
    policy: Policy,
    operation: Callable[[RetryStatus], T],
    *,
    sleep: SyncSleep = time.sleep,
) -> T:
    """Blocking version of recover_all."""
    return recovering_sync(policy, _catch_all(), operation, sleep=sleep)


def stepping_sync(
    policy: Policy,
    handlers: Sequence[Handler[bool]],
    schedule: Callable[[RetryStatus], object],
    operation: Callable[[RetryStatus], T],
    status: RetryStatus,
) -> T | None:
    """Blocking version of stepping (which never blocks on a delay either)."""
    try:
        return operation(status)
    except BaseException as exc:
        if (next_status := _recover(policy, _dynamic(handlers), exc, status)) is None:
            raise
    schedule(next_status)
    return None
