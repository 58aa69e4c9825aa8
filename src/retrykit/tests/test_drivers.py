"""Tests for the driving loops.

Sleep primitives are injected fakes that record requested delays, so no
test actually waits.
"""

from __future__ import annotations

import asyncio
import threading
import time

import pytest

from retrykit.retry import (
    CONSULT_POLICY,
    DEFAULT_RETRY_STATUS,
    DONT_RETRY,
    MAX_INT,
    MAX_SLEEP_SECONDS,
    ConsultPolicyOverrideDelay,
    Handler,
    RetryStatus,
    constant_delay,
    exponential_backoff,
    fibonacci_backoff,
    limit_retries,
    recover_all,
    recover_all_sync,
    recovering,
    recovering_dynamic,
    recovering_dynamic_sync,
    recovering_sync,
    retry_policy,
    retry_policy_default,
    retrying,
    retrying_dynamic,
    retrying_dynamic_sync,
    retrying_sync,
    skip_async_exceptions,
    stepping,
    stepping_sync,
)


class KindA(Exception):
    pass


class KindB(Exception):
    pass


class FakeSleep:
    """Records delays instead of sleeping. Usable as sync or async sleep."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    async def aio(self, seconds: float) -> None:
        self.calls.append(seconds)


class Flaky:
    """Operation that raises the given exceptions in order, then returns "ok"."""

    def __init__(self, *failures: BaseException) -> None:
        self.failures = list(failures)
        self.statuses: list[RetryStatus] = []

    def __call__(self, status: RetryStatus) -> str:
        self.statuses.append(status)
        if self.failures:
            raise self.failures.pop(0)
        return "ok"

    async def aio(self, status: RetryStatus) -> str:
        return self(status)

    @property
    def calls(self) -> int:
        return len(self.statuses)


def spy_policy(delay: int = 0) -> tuple[object, list[RetryStatus]]:
    seen: list[RetryStatus] = []

    def decide(status: RetryStatus) -> int:
        seen.append(status)
        return delay

    return retry_policy(decide), seen


# ═════════════════════════════════════════════════════════════════════════════
# Value-based: retrying / retrying_dynamic
# ═════════════════════════════════════════════════════════════════════════════


def test_retrying_runs_k_plus_one_times_and_returns_last_result() -> None:
    sleep = FakeSleep()
    results = iter(range(100))
    calls: list[RetryStatus] = []

    def op(status: RetryStatus) -> int:
        calls.append(status)
        return next(results)

    assert retrying_sync(limit_retries(3), lambda s, r: True, op, sleep=sleep) == 3
    assert len(calls) == 4
    assert [s.iter_number for s in calls] == [0, 1, 2, 3]
    assert sleep.calls == [0.0, 0.0, 0.0]


def test_retrying_stops_when_check_accepts() -> None:
    sleep = FakeSleep()
    calls: list[int] = []

    def op(status: RetryStatus) -> int:
        calls.append(status.iter_number)
        return status.iter_number

    assert retrying_sync(retry_policy_default(), lambda s, r: r < 2, op, sleep=sleep) == 2
    assert calls == [0, 1, 2]
    assert sleep.calls == [0.05, 0.05]


def test_retrying_with_default_policy_exhausts_after_five_retries() -> None:
    sleep = FakeSleep()
    calls: list[RetryStatus] = []

    def op(status: RetryStatus) -> None:
        calls.append(status)
        return None

    assert retrying_sync(retry_policy_default(), lambda s, r: r is None, op, sleep=sleep) is None
    assert len(calls) == 6
    assert calls[-1] == RetryStatus(iter_number=5, cumulative_delay=250_000, previous_delay=50_000)


def test_retrying_always_runs_at_least_once() -> None:
    calls: list[int] = []
    assert retrying_sync(limit_retries(0), lambda s, r: True, lambda s: calls.append(1) or "x") == "x"
    assert calls == [1]


def test_retrying_dynamic_override_delay_only_replaces_delay() -> None:
    sleep = FakeSleep()
    policy = exponential_backoff(1_000_000) & limit_retries(2)
    statuses: list[RetryStatus] = []

    def op(status: RetryStatus) -> str:
        statuses.append(status)
        return "busy"

    result = retrying_dynamic_sync(policy, lambda s, r: ConsultPolicyOverrideDelay(10), op, sleep=sleep)
    assert result == "busy"
    assert len(statuses) == 3  # the policy's limit still applies
    assert sleep.calls == [10 / 1_000_000] * 2
    assert statuses[-1].cumulative_delay == 20


def test_retrying_dynamic_dont_retry_returns_immediately() -> None:
    policy, seen = spy_policy()
    assert retrying_dynamic_sync(policy, lambda s, r: DONT_RETRY, lambda s: 7) == 7
    assert seen == []


@pytest.mark.asyncio
async def test_retrying_async() -> None:
    sleep = FakeSleep()
    count = 0

    async def op(status: RetryStatus) -> int:
        nonlocal count
        count += 1
        return count

    assert await retrying(limit_retries(3), lambda s, r: True, op, sleep=sleep.aio) == 4
    assert count == 4


@pytest.mark.asyncio
async def test_retrying_dynamic_async_mixes_actions() -> None:
    sleep = FakeSleep()
    actions = iter([CONSULT_POLICY, ConsultPolicyOverrideDelay(3_000_000), DONT_RETRY])

    async def op(status: RetryStatus) -> int:
        return status.iter_number

    result = await retrying_dynamic(constant_delay(100), lambda s, r: next(actions), op, sleep=sleep.aio)
    assert result == 2
    assert sleep.calls == [0.0001, 3.0]


# ═════════════════════════════════════════════════════════════════════════════
# Failure-based: recovering / recovering_dynamic / recover_all
# ═════════════════════════════════════════════════════════════════════════════


def test_recovering_retries_matching_failures_until_success() -> None:
    sleep = FakeSleep()
    op = Flaky(KindA(), KindA())
    result = recovering_sync(retry_policy_default(), [Handler(KindA, lambda e, s: True)], op, sleep=sleep)
    assert result == "ok"
    assert op.calls == 3
    assert sleep.calls == [0.05, 0.05]


def test_recovering_first_matching_handler_wins() -> None:
    consulted: list[str] = []
    handlers = [
        Handler(KindA, lambda e, s: consulted.append("A") or True),
        Handler(KindB, lambda e, s: consulted.append("B") or False),
        Handler(Exception, lambda e, s: consulted.append("catch-all") or True),
    ]
    failure = KindB("nope")
    op = Flaky(failure)
    with pytest.raises(KindB) as info:
        recovering_sync(retry_policy_default(), handlers, op, sleep=FakeSleep())
    assert info.value is failure
    assert consulted == ["B"]
    assert op.calls == 1


def test_recovering_narrow_handler_shadows_broad_one() -> None:
    handlers = [
        Handler(PermissionError, lambda e, s: False),
        Handler(OSError, lambda e, s: True),
    ]
    op = Flaky(FileNotFoundError(), PermissionError("denied"))
    with pytest.raises(PermissionError):
        recovering_sync(retry_policy_default(), handlers, op, sleep=FakeSleep())
    assert op.calls == 2


def test_recovering_unmatched_failure_is_fatal_and_unchanged() -> None:
    policy, seen = spy_policy()
    failure = ValueError("unrelated")
    op = Flaky(failure)
    with pytest.raises(ValueError) as info:
        recovering_sync(policy, [Handler(KindA, lambda e, s: True)], op)
    assert info.value is failure
    assert seen == []
    assert op.calls == 1


def test_recovering_exhaustion_surfaces_original_failure() -> None:
    failures = [KindA(f"attempt {i}") for i in range(10)]
    op = Flaky(*failures)
    with pytest.raises(KindA) as info:
        recovering_sync(limit_retries(2), [Handler(KindA, lambda e, s: True)], op, sleep=FakeSleep())
    assert info.value is failures[2]
    assert op.calls == 3


def test_recovering_handlers_see_current_status() -> None:
    seen: list[int] = []
    op = Flaky(KindA(), KindA())
    recovering_sync(
        constant_delay(10) & limit_retries(5),
        [Handler(KindA, lambda e, s: seen.append(s.iter_number) or True)],
        op,
        sleep=FakeSleep(),
    )
    assert seen == [0, 1]
    assert [s.cumulative_delay for s in op.statuses] == [0, 10, 20]


def test_recovering_dynamic_override_delay() -> None:
    sleep = FakeSleep()
    op = Flaky(KindA(), KindB())
    handlers = [
        Handler(KindA, lambda e, s: ConsultPolicyOverrideDelay(2_000_000)),
        Handler(KindB, lambda e, s: CONSULT_POLICY),
    ]
    assert recovering_dynamic_sync(constant_delay(100), handlers, op, sleep=sleep) == "ok"
    assert sleep.calls == [2.0, 0.0001]
    assert op.statuses[-1].cumulative_delay == 2_000_100


def test_recovering_dynamic_override_cannot_override_stop() -> None:
    op = Flaky(KindA(), KindA())
    with pytest.raises(KindA):
        recovering_dynamic_sync(
            limit_retries(1), [Handler(KindA, lambda e, s: ConsultPolicyOverrideDelay(5))], op, sleep=FakeSleep(),
        )
    assert op.calls == 2


def test_recovering_dynamic_dont_retry() -> None:
    policy, seen = spy_policy()
    op = Flaky(KindA())
    with pytest.raises(KindA):
        recovering_dynamic_sync(policy, [Handler(KindA, lambda e, s: DONT_RETRY)], op)
    assert seen == []


def test_recover_all_retries_ordinary_exceptions() -> None:
    sleep = FakeSleep()
    op = Flaky(RuntimeError(), KeyError(), ValueError())
    assert recover_all_sync(retry_policy_default(), op, sleep=sleep) == "ok"
    assert op.calls == 4


def test_recover_all_gives_up_with_last_error() -> None:
    op = Flaky(*[RuntimeError(str(i)) for i in range(10)])
    with pytest.raises(RuntimeError, match="^5$"):
        recover_all_sync(retry_policy_default(), op, sleep=FakeSleep())
    assert op.calls == 6


@pytest.mark.parametrize("interrupt", [KeyboardInterrupt(), SystemExit(1), asyncio.CancelledError()])
def test_recover_all_never_retries_interruptions(interrupt: BaseException) -> None:
    policy, seen = spy_policy()
    op = Flaky(interrupt)
    with pytest.raises(type(interrupt)):
        recover_all_sync(policy, op)
    assert op.calls == 1
    assert seen == []


def test_interruptions_bypass_even_base_exception_handlers() -> None:
    policy, seen = spy_policy()
    consulted: list[BaseException] = []
    op = Flaky(KeyboardInterrupt())
    with pytest.raises(KeyboardInterrupt):
        recovering_sync(policy, [Handler(BaseException, lambda e, s: consulted.append(e) or True)], op)
    assert consulted == []
    assert seen == []


def test_skip_async_exceptions_reject_interruptions() -> None:
    first, second = skip_async_exceptions()
    assert first.matches(asyncio.CancelledError())
    assert second.matches(KeyboardInterrupt()) and second.matches(SystemExit())
    assert not first.matches(Exception()) and not second.matches(Exception())
    assert first(asyncio.CancelledError(), DEFAULT_RETRY_STATUS) is False


@pytest.mark.asyncio
async def test_recovering_async() -> None:
    sleep = FakeSleep()
    op = Flaky(KindA(), KindA())
    result = await recovering(retry_policy_default(), [Handler(KindA, lambda e, s: True)], op.aio, sleep=sleep.aio)
    assert result == "ok"
    assert sleep.calls == [0.05, 0.05]


@pytest.mark.asyncio
async def test_recovering_dynamic_async_unmatched() -> None:
    failure = KindB()
    op = Flaky(failure)
    with pytest.raises(KindB) as info:
        await recovering_dynamic(retry_policy_default(), [Handler(KindA, lambda e, s: CONSULT_POLICY)], op.aio)
    assert info.value is failure


@pytest.mark.asyncio
async def test_recover_all_async_does_not_catch_cancelled_error() -> None:
    policy, seen = spy_policy()
    op = Flaky(asyncio.CancelledError())
    with pytest.raises(asyncio.CancelledError):
        await recover_all(policy, op.aio)
    assert op.calls == 1
    assert seen == []


@pytest.mark.asyncio
async def test_cancellation_during_operation_propagates() -> None:
    policy, seen = spy_policy()
    started = asyncio.Event()
    calls = 0

    async def op(status: RetryStatus) -> str:
        nonlocal calls
        calls += 1
        started.set()
        await asyncio.sleep(3600)
        return "never"

    task = asyncio.create_task(recover_all(policy, op))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert calls == 1
    assert seen == []


@pytest.mark.asyncio
async def test_cancellation_aborts_delay() -> None:
    attempts = 0

    async def op(status: RetryStatus) -> str:
        nonlocal attempts
        attempts += 1
        raise KindA()

    task = asyncio.create_task(
        recovering(constant_delay(3_600_000_000), [Handler(KindA, lambda e, s: True)], op),
    )
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert attempts == 1


# ═════════════════════════════════════════════════════════════════════════════
# Saturated delays
# ═════════════════════════════════════════════════════════════════════════════


def test_recovering_saturated_delay_waits_longest_sleep_then_surfaces_failure() -> None:
    sleep = FakeSleep()
    failures = [KindA("first"), KindA("second")]
    op = Flaky(*failures)
    with pytest.raises(KindA) as info:
        recovering_sync(constant_delay(MAX_INT) & limit_retries(1), [Handler(KindA, lambda e, s: True)], op, sleep=sleep)
    assert info.value is failures[1]
    assert sleep.calls == [MAX_SLEEP_SECONDS]
    assert op.statuses[1] == RetryStatus(iter_number=1, cumulative_delay=MAX_INT, previous_delay=MAX_INT)


def test_retrying_dynamic_saturated_override() -> None:
    sleep = FakeSleep()
    statuses: list[RetryStatus] = []

    def op(status: RetryStatus) -> str:
        statuses.append(status)
        return "busy"

    result = retrying_dynamic_sync(
        limit_retries(2), lambda s, r: ConsultPolicyOverrideDelay(MAX_INT), op, sleep=sleep,
    )
    assert result == "busy"
    assert sleep.calls == [MAX_SLEEP_SECONDS] * 2
    assert statuses[-1].cumulative_delay == MAX_INT


def test_uncapped_backoff_is_clamped_at_high_iterations() -> None:
    sleep = FakeSleep()
    op = Flaky(*[KindA() for _ in range(200)])
    with pytest.raises(KindA):
        recovering_sync(fibonacci_backoff(1_000_000) & limit_retries(100), [Handler(KindA, lambda e, s: True)], op,
                        sleep=sleep)
    assert op.calls == 101
    assert sleep.calls[:4] == [1.0, 1.0, 2.0, 3.0]
    assert all(s <= MAX_SLEEP_SECONDS for s in sleep.calls)
    assert sleep.calls[-1] == MAX_SLEEP_SECONDS


def test_longest_sleep_is_accepted_by_blocking_timeouts() -> None:
    lock = threading.Lock()
    assert MAX_SLEEP_SECONDS <= threading.TIMEOUT_MAX
    assert lock.acquire(timeout=MAX_SLEEP_SECONDS)  # raises OverflowError if out of range
    lock.release()


@pytest.mark.asyncio
async def test_recovering_async_saturated_delay() -> None:
    sleep = FakeSleep()
    failure = KindA()
    op = Flaky(KindA(), failure)
    with pytest.raises(KindA) as info:
        await recovering(
            constant_delay(MAX_INT) & limit_retries(1), [Handler(KindA, lambda e, s: True)], op.aio, sleep=sleep.aio,
        )
    assert info.value is failure
    assert sleep.calls == [MAX_SLEEP_SECONDS]


@pytest.mark.asyncio
async def test_retrying_async_saturated_backoff() -> None:
    sleep = FakeSleep()

    async def op(status: RetryStatus) -> int:
        return status.iter_number

    policy = exponential_backoff(MAX_INT) & limit_retries(2)
    assert await retrying(policy, lambda s, r: True, op, sleep=sleep.aio) == 2
    assert sleep.calls == [MAX_SLEEP_SECONDS] * 2


@pytest.mark.asyncio
async def test_longest_sleep_is_accepted_by_event_loop() -> None:
    assert await asyncio.wait_for(asyncio.sleep(0, result="done"), timeout=MAX_SLEEP_SECONDS) == "done"


# ═════════════════════════════════════════════════════════════════════════════
# stepping
# ═════════════════════════════════════════════════════════════════════════════


def test_stepping_success_returns_value_without_scheduling() -> None:
    scheduled: list[RetryStatus] = []
    assert stepping_sync(retry_policy_default(), [], scheduled.append, lambda s: 42, DEFAULT_RETRY_STATUS) == 42
    assert scheduled == []


def test_stepping_schedules_next_status_without_blocking() -> None:
    scheduled: list[RetryStatus] = []
    status = RetryStatus(iter_number=2, cumulative_delay=20_000_000, previous_delay=10_000_000)
    op = Flaky(KindA())
    started = time.monotonic()
    result = stepping_sync(
        constant_delay(10_000_000), [Handler(KindA, lambda e, s: True)], scheduled.append, op, status,
    )
    assert time.monotonic() - started < 1.0
    assert result is None
    assert op.calls == 1
    assert scheduled == [RetryStatus(iter_number=3, cumulative_delay=30_000_000, previous_delay=10_000_000)]


def test_stepping_reraises_when_policy_stops() -> None:
    scheduled: list[RetryStatus] = []
    failure = KindA()
    status = RetryStatus(iter_number=5, cumulative_delay=250_000, previous_delay=50_000)
    with pytest.raises(KindA) as info:
        stepping_sync(retry_policy_default(), [Handler(KindA, lambda e, s: True)], scheduled.append, Flaky(failure), status)
    assert info.value is failure
    assert scheduled == []


def test_stepping_reraises_when_handler_declines_or_unmatched() -> None:
    scheduled: list[RetryStatus] = []
    with pytest.raises(KindA):
        stepping_sync(retry_policy_default(), [Handler(KindA, lambda e, s: False)], scheduled.append,
                      Flaky(KindA()), DEFAULT_RETRY_STATUS)
    with pytest.raises(KindB):
        stepping_sync(retry_policy_default(), [Handler(KindA, lambda e, s: True)], scheduled.append,
                      Flaky(KindB()), DEFAULT_RETRY_STATUS)
    assert scheduled == []


@pytest.mark.asyncio
async def test_stepping_async_awaits_async_scheduler() -> None:
    scheduled: list[RetryStatus] = []

    async def schedule(status: RetryStatus) -> None:
        scheduled.append(status)

    op = Flaky(KindA())
    result = await stepping(
        constant_delay(10_000_000), [Handler(KindA, lambda e, s: True)], schedule, op.aio, DEFAULT_RETRY_STATUS,
    )
    assert result is None
    assert scheduled == [RetryStatus(iter_number=1, cumulative_delay=10_000_000, previous_delay=10_000_000)]


@pytest.mark.asyncio
async def test_stepping_async_success() -> None:
    op = Flaky()
    assert await stepping(retry_policy_default(), [], lambda s: None, op.aio, DEFAULT_RETRY_STATUS) == "ok"
