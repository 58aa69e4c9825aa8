"""Retry policies and the drivers that apply them.

Policies decide *how long* to wait (or whether to stop); drivers run an
operation, classify its outcome and consult the policy between attempts.

Example:
    >>> from retrykit.retry import (
    ...     Handler, exponential_backoff, limit_retries, recovering,
    ... )
    >>>
    >>> policy = exponential_backoff(100_000) & limit_retries(4)
    >>>
    >>> async def fetch(status):
    ...     return await client.get("/items")
    >>>
    >>> items = await recovering(
    ...     policy,
    ...     [Handler(TimeoutError, lambda exc, status: True)],
    ...     fetch,
    ... )
"""

from .action import (
    CONSULT_POLICY,
    DONT_RETRY,
    ConsultPolicy,
    ConsultPolicyOverrideDelay,
    DontRetry,
    RetryAction,
    to_retry_action,
)
from .backoff import (
    CapDelay,
    ConstantDelay,
    ExponentialBackoff,
    FibonacciBackoff,
    FullJitterBackoff,
    LimitByCumulativeDelay,
    LimitByDelay,
    LimitRetries,
    cap_delay,
    constant_delay,
    exponential_backoff,
    fibonacci_backoff,
    full_jitter_backoff,
    limit_retries,
    limit_retries_by_cumulative_delay,
    limit_retries_by_delay,
)
from .bounded import MAX_INT, MIN_INT, bounded_add, bounded_multiply, bounded_power, bounded_sum
from .drivers import (
    recover_all,
    recover_all_sync,
    recovering,
    recovering_dynamic,
    recovering_dynamic_sync,
    recovering_sync,
    retrying,
    retrying_dynamic,
    retrying_dynamic_sync,
    retrying_sync,
    stepping,
    stepping_sync,
)
from .handlers import (
    Handler,
    default_log_msg,
    first_match,
    log_retries,
    logging_reporter,
    skip_async_exceptions,
)
from .policy import (
    MAX_SLEEP_SECONDS,
    Policy,
    RetryPolicy,
    apply_and_delay,
    apply_and_delay_sync,
    apply_policy,
    combine_all,
    delay_seconds,
    retry_policy,
    retry_policy_default,
)
from .simulate import pp_time, simulate_policy, simulate_policy_pp
from .status import DEFAULT_RETRY_STATUS, RetryStatus

__all__ = [
    # Status
    "RetryStatus", "DEFAULT_RETRY_STATUS",
    # Bounded arithmetic
    "MAX_INT", "MIN_INT", "bounded_add", "bounded_multiply", "bounded_sum", "bounded_power",
    # Policy algebra
    "Policy", "RetryPolicy", "retry_policy", "retry_policy_default", "combine_all",
    "apply_policy", "apply_and_delay", "apply_and_delay_sync", "delay_seconds", "MAX_SLEEP_SECONDS",
    # Policies
    "LimitRetries", "ConstantDelay", "ExponentialBackoff", "FibonacciBackoff", "FullJitterBackoff",
    "LimitByDelay", "LimitByCumulativeDelay", "CapDelay",
    "limit_retries", "constant_delay", "exponential_backoff", "fibonacci_backoff", "full_jitter_backoff",
    "limit_retries_by_delay", "limit_retries_by_cumulative_delay", "cap_delay",
    # Actions
    "RetryAction", "DontRetry", "ConsultPolicy", "ConsultPolicyOverrideDelay",
    "DONT_RETRY", "CONSULT_POLICY", "to_retry_action",
    # Handlers
    "Handler", "first_match", "skip_async_exceptions", "log_retries", "default_log_msg", "logging_reporter",
    # Drivers
    "retrying", "retrying_dynamic", "recovering", "recovering_dynamic", "recover_all", "stepping",
    "retrying_sync", "retrying_dynamic_sync", "recovering_sync", "recovering_dynamic_sync",
    "recover_all_sync", "stepping_sync",
    # Simulation
    "simulate_policy", "simulate_policy_pp", "pp_time",
]
