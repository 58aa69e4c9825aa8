"""retrykit - composable retry policies for fallible operations.

Decides "retry now, after how long, or give up" around any callable, sync or
async. Policies are small immutable values combined with ``&``; drivers run
the operation and consult the policy between attempts.

Quick Start (exceptions):
    >>> from retrykit import Handler, exponential_backoff, limit_retries, recovering_sync
    >>>
    >>> policy = exponential_backoff(50_000) & limit_retries(5)
    >>> data = recovering_sync(
    ...     policy,
    ...     [Handler(ConnectionError, lambda exc, status: True)],
    ...     lambda status: download(),
    ... )

Quick Start (results):
    >>> from retrykit import retry_policy_default, retrying
    >>>
    >>> response = await retrying(
    ...     retry_policy_default(),
    ...     lambda status, resp: resp.status_code == 503,
    ...     lambda status: client.get(url),
    ... )

Queue workers (no in-process waiting):
    >>> from retrykit import stepping
    >>>
    >>> await stepping(policy, handlers, lambda s: queue.requeue(job, delay_us=s.previous_delay),
    ...                lambda s: handle(job), job.retry_status)

Previewing a policy:
    >>> from retrykit import simulate_policy_pp
    >>> simulate_policy_pp(6, retry_policy_default())
    0: 50.0ms
    ...
    5: Inhibit
    6: Inhibit
    Total cumulative delay would be: 250.0ms
"""

from __future__ import annotations

__version__ = "0.1.0"

from .foundation import ErrorCode, InvalidArgument, RetryError
from .foundation.config import get_settings
from .retry import (
    CONSULT_POLICY,
    DEFAULT_RETRY_STATUS,
    DONT_RETRY,
    ConsultPolicy,
    ConsultPolicyOverrideDelay,
    DontRetry,
    Handler,
    Policy,
    RetryAction,
    RetryPolicy,
    RetryStatus,
    apply_and_delay,
    apply_and_delay_sync,
    apply_policy,
    cap_delay,
    combine_all,
    constant_delay,
    default_log_msg,
    exponential_backoff,
    fibonacci_backoff,
    full_jitter_backoff,
    limit_retries,
    limit_retries_by_cumulative_delay,
    limit_retries_by_delay,
    log_retries,
    logging_reporter,
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
    simulate_policy,
    simulate_policy_pp,
    skip_async_exceptions,
    stepping,
    stepping_sync,
    to_retry_action,
)
from .runtime import configure_logging

__all__ = [
    "__version__",
    # Errors & config
    "ErrorCode", "InvalidArgument", "RetryError", "get_settings", "configure_logging",
    # Status & policies
    "RetryStatus", "DEFAULT_RETRY_STATUS", "Policy", "RetryPolicy",
    "retry_policy", "retry_policy_default", "combine_all",
    "apply_policy", "apply_and_delay", "apply_and_delay_sync",
    "limit_retries", "constant_delay", "exponential_backoff", "fibonacci_backoff", "full_jitter_backoff",
    "limit_retries_by_delay", "limit_retries_by_cumulative_delay", "cap_delay",
    # Actions & handlers
    "RetryAction", "DontRetry", "ConsultPolicy", "ConsultPolicyOverrideDelay",
    "DONT_RETRY", "CONSULT_POLICY", "to_retry_action",
    "Handler", "skip_async_exceptions", "log_retries", "default_log_msg", "logging_reporter",
    # Drivers
    "retrying", "retrying_dynamic", "recovering", "recovering_dynamic", "recover_all", "stepping",
    "retrying_sync", "retrying_dynamic_sync", "recovering_sync", "recovering_dynamic_sync",
    "recover_all_sync", "stepping_sync",
    # Simulation
    "simulate_policy", "simulate_policy_pp",
]
