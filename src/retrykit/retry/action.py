"""How to handle a failed attempt.

A classifier answers with one of three actions:

- DontRetry: give up now, regardless of what the policy says
- ConsultPolicy: retry if the policy allows it, with the policy's delay
- ConsultPolicyOverrideDelay: retry if the policy allows it, but wait the
  given number of microseconds instead (e.g. an HTTP Retry-After header)

Whether to *stop* is always the policy's call; an override only replaces
the delay.
"""

from __future__ import annotations

from dataclasses import dataclass

from retrykit.foundation.errors import require_non_negative


@dataclass(frozen=True, slots=True)
class DontRetry:
    pass


@dataclass(frozen=True, slots=True)
class ConsultPolicy:
    pass


@dataclass(frozen=True, slots=True)
class ConsultPolicyOverrideDelay:
    delay: int

    def __post_init__(self) -> None:
        require_non_negative("delay", self.delay)


RetryAction = DontRetry | ConsultPolicy | ConsultPolicyOverrideDelay

DONT_RETRY = DontRetry()
CONSULT_POLICY = ConsultPolicy()


def to_retry_action(should_retry: bool) -> RetryAction:
    """Convert an answer to "should we retry?" into a RetryAction."""
    return CONSULT_POLICY if should_retry else DONT_RETRY
