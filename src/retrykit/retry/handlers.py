"""Ordered, type-discriminated failure handlers.

A handler list is tried strictly in order and only the first handler whose
``kind`` matches the raised exception is consulted. That lets a narrow,
earlier handler shadow a broad later one:

    >>> handlers = [
    ...     Handler(PermissionError, lambda e, s: False),  # never retry
    ...     Handler(OSError, lambda e, s: True),           # retry other I/O errors
    ... ]

If you add a catch-all handler (``Exception`` or ``BaseException``), put
``skip_async_exceptions()`` in front of it; ``recover_all`` already does.
Drivers re-raise interruptions before matching in any case.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from retrykit.runtime.concurrency import INTERRUPTION_KINDS

from .status import RetryStatus

D = TypeVar("D")

ExcKind = type[BaseException] | tuple[type[BaseException], ...]
Reporter = Callable[[bool, BaseException, RetryStatus], object]


@dataclass(frozen=True, slots=True)
class Handler(Generic[D]):
    """Classifier scoped to one exception kind.

    Attributes:
        kind: Exception class (or tuple of classes) this handler accepts
        decide: ``(exc, status) -> bool`` for recovering/stepping,
            ``(exc, status) -> RetryAction`` for recovering_dynamic
    """

    kind: ExcKind
    decide: Callable[[BaseException, RetryStatus], D]

    def matches(self, exc: BaseException) -> bool:
        return isinstance(exc, self.kind)

    def __call__(self, exc: BaseException, status: RetryStatus) -> D:
        return self.decide(exc, status)


def first_match(handlers: Sequence[Handler[D]], exc: BaseException) -> Handler[D] | None:
    """First handler in list order whose kind matches exc, if any."""
    return next((h for h in handlers if h.matches(exc)), None)


def skip_async_exceptions() -> list[Handler[bool]]:
    """Handlers that refuse to retry cancellation and interruption.

    Prepend these to your own list when it contains a catch-all handler.
    """
    other = tuple(k for k in INTERRUPTION_KINDS if k is not asyncio.CancelledError)
    return [
        Handler(asyncio.CancelledError, lambda e, s: False),
        Handler(other, lambda e, s: False),
    ]


def log_retries(
    test: Callable[[BaseException], bool],
    reporter: Reporter,
    kind: ExcKind = Exception,
) -> Handler[bool]:
    """Build a handler that reports every decision before returning it.

    Args:
        test: Whether the exception should be retried
        reporter: Called with ``(retrying, exc, status)``
        kind: Exception kind the handler accepts
    """
    def decide(exc: BaseException, status: RetryStatus) -> bool:
        result = test(exc)
        reporter(result, exc, status)
        return result

    return Handler(kind, decide)


def default_log_msg(should_retry: bool, exc: BaseException, status: RetryStatus) -> str:
    """Standard message for use with log_retries."""
    next_msg = "Retrying." if should_retry else "Crashing."
    return f"[retry:{status.iter_number}] Encountered {exc!r}. {next_msg}"


def logging_reporter(logger: logging.Logger | None = None, level: int = logging.WARNING) -> Reporter:
    """Reporter that sends default_log_msg to a stdlib logger.

    Retries are logged at ``level``, crashes at ERROR.
    """
    log = logger or logging.getLogger("retrykit.retry")

    def report(should_retry: bool, exc: BaseException, status: RetryStatus) -> None:
        log.log(level if should_retry else logging.ERROR, default_log_msg(should_retry, exc, status))

    return report
