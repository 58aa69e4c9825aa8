"""Cooperative cancellation helpers.

Interruption-style exceptions (task cancellation, Ctrl-C, interpreter exit)
must never be retried. Drivers consult ``is_interruption`` before any
handler is matched, so even a handler declared for ``BaseException`` cannot
swallow them.
"""

from __future__ import annotations

import asyncio

INTERRUPTION_KINDS: tuple[type[BaseException], ...] = (
    asyncio.CancelledError,
    KeyboardInterrupt,
    SystemExit,
    GeneratorExit,
)


def is_interruption(exc: BaseException) -> bool:
    """Whether exc is a cancellation/interruption signal."""
    return isinstance(exc, INTERRUPTION_KINDS)


async def checkpoint() -> None:
    """Yield once to the event loop so a pending task cancellation is delivered.

    Async drivers call this after each delay, right before the next attempt:

        >>> while True:
        ...     status = await apply_and_delay(policy, status)
        ...     await checkpoint()  # a cancel() issued meanwhile lands here
    """
    await asyncio.sleep(0)
