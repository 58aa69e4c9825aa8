"""Development helpers: preview a policy's delay schedule without running anything."""

from __future__ import annotations

from decimal import Decimal
from typing import Callable

from .bounded import bounded_add, bounded_sum
from .policy import Policy
from .status import DEFAULT_RETRY_STATUS, RetryStatus


def simulate_policy(n: int, policy: Policy) -> list[tuple[int, int | None]]:
    """Run policy for iterations 0..n and collect ``(iteration, delay)`` pairs.

    A stop (None) does not end the simulation, so combined policies show
    every iteration they inhibit.
    """
    status = DEFAULT_RETRY_STATUS
    trace: list[tuple[int, int | None]] = []
    for i in range(n + 1):
        delay = policy.consult(status)
        status = RetryStatus(
            iter_number=i + 1,
            cumulative_delay=bounded_add(status.cumulative_delay, delay or 0),
            previous_delay=delay,
        )
        trace.append((i, delay))
    return trace


def _show_float(x: float) -> str:
    """Shortest round-trip digits; scientific (``1.5e7``) from 1e7 upward."""
    if x < 1e7:
        return repr(x)
    _, digits, exponent = Decimal(repr(x)).normalize().as_tuple()
    mantissa = "".join(map(str, digits))
    return f"{mantissa[0]}.{mantissa[1:] or '0'}e{len(digits) + exponent - 1}"


def pp_time(us: int) -> str:
    """Render microseconds: ``500us``, ``50.0ms``, ``1.0e7ms``."""
    if us < 1000:
        return f"{us}us"
    return f"{_show_float(us / 1000)}ms"


def simulate_policy_pp(n: int, policy: Policy, *, write: Callable[[str], object] = print) -> None:
    """Pretty print simulate_policy, one line per iteration plus the total."""
    trace = simulate_policy(n, policy)
    for i, delay in trace:
        write(f"{i}: {'Inhibit' if delay is None else pp_time(delay)}")
    total = bounded_sum(d for _, d in trace if d is not None)
    write(f"Total cumulative delay would be: {pp_time(total)}")
