"""Saturating integer arithmetic for delay computations.

Python integers never overflow, so delays are kept inside the signed 64-bit
range explicitly. A misconfigured policy (huge base, huge iteration count)
then degrades to "wait the maximum representable time" instead of growing
without bound.
"""

from __future__ import annotations

from collections.abc import Iterable

from retrykit.foundation.errors import InvalidArgument

MAX_INT = 2**63 - 1
MIN_INT = -(2**63)


def _clamp(value: int) -> int:
    if value > MAX_INT:
        return MAX_INT
    if value < MIN_INT:
        return MIN_INT
    return value


def bounded_add(a: int, b: int) -> int:
    """Same as a + b but saturates at MAX_INT / MIN_INT."""
    return _clamp(a + b)


def bounded_multiply(a: int, b: int) -> int:
    """Same as a * b but saturates at MAX_INT / MIN_INT."""
    return _clamp(a * b)


def bounded_sum(values: Iterable[int]) -> int:
    """Same as sum() but saturates after every addition."""
    total = 0
    for v in values:
        total = bounded_add(total, v)
    return total


def bounded_power(base: int, exponent: int) -> int:
    """Same as base ** exponent but saturates at MAX_INT / MIN_INT.

    Computed by repeated squaring with bounded_multiply at every step, so
    exponents in the billions cost a few dozen multiplications.

    Raises:
        InvalidArgument: If exponent is negative
    """
    if exponent < 0:
        raise InvalidArgument(f"Negative exponent: {exponent}")
    result = 1
    while exponent:
        if exponent & 1:
            result = bounded_multiply(result, base)
        exponent >>= 1
        if exponent:
            base = bounded_multiply(base, base)
    return result
