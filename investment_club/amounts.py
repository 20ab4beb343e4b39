"""
Accounting Unit Module

Amounts and millisecond timestamps are unsigned 64-bit integers. Python ints
never wrap, so the range is enforced explicitly and arithmetic that would
leave it raises instead of truncating.
"""

from typing import Final

from .errors import ArithmeticOverflow

U64_MAX: Final[int] = 2 ** 64 - 1


def require_u64(name: str, value: int) -> int:
    """Validate that value is an int inside [0, U64_MAX]"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > U64_MAX:
        raise ValueError(f"{name} must be between 0 and {U64_MAX}, got {value}")
    return value


def checked_mul(a: int, b: int) -> int:
    """Multiply two unsigned amounts, raising ArithmeticOverflow outside [0, U64_MAX]"""
    result = a * b
    if result < 0 or result > U64_MAX:
        raise ArithmeticOverflow(f"{a} * {b} leaves the 64-bit accounting unit")
    return result


def checked_add(a: int, b: int) -> int:
    """Add two unsigned amounts, raising ArithmeticOverflow outside [0, U64_MAX]"""
    result = a + b
    if result < 0 or result > U64_MAX:
        raise ArithmeticOverflow(f"{a} + {b} leaves the 64-bit accounting unit")
    return result
