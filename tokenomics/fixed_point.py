# tokenomics/fixed_point.py
"""
Fixed-point arithmetic for token supply calculations.

All supply and rate values are plain integers scaled by UNIT (10^18 = 1.0),
matching the 18-decimal precision of the token ledger. Integer math keeps
every issuance amount deterministic across machines.

Results are bounded to the ledger's 256-bit unsigned range. Anything outside
it raises FixedPointOverflow instead of wrapping.
"""

from decimal import Decimal
from typing import Union

DECIMALS = 18
UNIT = 10 ** DECIMALS

MAX_UINT256 = 2 ** 256 - 1


class FixedPointError(ArithmeticError):
    """Base class for fixed-point arithmetic failures."""


class DivisionByZero(FixedPointError, ZeroDivisionError):
    """Raised when dividing a fixed-point value by zero."""


class FixedPointOverflow(FixedPointError, OverflowError):
    """Raised when a value leaves the unsigned 256-bit range."""


def _checked(value: int) -> int:
    if value < 0 or value > MAX_UINT256:
        raise FixedPointOverflow(f"Fixed-point value out of range: {value}")
    return value


def multiply(a: int, b: int) -> int:
    """
    Multiply two fixed-point values.

    Returns a * b / UNIT, truncated toward zero.
    """
    _checked(a)
    _checked(b)
    return _checked(a * b) // UNIT


def divide(a: int, b: int) -> int:
    """
    Divide two fixed-point values.

    Returns a * UNIT / b, truncated toward zero.

    Raises:
        DivisionByZero: if b is zero
    """
    _checked(a)
    _checked(b)
    if b == 0:
        raise DivisionByZero(f"Cannot divide {a} by zero")
    return _checked(a * UNIT) // b


def power(base: int, exponent: int) -> int:
    """
    Raise a fixed-point base to a non-negative integer exponent.

    Exponentiation by squaring: O(log exponent) multiplications, so
    compounding across hundreds of weekly periods stays cheap.

    Args:
        base: Fixed-point base (UNIT = 1.0)
        exponent: Plain integer exponent, >= 0

    Returns:
        base^exponent as a fixed-point value (power(x, 0) == UNIT)
    """
    if exponent < 0:
        raise ValueError(f"Exponent must be non-negative, got {exponent}")

    result = UNIT
    while exponent > 0:
        if exponent % 2 != 0:
            result = multiply(result, base)
        exponent //= 2
        # Skip the final squaring; its result is never used
        if exponent > 0:
            base = multiply(base, base)

    return result


def to_fixed(value: Union[int, str, Decimal]) -> int:
    """Convert a whole-token amount (e.g. "1.5") to a fixed-point integer."""
    return _checked(int(Decimal(value) * UNIT))


def from_fixed(value: int) -> Decimal:
    """Convert a fixed-point integer to a Decimal token amount."""
    return Decimal(value) / Decimal(UNIT)
