"""
engine.numeric: the ledger's fixed-point Decimal.

Amounts are `decimal.Decimal` values with at most 18 fractional digits and a
magnitude bounded like a signed 128-bit integer scaled by 10**18. All
arithmetic goes through `CONTEXT`, which traps inexact results, so no value is
ever silently rounded.

Floats are rejected outright: `to_decimal(0.1)` raises TypeError.
"""

from __future__ import annotations

import decimal
from decimal import Decimal
from typing import Union

DECIMAL_PLACES = 18

CONTEXT = decimal.Context(
    prec=80,
    rounding=decimal.ROUND_DOWN,
    traps=[decimal.Inexact, decimal.InvalidOperation, decimal.Overflow, decimal.DivisionByZero],
)

SCALE = Decimal(1).scaleb(-DECIMAL_PLACES, context=CONTEXT)
MAX_DECIMAL = Decimal(2**127 - 1).scaleb(-DECIMAL_PLACES, context=CONTEXT)
MIN_DECIMAL = CONTEXT.subtract(MAX_DECIMAL.copy_negate(), SCALE)

ZERO = Decimal(0)

DecimalLike = Union[Decimal, int, str]


def to_decimal(value: DecimalLike) -> Decimal:
    """
    Coerce `value` to a ledger Decimal.

    Raises:
        TypeError  for floats, bools and other non-decimal types
        ValueError for malformed strings, non-finite values, more than 18
                   fractional digits, or values outside the ledger range
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{type(value).__name__} is not a valid ledger decimal; use str or Decimal")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int):
        d = Decimal(value)
    elif isinstance(value, str):
        try:
            d = Decimal(value.strip().replace("_", ""))
        except decimal.InvalidOperation as e:
            raise ValueError(f"invalid decimal string: {value!r}") from e
    else:
        raise TypeError(f"cannot convert {type(value).__name__} to a ledger decimal")

    if not d.is_finite():
        raise ValueError(f"decimal must be finite, got {d}")
    exponent = d.as_tuple().exponent
    if isinstance(exponent, int) and exponent < -DECIMAL_PLACES:
        # Trailing zeros beyond 18 places are fine; real digits are not.
        try:
            d = d.quantize(SCALE, context=CONTEXT)
        except decimal.Inexact as e:
            raise ValueError(f"{value!r} has more than {DECIMAL_PLACES} fractional digits") from e
    if d > MAX_DECIMAL or d < MIN_DECIMAL:
        raise ValueError(f"{value!r} is outside the ledger decimal range")
    return d


def add(a: Decimal, b: Decimal) -> Decimal:
    return _bounded(CONTEXT.add(a, b))


def sub(a: Decimal, b: Decimal) -> Decimal:
    return _bounded(CONTEXT.subtract(a, b))


def _bounded(d: Decimal) -> Decimal:
    if d > MAX_DECIMAL or d < MIN_DECIMAL:
        raise OverflowError(f"decimal overflow: {d}")
    return d


def fits_divisibility(amount: Decimal, divisibility: int) -> bool:
    """True if `amount` has no more than `divisibility` fractional digits."""
    try:
        amount.quantize(Decimal(1).scaleb(-divisibility), context=CONTEXT)
    except decimal.Inexact:
        return False
    return True


__all__ = [
    "DECIMAL_PLACES",
    "MAX_DECIMAL",
    "MIN_DECIMAL",
    "ZERO",
    "CONTEXT",
    "DecimalLike",
    "to_decimal",
    "add",
    "sub",
    "fits_divisibility",
]
