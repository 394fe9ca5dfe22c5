"""Fixed-precision decimal arithmetic shared by every RANN computation.

Analytic gradients and finite-difference estimates only agree when both are
computed at the same precision, so weights, values, errors and optimiser
statistics are all :class:`decimal.Decimal` and every arithmetic operation,
additions included, goes through the helpers below.
"""

from __future__ import annotations

import numbers
import os
from decimal import Context, Decimal
from functools import reduce
from typing import Iterable

DEFAULT_PRECISION = 10
PRECISION_ENV = "RANN_DECIMAL_PRECISION"

ZERO = Decimal(0)
ONE = Decimal(1)


def _initial_precision() -> int:
    raw = os.environ.get(PRECISION_ENV)
    if not raw:
        return DEFAULT_PRECISION
    digits = int(raw)
    if digits < 1:
        raise ValueError(f"{PRECISION_ENV} must be a positive integer, got {raw!r}")
    return digits


_precision = _initial_precision()


def get_precision() -> int:
    """Return the number of significant digits currently in use."""

    return _precision


def set_precision(digits: int) -> None:
    """Set the number of significant digits used by the arithmetic helpers."""

    global _precision
    if digits < 1:
        raise ValueError(f"precision must be a positive integer, got {digits!r}")
    _precision = int(digits)


def context() -> Context:
    """Return a fresh context at the configured precision."""

    return Context(prec=_precision)


def to_decimal(value: object) -> Decimal:
    """Convert ``value`` to a :class:`Decimal`.

    Decimals, integers and strings convert exactly; floats go through their
    shortest ``repr`` and are rounded to the current precision.
    """

    if isinstance(value, bool):
        raise TypeError("booleans are not numeric values")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, numbers.Integral):
        return Decimal(int(value))
    if isinstance(value, numbers.Real):
        return context().create_decimal(repr(float(value)))
    if isinstance(value, str):
        return Decimal(value.strip())
    raise TypeError(f"cannot convert {type(value).__name__} to Decimal")


def add(a: Decimal, b: Decimal | int) -> Decimal:
    return context().add(a, b)


def sub(a: Decimal, b: Decimal | int) -> Decimal:
    return context().subtract(a, b)


def neg(a: Decimal) -> Decimal:
    return context().minus(a)


def absolute(a: Decimal) -> Decimal:
    return context().abs(a)


def total(values: Iterable[Decimal]) -> Decimal:
    """Sum ``values`` left to right, rounding every partial sum."""

    return reduce(add, values, ZERO)


def mult(a: Decimal, b: Decimal) -> Decimal:
    return context().multiply(a, b)


def div(a: Decimal, b: Decimal | int) -> Decimal:
    return context().divide(a, b)


def power(a: Decimal, exponent: Decimal | int) -> Decimal:
    return context().power(a, exponent)


def sqrt(a: Decimal) -> Decimal:
    return context().sqrt(a)


def exp(a: Decimal) -> Decimal:
    return context().exp(a)


__all__ = [
    "DEFAULT_PRECISION",
    "PRECISION_ENV",
    "ZERO",
    "ONE",
    "get_precision",
    "set_precision",
    "context",
    "to_decimal",
    "add",
    "sub",
    "neg",
    "absolute",
    "total",
    "mult",
    "div",
    "power",
    "sqrt",
    "exp",
]
