"""Squared-error loss used by the BPTT engine and the gradient checker."""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from ..core import numeric
from ..core.numeric import ZERO
from ..core.types import Number


def mse(targets: Sequence[Number], outputs: Sequence[Decimal]) -> Decimal:
    """Return the sum over components of (target - output)^2 / 2."""

    if len(targets) != len(outputs):
        raise ValueError(f"Expected {len(outputs)} targets, got {len(targets)}")
    total = ZERO
    for target, output in zip(targets, outputs):
        diff = numeric.sub(numeric.to_decimal(target), output)
        total = numeric.add(total, numeric.div(numeric.power(diff, 2), 2))
    return total


def mse_delta(target: Number, actual: Decimal) -> Decimal:
    """dE/d(actual) for one output component."""

    return numeric.sub(actual, numeric.to_decimal(target))


__all__ = ["mse", "mse_delta"]
