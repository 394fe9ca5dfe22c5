"""Activation functions and the derivatives BPTT needs.

Derivatives take the neuron's post-activation value, not its raw input,
because that is what a timestep snapshot records.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Dict

from . import numeric
from .numeric import ONE, ZERO

ActivationFn = Callable[[Decimal], Decimal]


def relu(x: Decimal) -> Decimal:
    """Return the ReLU activation."""

    return x if x > 0 else ZERO


def sig(x: Decimal) -> Decimal:
    return numeric.div(ONE, numeric.add(ONE, numeric.exp(numeric.neg(x))))


def linear(x: Decimal) -> Decimal:
    return x


def tanh(x: Decimal) -> Decimal:
    e2x = numeric.exp(numeric.add(x, x))
    return numeric.div(numeric.sub(e2x, ONE), numeric.add(e2x, ONE))


def step(x: Decimal) -> Decimal:
    return ONE if x > 0 else ZERO


ACTIVATIONS: Dict[str, ActivationFn] = {
    "relu": relu,
    "sig": sig,
    "linear": linear,
    "tanh": tanh,
    "step": step,
}

DERIVATIVES: Dict[str, ActivationFn] = {
    "relu": lambda value: ONE if value > 0 else ZERO,
    "sig": lambda value: numeric.mult(value, numeric.sub(ONE, value)),
    "linear": lambda _: ONE,
    "tanh": lambda value: numeric.sub(ONE, numeric.power(value, 2)),
    # not differentiable; contributes no gradient
    "step": lambda _: ZERO,
}


def _lookup(table: Dict[str, ActivationFn], name: str) -> ActivationFn:
    try:
        return table[name]
    except KeyError as exc:
        available = ", ".join(sorted(table))
        raise KeyError(f"Unknown activation {name!r}. Available activations: {available}") from exc


def activate(name: str, x: Decimal) -> Decimal:
    """Apply activation ``name`` to ``x``."""

    return _lookup(ACTIVATIONS, name)(x)


def derivative(name: str, value: Decimal) -> Decimal:
    """Return d(activation)/d(input) expressed in terms of the output ``value``."""

    return _lookup(DERIVATIVES, name)(value)


def names() -> list[str]:
    return sorted(ACTIVATIONS)


__all__ = ["ACTIVATIONS", "DERIVATIVES", "activate", "derivative", "names"]
