"""Finite-difference verification of analytic gradients."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Sequence

from ..core import numeric
from ..core.network import Network
from ..core.numeric import ONE
from ..core.types import Number, Vector
from .losses import mse
from .timesteps import as_timesteps, reset_network, unroll

EPSILON = Decimal("1e-4")
TOLERANCE = Decimal("1e-3")


def forward_error(network: Network, inputs: Vector | Sequence[Vector], targets: Sequence[Number]) -> Decimal:
    """Run the forward unroll only and return the squared error."""

    _, outputs = unroll(network, as_timesteps(inputs))
    reset_network(network)
    return mse(targets, outputs)


def in_tolerance(expected: Decimal, actual: Decimal, tolerance: Decimal = TOLERANCE) -> bool:
    scale = max(ONE, numeric.absolute(expected), numeric.absolute(actual))
    return numeric.absolute(numeric.sub(expected, actual)) <= numeric.mult(tolerance, scale)


def numeric_gradients(
    network: Network,
    inputs: Vector | Sequence[Vector],
    targets: Sequence[Number],
    *,
    epsilon: Decimal = EPSILON,
) -> List[Decimal]:
    """Central-difference estimate of dE/dw for every connection, in declaration order."""

    estimates: List[Decimal] = []
    for con in network.connections:
        original = con.weight
        try:
            con.weight = numeric.add(original, epsilon)
            error_plus = forward_error(network, inputs, targets)
            con.weight = numeric.sub(original, epsilon)
            error_minus = forward_error(network, inputs, targets)
        finally:
            con.weight = original
        estimates.append(numeric.div(numeric.sub(error_plus, error_minus), numeric.add(epsilon, epsilon)))
    return estimates


def check(
    network: Network,
    inputs: Vector | Sequence[Vector],
    targets: Sequence[Number],
    gradients: Sequence[Decimal],
    *,
    epsilon: Decimal = EPSILON,
    tolerance: Decimal = TOLERANCE,
) -> List[int]:
    """Return indices of connections whose analytic gradient disagrees with the estimate."""

    if len(gradients) != len(network.connections):
        raise ValueError(f"Expected {len(network.connections)} gradients, got {len(gradients)}")
    estimates = numeric_gradients(network, inputs, targets, epsilon=epsilon)
    return [
        idx
        for idx, (estimate, analytic) in enumerate(zip(estimates, gradients))
        if not in_tolerance(estimate, analytic, tolerance)
    ]


__all__ = ["EPSILON", "TOLERANCE", "check", "forward_error", "in_tolerance", "numeric_gradients"]
