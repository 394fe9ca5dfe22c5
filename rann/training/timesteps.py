"""Forward unrolling of a network over the timesteps of one sample."""

from __future__ import annotations

from collections.abc import Sequence as SequenceABC
from decimal import Decimal
from typing import List, Sequence, Tuple

import numpy as np

from ..core.network import Network
from ..core.numeric import ZERO
from ..core.types import Snapshots, Vector


def as_timesteps(inputs: Vector | Sequence[Vector]) -> List[Vector]:
    """Wrap a single feature vector into a one-timestep sequence."""

    items = list(inputs)
    if not items:
        raise ValueError("A sample needs at least one input value or timestep")
    nested = [isinstance(x, (SequenceABC, np.ndarray)) and not isinstance(x, str) for x in items]
    if all(nested):
        return items
    if any(nested):
        raise ValueError("Inputs mix feature values and timestep vectors")
    return [items]


def unroll(network: Network, timesteps: Sequence[Vector]) -> Tuple[Snapshots, List[Decimal]]:
    """Evaluate every timestep, returning the snapshots and the final outputs."""

    snapshots: Snapshots = []
    for vector in timesteps[:-1]:
        network.evaluate(vector)
        snapshots.append(network.reset())
    outputs = network.evaluate(timesteps[-1])
    snapshots.append(network.reset())
    return snapshots, outputs


def reset_network(network: Network) -> None:
    """Clear transient values and zero every context neuron."""

    network.reset()
    for neuron in network.context_neurons:
        neuron.value = ZERO


__all__ = ["as_timesteps", "unroll", "reset_network"]
