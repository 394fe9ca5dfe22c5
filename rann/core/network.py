"""Graph network evaluated one timestep at a time."""

from __future__ import annotations

import itertools
import math
from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal
from functools import reduce
from typing import Dict, List, Sequence

import numpy as np

from . import numeric
from .activations import ACTIVATIONS, activate
from .numeric import ONE, ZERO
from .types import NeuronKind, Number, Role, TimestepSnapshot, Vector

_ids = itertools.count(1)


def _next_id() -> int:
    return next(_ids)


@dataclass(eq=False)
class Neuron:
    """A unit of the network.

    ``value`` is the post-activation output for the current timestep and
    ``intermediate`` the combined input it was computed from. Context neurons
    keep their value across :meth:`Network.reset`; every other neuron is
    cleared.
    """

    name: str
    activation: str = "linear"
    role: Role = Role.HIDDEN
    kind: NeuronKind = NeuronKind.STANDARD
    id: int = field(default_factory=_next_id)
    value: Decimal = field(default=ZERO, repr=False)
    intermediate: Decimal | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.role = Role(self.role)
        self.kind = NeuronKind(self.kind)
        if self.activation not in ACTIVATIONS:
            available = ", ".join(sorted(ACTIVATIONS))
            raise KeyError(
                f"Unknown activation {self.activation!r} for neuron {self.name!r}. "
                f"Available activations: {available}"
            )

    @property
    def is_input(self) -> bool:
        return self.role is Role.INPUT

    @property
    def is_output(self) -> bool:
        return self.role is Role.OUTPUT

    @property
    def is_context(self) -> bool:
        return self.role is Role.CONTEXT

    @property
    def is_product(self) -> bool:
        return self.kind is NeuronKind.PRODUCT


def product_neuron(name: str, activation: str = "linear", role: Role = Role.HIDDEN) -> Neuron:
    """Shorthand for a neuron that multiplies its incoming values."""

    return Neuron(name, activation, role=role, kind=NeuronKind.PRODUCT)


@dataclass(eq=False)
class Connection:
    """Weighted edge from ``input_neuron`` to ``output_neuron``."""

    input_neuron: Neuron
    output_neuron: Neuron
    weight: Decimal = ONE
    locked: bool = False
    id: int = field(default_factory=_next_id)

    def __post_init__(self) -> None:
        self.weight = numeric.to_decimal(self.weight)


class Network:
    """Owns neurons and connections and advances them one timestep per call.

    Connections into context neurons are recurrent: they are not part of the
    evaluation order and are only applied by :meth:`reset`, which hands the
    result to the next timestep.
    """

    def __init__(self, neurons: Sequence[Neuron], connections: Sequence[Connection]) -> None:
        self.neurons: List[Neuron] = list(neurons)
        self.connections: List[Connection] = list(connections)
        self._neurons_by_id: Dict[int, Neuron] = {}
        for neuron in self.neurons:
            if neuron.id in self._neurons_by_id:
                raise ValueError(f"Duplicate neuron id {neuron.id} ({neuron.name!r})")
            if neuron.is_product and neuron.is_context:
                raise ValueError(f"Context neuron {neuron.name!r} cannot be a product neuron")
            self._neurons_by_id[neuron.id] = neuron

        self._connections_by_id: Dict[int, Connection] = {}
        self._incoming: Dict[int, List[Connection]] = {n.id: [] for n in self.neurons}
        self._outgoing: Dict[int, List[Connection]] = {n.id: [] for n in self.neurons}
        for con in self.connections:
            if con.id in self._connections_by_id:
                raise ValueError(f"Duplicate connection id {con.id}")
            for end in (con.input_neuron, con.output_neuron):
                if self._neurons_by_id.get(end.id) is not end:
                    raise ValueError(f"Connection {con.id} references neuron {end.name!r} outside the network")
            if con.output_neuron.role in (Role.INPUT, Role.BIAS):
                raise ValueError(
                    f"Connection {con.id} feeds {con.output_neuron.role.value} neuron {con.output_neuron.name!r}"
                )
            self._connections_by_id[con.id] = con
            self._incoming[con.output_neuron.id].append(con)
            self._outgoing[con.input_neuron.id].append(con)

        self._order = self._evaluation_order()

    # ------------------------------------------------------------------
    # Topology accessors

    @property
    def input_neurons(self) -> List[Neuron]:
        return [n for n in self.neurons if n.is_input]

    @property
    def output_neurons(self) -> List[Neuron]:
        return [n for n in self.neurons if n.is_output]

    @property
    def context_neurons(self) -> List[Neuron]:
        return [n for n in self.neurons if n.is_context]

    def connections_to(self, neuron: Neuron) -> List[Connection]:
        return self._incoming[neuron.id]

    def connections_from(self, neuron: Neuron) -> List[Connection]:
        return self._outgoing[neuron.id]

    def connection(self, connection_id: int) -> Connection:
        return self._connections_by_id[connection_id]

    # ------------------------------------------------------------------
    # Evaluation

    def evaluate(self, inputs: Vector) -> List[Decimal]:
        """Run one timestep and return the output vector."""

        input_neurons = self.input_neurons
        if len(inputs) != len(input_neurons):
            raise ValueError(f"Expected {len(input_neurons)} inputs, got {len(inputs)}")
        for neuron, x in zip(input_neurons, inputs):
            neuron.value = numeric.to_decimal(x)
        for neuron in self._order:
            if neuron.role is Role.BIAS:
                neuron.value = ONE
            elif neuron.role in (Role.HIDDEN, Role.OUTPUT):
                self._fire(neuron)
        return [n.value for n in self.output_neurons]

    def reset(self) -> TimestepSnapshot:
        """Snapshot this timestep, carry context values forward and clear the rest."""

        snapshot = TimestepSnapshot(
            values={n.id: n.value for n in self.neurons},
            intermediates={
                n.id: n.intermediate
                for n in self.neurons
                if n.is_product and n.intermediate is not None
            },
        )
        carried = {
            n.id: activate(n.activation, self._combine(n))
            for n in self.context_neurons
            if self._incoming[n.id]
        }
        for neuron in self.neurons:
            if neuron.is_context:
                neuron.value = carried.get(neuron.id, neuron.value)
            else:
                neuron.value = ZERO
            neuron.intermediate = None
        return snapshot

    def _fire(self, neuron: Neuron) -> None:
        neuron.intermediate = self._combine(neuron)
        neuron.value = activate(neuron.activation, neuron.intermediate)

    def _combine(self, neuron: Neuron) -> Decimal:
        incoming = [numeric.mult(c.input_neuron.value, c.weight) for c in self._incoming[neuron.id]]
        if neuron.kind is NeuronKind.PRODUCT:
            if not incoming:
                raise ValueError(f"Product neuron {neuron.name!r} has no incoming values")
            return reduce(numeric.mult, incoming)
        if neuron.kind is NeuronKind.STANDARD:
            return numeric.total(incoming)
        raise ValueError(f"Unknown neuron kind: {neuron.kind!r}")  # pragma: no cover - guardrail

    def _evaluation_order(self) -> List[Neuron]:
        forward = [c for c in self.connections if not c.output_neuron.is_context]
        pending = {n.id: 0 for n in self.neurons}
        for con in forward:
            pending[con.output_neuron.id] += 1
        queue = deque(n for n in self.neurons if pending[n.id] == 0)
        order: List[Neuron] = []
        while queue:
            neuron = queue.popleft()
            order.append(neuron)
            for con in self._outgoing[neuron.id]:
                if con.output_neuron.is_context:
                    continue
                pending[con.output_neuron.id] -= 1
                if pending[con.output_neuron.id] == 0:
                    queue.append(con.output_neuron)
        if len(order) != len(self.neurons):
            stuck = sorted(n.name for n in self.neurons if pending[n.id] > 0)
            raise ValueError(f"Cycle without a context neuron through: {', '.join(stuck)}")
        return order

    # ------------------------------------------------------------------
    # Weights

    def params(self) -> List[Decimal]:
        """Return connection weights in declaration order."""

        return [c.weight for c in self.connections]

    def impose(self, weights: Sequence[Number]) -> None:
        if len(weights) != len(self.connections):
            raise ValueError(f"Expected {len(self.connections)} weights, got {len(weights)}")
        for con, weight in zip(self.connections, weights):
            con.weight = numeric.to_decimal(weight)

    def init_normalised(self, seed: int | None = None) -> None:
        """Draw unlocked weights from N(0, 1 / fan_in)."""

        rng = np.random.default_rng(seed)
        for con in self.connections:
            if con.locked:
                continue
            fan_in = max(1, len(self._incoming[con.output_neuron.id]))
            con.weight = numeric.to_decimal(float(rng.standard_normal()) / math.sqrt(fan_in))


__all__ = ["Neuron", "Connection", "Network", "product_neuron"]
