"""Backpropagation through time and batch orchestration for RANN networks."""

from __future__ import annotations

from collections import deque
from concurrent.futures import Future, ProcessPoolExecutor, as_completed
from decimal import Decimal
from functools import reduce
from pathlib import Path
from typing import Iterator, List, Mapping, Sequence, Set, Tuple, Union

import numpy as np

from ..core import numeric
from ..core.activations import derivative
from ..core.network import Connection, Network, Neuron
from ..core.numeric import ONE, ZERO
from ..core.types import (
    GradientMismatch,
    Gradients,
    NodeDeltas,
    Number,
    Snapshots,
    Vector,
)
from . import gradient_checker, persistence
from .losses import mse, mse_delta
from .optimisers import REGISTRY as OPTIMISERS
from .options import BatchOptions
from .timesteps import as_timesteps, reset_network, unroll

Node = Tuple[Neuron, int]
Sample = Tuple[Union[Vector, Sequence[Vector]], Sequence[Number]]


def _delta_or_zero(deltas: NodeDeltas, timestep: int, neuron: Neuron) -> Decimal:
    return deltas.get((timestep, neuron.id), ZERO)


def _accumulate(gradients: Gradients, connection_id: int, value: Decimal) -> None:
    gradients[connection_id] = numeric.add(gradients.get(connection_id, ZERO), value)


def _source_timestep(con: Connection, timestep: int) -> int:
    # connections into a context neuron carry the previous timestep's value
    return timestep - 1 if con.output_neuron.is_context else timestep


def _target_timestep(con: Connection, timestep: int) -> int:
    return timestep + 1 if con.output_neuron.is_context else timestep


def bptt_connecting_to(neuron: Neuron, network: Network, timestep: int) -> List[Node]:
    """Return the (neuron, timestep) pairs whose deltas flow into ``neuron``."""

    # the recurrence ends at the first timestep
    if neuron.is_context and timestep == 0:
        return []
    return [
        (con.input_neuron, _source_timestep(con, timestep))
        for con in network.connections_to(neuron)
        if not con.input_neuron.is_input
    ]


def _loss_path(network: Network, seeds: Sequence[Node]) -> Set[Tuple[int, int]]:
    seen: Set[Tuple[int, int]] = set()
    queue = deque(seeds)
    while queue:
        neuron, timestep = queue.popleft()
        key = (timestep, neuron.id)
        if key in seen:
            continue
        seen.add(key)
        queue.extend(bptt_connecting_to(neuron, network, timestep))
    return seen


def _other_factors(network: Network, snapshot, product: Neuron, excluded: Connection) -> Decimal:
    factors = [
        numeric.mult(snapshot.values[con.input_neuron.id], con.weight)
        for con in network.connections_to(product)
        if con is not excluded
    ]
    return reduce(numeric.mult, factors, ONE)


def _edge_contribution(network: Network, snapshots: Snapshots, con: Connection, timestep: int) -> Decimal:
    """d(downstream combined input) / d(this neuron's value) along ``con``."""

    downstream = con.output_neuron
    if not downstream.is_product:
        return con.weight
    out_snapshot = snapshots[_target_timestep(con, timestep)]
    own_value = snapshots[timestep].values[con.input_neuron.id]
    if own_value == 0:
        return numeric.mult(con.weight, _other_factors(network, out_snapshot, downstream, con))
    return numeric.div(out_snapshot.intermediates[downstream.id], own_value)


def _connection_gradient(
    network: Network,
    snapshots: Snapshots,
    con: Connection,
    timestep: int,
    node_delta: Decimal,
) -> Decimal:
    neuron = con.output_neuron
    snapshot = snapshots[timestep]
    if neuron.is_product:
        if con.weight == 0:
            partial = numeric.mult(
                snapshot.values[con.input_neuron.id],
                _other_factors(network, snapshot, neuron, con),
            )
        else:
            partial = numeric.div(snapshot.intermediates[neuron.id], con.weight)
        return numeric.mult(node_delta, partial)
    if timestep == 0 and (neuron.is_context or con.input_neuron.is_context):
        # no earlier timestep: the context value is the initial zero
        return ZERO
    source = snapshots[_source_timestep(con, timestep)]
    return numeric.mult(node_delta, source.values[con.input_neuron.id])


def _downstream_ready(
    network: Network,
    deltas: NodeDeltas,
    loss_path: Set[Tuple[int, int]],
    neuron: Neuron,
    timestep: int,
) -> bool:
    for con in network.connections_from(neuron):
        key = (_target_timestep(con, timestep), con.output_neuron.id)
        if key in loss_path and key not in deltas:
            return False
    return True


def run_single(
    network: Network,
    inputs: Vector | Sequence[Vector],
    targets: Sequence[Number],
) -> Tuple[Gradients, Decimal]:
    """Return the per-connection gradients and the error for one sample.

    ``inputs`` is one feature vector or a sequence of them (oldest first);
    ``targets`` applies to the outputs of the final timestep.
    """

    timesteps = as_timesteps(inputs)
    snapshots, outputs = unroll(network, timesteps)
    error = mse(targets, outputs)

    final = len(timesteps) - 1
    output_neurons = network.output_neurons
    output_index = {n.id: idx for idx, n in enumerate(output_neurons)}
    seeds: List[Node] = [(n, final) for n in output_neurons]
    loss_path = _loss_path(network, seeds)

    node_deltas: NodeDeltas = {}
    gradients: Gradients = {}
    queue = deque(seeds)
    while queue:
        neuron, timestep = queue.popleft()
        key = (timestep, neuron.id)
        if key in node_deltas:
            continue
        loss_node = neuron.is_output and timestep == final
        if not loss_node and not _downstream_ready(network, node_deltas, loss_path, neuron, timestep):
            queue.append((neuron, timestep))
            continue

        queue.extend(bptt_connecting_to(neuron, network, timestep))

        if loss_node:
            idx = output_index[neuron.id]
            step_one = mse_delta(targets[idx], outputs[idx])
        else:
            step_one = ZERO
            for con in network.connections_from(neuron):
                downstream_delta = _delta_or_zero(
                    node_deltas, _target_timestep(con, timestep), con.output_neuron
                )
                if downstream_delta == 0:
                    continue
                step_one = numeric.add(
                    step_one,
                    numeric.mult(downstream_delta, _edge_contribution(network, snapshots, con, timestep)),
                )

        value = snapshots[timestep].values[neuron.id]
        node_delta = numeric.mult(derivative(neuron.activation, value), step_one)
        node_deltas[key] = node_delta

        for con in network.connections_to(neuron):
            _accumulate(
                gradients,
                con.id,
                _connection_gradient(network, snapshots, con, timestep, node_delta),
            )

    reset_network(network)
    return gradients, error


def _run_group(
    network: Network,
    samples: Sequence[Sample],
    batch_size: int,
    precision: int,
) -> Tuple[Gradients, Decimal]:
    """Sum batch-normalised gradients and errors over one group of samples."""

    numeric.set_precision(precision)
    group_gradients: Gradients = {}
    group_error = ZERO
    for inputs, targets in samples:
        gradients, error = run_single(network, inputs, targets)
        for cid, gradient in gradients.items():
            _accumulate(group_gradients, cid, numeric.div(gradient, batch_size))
        group_error = numeric.add(group_error, numeric.div(error, batch_size))
    return group_gradients, group_error


class Backprop:
    """Apply batch-averaged BPTT gradients to a network through an optimiser."""

    def __init__(
        self,
        network: Network,
        options: BatchOptions | Mapping[str, object] | None = None,
        *,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.network = network
        if isinstance(options, BatchOptions):
            self.options = options
        else:
            self.options = BatchOptions.from_mapping(options)
        self.optimiser = OPTIMISERS.build(self.options.optimiser, self.options.optimiser_options)
        self.callbacks = list(callbacks or [])
        self.batch_count = 0
        self.last_check: List[GradientMismatch] | None = None

    def run_batch(
        self,
        inputs: Sequence[Vector | Sequence[Vector]],
        targets: Sequence[Sequence[Number]],
        options: BatchOptions | Mapping[str, object] | None = None,
    ) -> Decimal:
        """Train on one batch and return its average error."""

        if len(inputs) != len(targets):
            raise ValueError(f"Got {len(inputs)} inputs but {len(targets)} targets")
        if len(inputs) == 0:
            raise ValueError("Cannot run an empty batch")
        opts = self.options.merged(options)
        self.batch_count += 1

        batch_size = len(inputs)
        groups = self._partition(inputs, targets, opts.group_count)
        avg_gradients: Gradients = {}
        avg_error = ZERO
        for group_gradients, group_error in self._run_groups(groups, batch_size, opts.processes):
            for cid, gradient in group_gradients.items():
                _accumulate(avg_gradients, cid, gradient)
            avg_error = numeric.add(avg_error, group_error)

        if opts.checking:
            # the checker perturbs one sample, so this assumes a batch of one
            self.last_check = self._check_gradients(inputs[0], targets[0], avg_gradients)

        self._apply(avg_gradients)
        self._emit_batch(avg_error)
        return avg_error

    def save(self, path: str | Path | None = None, *, directory: str | Path = ".") -> Path:
        return persistence.save_savepoint(self.network, self.optimiser, path, directory=directory)

    def restore(self, path: str | Path | None = None, *, directory: str | Path = ".") -> Path | None:
        return persistence.restore_savepoint(self.network, self.optimiser, path, directory=directory)

    # ------------------------------------------------------------------
    # Internal helpers

    @staticmethod
    def _partition(
        inputs: Sequence[Vector | Sequence[Vector]],
        targets: Sequence[Sequence[Number]],
        num_groups: int,
    ) -> List[List[Sample]]:
        chunks = np.array_split(np.arange(len(inputs)), num_groups)
        return [
            [(inputs[int(i)], targets[int(i)]) for i in chunk]
            for chunk in chunks
            if len(chunk)
        ]

    def _run_groups(
        self,
        groups: Sequence[Sequence[Sample]],
        batch_size: int,
        processes: int | None,
    ) -> Iterator[Tuple[Gradients, Decimal]]:
        precision = numeric.get_precision()
        if processes == 0:
            for samples in groups:
                yield _run_group(self.network, samples, batch_size, precision)
            return

        with ProcessPoolExecutor(max_workers=processes) as executor:
            futures: List[Future] = [
                executor.submit(_run_group, self.network, samples, batch_size, precision)
                for samples in groups
            ]
            try:
                for future in as_completed(futures):
                    yield future.result()
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

    def _check_gradients(
        self,
        inputs: Vector | Sequence[Vector],
        targets: Sequence[Number],
        gradients: Gradients,
    ) -> List[GradientMismatch]:
        connections = self.network.connections
        ordered = [gradients.get(con.id, ZERO) for con in connections]
        invalid = gradient_checker.check(self.network, inputs, targets, ordered)
        mismatches = [
            GradientMismatch(
                index=idx,
                input_name=connections[idx].input_neuron.name,
                output_name=connections[idx].output_neuron.name,
            )
            for idx in invalid
        ]
        if not mismatches:
            print("gradient valid")
        else:
            print("gradients INVALID for connections:")
            for mismatch in mismatches:
                print(mismatch.describe())
        return mismatches

    def _apply(self, gradients: Gradients) -> None:
        for cid, gradient in gradients.items():
            con = self.network.connection(cid)
            if con.locked:
                continue
            con.weight = numeric.add(con.weight, self.optimiser.update(gradient, cid))

    def _emit_batch(self, error: Decimal) -> None:
        metrics = {"error": float(error)}
        for callback in self.callbacks:
            if hasattr(callback, "on_step"):
                callback.on_step(self.batch_count, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(self.batch_count, metrics)


__all__ = ["Backprop", "bptt_connecting_to", "run_single"]
