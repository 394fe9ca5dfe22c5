"""Core typing contracts for RANN."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Mapping, Sequence, Tuple, Union


class Role(str, Enum):
    """Position of a neuron in the network graph."""

    INPUT = "input"
    OUTPUT = "output"
    HIDDEN = "hidden"
    CONTEXT = "context"
    BIAS = "bias"


class NeuronKind(str, Enum):
    """How a neuron combines its incoming connection values."""

    STANDARD = "standard"
    PRODUCT = "product"


Number = Union[Decimal, int, float, str]
Vector = Sequence[Number]

# connection id -> gradient
Gradients = Dict[int, Decimal]
# (timestep, neuron id) -> node delta
NodeDeltas = Dict[Tuple[int, int], Decimal]


@dataclass(frozen=True)
class TimestepSnapshot:
    """Per-neuron state captured by one :meth:`Network.reset` call."""

    values: Mapping[int, Decimal] = field(default_factory=dict)
    intermediates: Mapping[int, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class GradientMismatch:
    """A connection whose analytic and numeric gradients disagree."""

    index: int
    input_name: str
    output_name: str

    def describe(self) -> str:
        return f"{self.input_name} -> {self.output_name}"


Snapshots = List[TimestepSnapshot]
