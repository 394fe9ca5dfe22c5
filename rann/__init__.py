"""RANN public API."""

from .core import activations, numeric, types  # noqa: F401
from .core.network import Connection, Network, Neuron, product_neuron
from .core.types import NeuronKind, Role, TimestepSnapshot
from .training.backprop import Backprop, bptt_connecting_to, run_single
from .training.optimisers import AdaGrad, RMSProp
from .training.options import BatchOptions, load_options

__all__ = [
    "AdaGrad",
    "Backprop",
    "BatchOptions",
    "Connection",
    "Network",
    "Neuron",
    "NeuronKind",
    "RMSProp",
    "Role",
    "TimestepSnapshot",
    "activations",
    "bptt_connecting_to",
    "load_options",
    "numeric",
    "product_neuron",
    "run_single",
    "types",
]
