"""Numeric substrate and network graph for RANN."""

from . import activations, network, numeric, types

__all__ = ["activations", "network", "numeric", "types"]
