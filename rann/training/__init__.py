"""BPTT engine, batch orchestration and the collaborators it drives."""

from .backprop import Backprop, bptt_connecting_to, run_single
from .optimisers import REGISTRY as OPTIMISERS
from .options import BatchOptions, load_options

__all__ = ["Backprop", "BatchOptions", "OPTIMISERS", "bptt_connecting_to", "load_options", "run_single"]
