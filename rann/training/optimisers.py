"""Stateful per-connection gradient-descent optimisers."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Protocol

from ..core import numeric
from ..core.numeric import ONE, ZERO
from ..core.types import Number


class Optimiser(Protocol):
    """Contract the batch orchestrator relies on."""

    def update(self, gradient: Decimal, connection_id: int) -> Decimal:
        """Return the signed delta to add to the connection's weight."""

    def state(self) -> Dict[str, Dict[int, Decimal]]:
        """Return a snapshot of the per-connection statistics."""

    def load_state(self, state: Mapping[str, Mapping[int, Number]]) -> None:
        """Replace the per-connection statistics with ``state``."""


def _scaled_step(learning_rate: Decimal, fudge_factor: Decimal, gradient: Decimal, history: Decimal) -> Decimal:
    rate = numeric.div(learning_rate, numeric.add(fudge_factor, numeric.sqrt(history)))
    return numeric.mult(gradient, numeric.neg(rate))


@dataclass
class AdaGrad:
    """AdaGrad: step sizes shrink with the running sum of squared gradients."""

    learning_rate: Decimal = Decimal("0.1")
    fudge_factor: Decimal = Decimal("1e-8")
    historical_gradient: Dict[int, Decimal] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.learning_rate = numeric.to_decimal(self.learning_rate)
        self.fudge_factor = numeric.to_decimal(self.fudge_factor)

    def update(self, gradient: Decimal, connection_id: int) -> Decimal:
        history = numeric.add(self.historical_gradient.get(connection_id, ZERO), numeric.power(gradient, 2))
        self.historical_gradient[connection_id] = history
        return _scaled_step(self.learning_rate, self.fudge_factor, gradient, history)

    def state(self) -> Dict[str, Dict[int, Decimal]]:
        return {"historical_gradient": dict(self.historical_gradient)}

    def load_state(self, state: Mapping[str, Mapping[int, Number]]) -> None:
        self.historical_gradient = _load_table(state, "historical_gradient")


@dataclass
class RMSProp:
    """RMSProp: squared gradients are averaged with exponential decay."""

    learning_rate: Decimal = Decimal("0.01")
    decay: Decimal = Decimal("0.9")
    fudge_factor: Decimal = Decimal("1e-8")
    historical_gradient: Dict[int, Decimal] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.learning_rate = numeric.to_decimal(self.learning_rate)
        self.decay = numeric.to_decimal(self.decay)
        self.fudge_factor = numeric.to_decimal(self.fudge_factor)
        if not ZERO <= self.decay < ONE:
            raise ValueError(f"decay must be in [0, 1), got {self.decay}")

    def update(self, gradient: Decimal, connection_id: int) -> Decimal:
        previous = self.historical_gradient.get(connection_id, ZERO)
        history = numeric.add(
            numeric.mult(self.decay, previous),
            numeric.mult(numeric.sub(ONE, self.decay), numeric.power(gradient, 2)),
        )
        self.historical_gradient[connection_id] = history
        return _scaled_step(self.learning_rate, self.fudge_factor, gradient, history)

    def state(self) -> Dict[str, Dict[int, Decimal]]:
        return {"historical_gradient": dict(self.historical_gradient)}

    def load_state(self, state: Mapping[str, Mapping[int, Number]]) -> None:
        self.historical_gradient = _load_table(state, "historical_gradient")


def _load_table(state: Mapping[str, Mapping[int, Number]], key: str) -> Dict[int, Decimal]:
    if key not in state:
        raise KeyError(f"Missing {key!r} in optimiser state")
    return {int(cid): numeric.to_decimal(value) for cid, value in state[key].items()}


class OptimiserRegistry:
    """Maps optimiser names to their classes."""

    def __init__(self) -> None:
        self._registry: Dict[str, type] = {}

    def register(self, name: str, cls: type) -> None:
        self._registry[name] = cls

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: str) -> type:
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown optimiser {name!r}. Available optimisers: {available}")
        return self._registry[name]

    def build(self, name: str, options: Mapping[str, object] | None = None) -> Optimiser:
        return self.resolve(name)(**dict(options or {}))


REGISTRY = OptimiserRegistry()
REGISTRY.register("AdaGrad", AdaGrad)
REGISTRY.register("RMSProp", RMSProp)

__all__ = ["Optimiser", "AdaGrad", "RMSProp", "OptimiserRegistry", "REGISTRY"]
