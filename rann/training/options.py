"""Batch-run configuration."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping

import yaml

_BATCH_KEYS = ("optimiser", "num_groups", "processes", "checking")
_OPTIMISER_KEYS = ("learning_rate", "decay", "fudge_factor")


@dataclass(frozen=True)
class BatchOptions:
    """Options recognised by :meth:`rann.training.backprop.Backprop.run_batch`.

    Groups run on a worker pool sized by ``processes``; the default
    ``None`` leaves the pool size to the executor and ``processes=0`` runs
    every group in the calling process instead.
    """

    optimiser: str = "RMSProp"
    num_groups: int | None = None
    processes: int | None = None
    checking: bool = False
    optimiser_options: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.num_groups is not None and self.num_groups < 1:
            raise ValueError(f"num_groups must be positive, got {self.num_groups}")
        if self.processes is not None and self.processes < 0:
            raise ValueError(f"processes must be non-negative, got {self.processes}")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object] | None) -> "BatchOptions":
        raw = dict(raw or {})
        unknown = sorted(set(raw) - set(_BATCH_KEYS) - set(_OPTIMISER_KEYS) - {"optimiser_options"})
        if unknown:
            raise ValueError(f"Unknown batch options: {', '.join(unknown)}")
        optimiser_options = dict(raw.pop("optimiser_options", None) or {})
        for key in _OPTIMISER_KEYS:
            if key in raw:
                optimiser_options[key] = raw.pop(key)
        return cls(optimiser_options=optimiser_options, **raw)

    def merged(self, overrides: Mapping[str, object] | "BatchOptions" | None) -> "BatchOptions":
        """Return a copy with the keys present in ``overrides`` replaced."""

        if overrides is None:
            return self
        if isinstance(overrides, BatchOptions):
            return overrides
        parsed = BatchOptions.from_mapping(overrides)
        changes = {key: getattr(parsed, key) for key in _BATCH_KEYS if key in overrides}
        if parsed.optimiser_options:
            changes["optimiser_options"] = {**self.optimiser_options, **parsed.optimiser_options}
        return replace(self, **changes)

    @property
    def group_count(self) -> int:
        if self.num_groups is not None:
            return self.num_groups
        return max(1, self.processes or 0) * 10


def load_options(path: str | Path) -> BatchOptions:
    """Read batch options from a JSON or YAML file."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported options format: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Options file {path} must contain a mapping")
    return BatchOptions.from_mapping(data)


__all__ = ["BatchOptions", "load_options"]
