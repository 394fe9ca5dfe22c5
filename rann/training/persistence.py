"""YAML savepoints holding network weights and optimiser state."""

from __future__ import annotations

import re
import time
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Mapping

import yaml

from ..core import numeric
from ..core.network import Network
from .optimisers import Optimiser

SAVEPOINT_PREFIX = "rann_savepoint_"
TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S"
_SAVEPOINT_RE = re.compile(rf"^{SAVEPOINT_PREFIX}.+")


def savepoint_name(timestamp: float | None = None) -> str:
    stamp = time.strftime(TIMESTAMP_FORMAT, time.localtime(timestamp))
    return f"{SAVEPOINT_PREFIX}{stamp}.yml"


def _encode_state(network: Network, state: Mapping[str, Mapping[int, Decimal]]) -> Dict[str, Dict[int, str]]:
    # keyed by declaration index so a rebuilt network with fresh ids can load it
    index = {con.id: idx for idx, con in enumerate(network.connections)}
    return {
        name: {index[cid]: str(value) for cid, value in sorted(table.items(), key=lambda kv: index[kv[0]])}
        for name, table in state.items()
    }


def _decode_state(network: Network, payload: Mapping[str, Mapping[int, str]]) -> Dict[str, Dict[int, Decimal]]:
    connections = network.connections
    decoded: Dict[str, Dict[int, Decimal]] = {}
    for name, table in payload.items():
        decoded[name] = {}
        for idx, value in (table or {}).items():
            if not 0 <= int(idx) < len(connections):
                raise ValueError(f"Savepoint references connection index {idx} outside the network")
            decoded[name][connections[int(idx)].id] = numeric.to_decimal(str(value))
    return decoded


def save_savepoint(
    network: Network,
    optimiser: Optimiser,
    path: str | Path | None = None,
    *,
    directory: str | Path = ".",
) -> Path:
    """Write ``[weights, optimiser_state]`` and return the file path."""

    path = Path(path) if path is not None else Path(directory) / savepoint_name()
    weights: List[str] = [str(weight) for weight in network.params()]
    payload = [weights, _encode_state(network, optimiser.state())]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(payload, sort_keys=False))
    return path


def latest_savepoint(directory: str | Path = ".") -> Path | None:
    """Return the newest savepoint in ``directory`` by timestamp suffix."""

    candidates = sorted(
        p for p in Path(directory).iterdir() if p.is_file() and _SAVEPOINT_RE.match(p.name)
    )
    return candidates[-1] if candidates else None


def load_savepoint(network: Network, optimiser: Optimiser, path: str | Path) -> None:
    data = yaml.safe_load(Path(path).read_text())
    if not isinstance(data, list) or len(data) != 2:
        raise ValueError(f"Savepoint {path} must hold [weights, optimiser_state]")
    weights, state = data
    network.impose([str(w) for w in weights])
    optimiser.load_state(_decode_state(network, state or {}))


def restore_savepoint(
    network: Network,
    optimiser: Optimiser,
    path: str | Path | None = None,
    *,
    directory: str | Path = ".",
) -> Path | None:
    """Load ``path`` or the newest savepoint; initialise fresh weights when there is none."""

    if path is None:
        path = latest_savepoint(directory)
        if path is None:
            network.init_normalised()
            print("No savepoints found; initialised normalised weights")
            return None
    load_savepoint(network, optimiser, path)
    return Path(path)


__all__ = [
    "SAVEPOINT_PREFIX",
    "TIMESTAMP_FORMAT",
    "savepoint_name",
    "save_savepoint",
    "latest_savepoint",
    "load_savepoint",
    "restore_savepoint",
]
