"""Batch error log usable as a :class:`rann.training.backprop.Backprop` callback."""

from __future__ import annotations

import json
import numbers
from decimal import Decimal
from pathlib import Path
from typing import Mapping


class JsonlSink:
    """Write one ``{"batch": n, <metric>: value}`` line per trained batch.

    Numeric metrics, :class:`~decimal.Decimal` included, are stored as JSON
    floats; anything else is left out of the record.
    """

    def __init__(self, path: str | Path, *, append: bool = False) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not append:
            self.path.write_text("")

    def on_step(self, batch: int, metrics: Mapping[str, object]) -> None:
        record: dict[str, object] = {"batch": int(batch)}
        for name, value in metrics.items():
            if isinstance(value, bool):
                continue
            if isinstance(value, (Decimal, numbers.Real)):
                record[name] = float(value)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_step


__all__ = ["JsonlSink"]
