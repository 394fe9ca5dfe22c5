import re
from decimal import Decimal

import pytest
import yaml

from rann import Backprop
from rann.training import persistence

SEQUENCE = [[1], ["0.5"], ["-0.25"]]
TARGET = [["0.2"]]


def _trained(elman):
    trainer = Backprop(elman(), {"optimiser": "AdaGrad"})
    trainer.run_batch([SEQUENCE], TARGET)
    return trainer


def test_savepoint_round_trip_into_rebuilt_network(elman, tmp_path):
    trainer = _trained(elman)
    path = trainer.save(tmp_path / "checkpoint.yml")

    restored = Backprop(elman(), {"optimiser": "AdaGrad"})
    assert restored.restore(path) == path
    assert restored.network.params() == trainer.network.params()

    original_history = {
        idx: trainer.optimiser.historical_gradient[con.id]
        for idx, con in enumerate(trainer.network.connections)
        if con.id in trainer.optimiser.historical_gradient
    }
    restored_history = {
        idx: restored.optimiser.historical_gradient[con.id]
        for idx, con in enumerate(restored.network.connections)
        if con.id in restored.optimiser.historical_gradient
    }
    assert restored_history == original_history

    trainer.run_batch([SEQUENCE], TARGET)
    restored.run_batch([SEQUENCE], TARGET)
    assert restored.network.params() == trainer.network.params()


def test_savepoint_layout(linear_pair, tmp_path):
    trainer = Backprop(linear_pair(weight=2), {"optimiser": "AdaGrad"})
    trainer.run_batch([[3]], [[5]])
    path = trainer.save(directory=tmp_path)
    assert re.fullmatch(r"rann_savepoint_\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}\.yml", path.name)
    weights, state = yaml.safe_load(path.read_text())
    assert weights == [str(trainer.network.params()[0])]
    assert state == {"historical_gradient": {0: "9"}}


def test_restore_picks_latest_savepoint(linear_pair, tmp_path):
    trainer = Backprop(linear_pair(weight=2))
    trainer.network.impose(["1.5"])
    trainer.save(tmp_path / "rann_savepoint_2024-01-01-00-00-00.yml")
    trainer.network.impose(["2.5"])
    trainer.save(tmp_path / "rann_savepoint_2025-06-30-12-00-00.yml")
    (tmp_path / "notes.yml").write_text("[]")

    fresh = Backprop(linear_pair(weight=0))
    path = fresh.restore(directory=tmp_path)
    assert path.name == "rann_savepoint_2025-06-30-12-00-00.yml"
    assert fresh.network.params() == [Decimal("2.5")]


def test_restore_without_savepoint_initialises_weights(two_layer, tmp_path, capsys):
    trainer = Backprop(two_layer(locked_first=True))
    before = trainer.network.params()
    assert trainer.restore(directory=tmp_path) is None
    assert "No savepoints found" in capsys.readouterr().out
    after = trainer.network.params()
    assert after[0] == before[0]
    assert after[1:] != before[1:]


def test_malformed_savepoint(linear_pair, tmp_path):
    path = tmp_path / "broken.yml"
    path.write_text(yaml.safe_dump({"weights": ["1"]}))
    with pytest.raises(ValueError):
        Backprop(linear_pair()).restore(path)


def test_state_index_outside_network(linear_pair, tmp_path):
    path = tmp_path / "wide.yml"
    path.write_text(yaml.safe_dump([["1"], {"historical_gradient": {5: "1"}}]))
    with pytest.raises(ValueError, match="outside the network"):
        Backprop(linear_pair()).restore(path)


def test_latest_savepoint_empty_directory(tmp_path):
    assert persistence.latest_savepoint(tmp_path) is None
