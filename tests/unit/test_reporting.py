import json
from decimal import Decimal

from rann import Backprop
from rann.reporting.metrics import JsonlSink


def test_jsonl_sink_records_each_batch(linear_pair, tmp_path):
    sink = JsonlSink(tmp_path / "logs" / "errors.jsonl")
    trainer = Backprop(linear_pair(weight=2), {"optimiser": "AdaGrad", "processes": 0}, callbacks=[sink])
    trainer.run_batch([[3]], [[5]])
    trainer.run_batch([[3]], [[5]])
    records = [json.loads(line) for line in sink.path.read_text().splitlines()]
    assert [r["batch"] for r in records] == [1, 2]
    assert records[0] == {"batch": 1, "error": 0.5}


def test_jsonl_sink_accepts_decimal_metrics(tmp_path):
    sink = JsonlSink(tmp_path / "errors.jsonl")
    sink(3, {"error": Decimal("0.25"), "checked": True, "note": "ok"})
    assert json.loads(sink.path.read_text()) == {"batch": 3, "error": 0.25}


def test_jsonl_sink_truncates_unless_appending(tmp_path):
    path = tmp_path / "errors.jsonl"
    JsonlSink(path)(1, {"error": 1.0})
    JsonlSink(path, append=True)(2, {"error": 0.5})
    assert len(path.read_text().splitlines()) == 2
    JsonlSink(path)
    assert path.read_text() == ""
