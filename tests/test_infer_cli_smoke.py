from __future__ import annotations

import json

import numpy as np

from pyanomcam import infer_cli
from pyanomcam.calibration.stats import CalibrationStats
from pyanomcam.detector import AnomalyDetector


class _Input:
    name = "input"
    shape = [1, 3, 8, 8]


class _DummySession:
    def get_inputs(self):
        return [_Input()]

    def run(self, output_names, input_feed):
        tensor = input_feed["input"]
        score = 60.0 if float(tensor.mean()) > 0.5 else 30.0
        return [np.linspace(40.0, 45.0, 64, dtype=np.float32), np.array([score], dtype=np.float32)]


def _fake_create_detector(config, listener=None):
    return AnomalyDetector(
        config,
        listener,
        stats=CalibrationStats(),
        session_factory=lambda model_path, *, providers: _DummySession(),
    )


def _write_images(root) -> None:
    from PIL import Image

    root.mkdir()
    Image.fromarray(np.full((24, 32, 3), 250, dtype=np.uint8)).save(root / "bright.png")
    Image.fromarray(np.full((24, 32, 3), 5, dtype=np.uint8)).save(root / "dark.png")
    (root / "notes.txt").write_text("ignored", encoding="utf-8")


def test_infer_cli_writes_jsonl_and_overlays(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(infer_cli, "create_detector", _fake_create_detector)
    images = tmp_path / "images"
    _write_images(images)
    out_jsonl = tmp_path / "out" / "results.jsonl"
    overlays = tmp_path / "overlays"

    rc = infer_cli.main(
        [
            "--model",
            str(tmp_path / "model.onnx"),
            "--input",
            str(images),
            "--save-jsonl",
            str(out_jsonl),
            "--save-overlays",
            str(overlays),
        ]
    )

    assert rc == 0
    records = [json.loads(line) for line in out_jsonl.read_text(encoding="utf-8").splitlines()]
    assert [r["index"] for r in records] == [0, 1]
    assert [r["label"] for r in records] == ["Anomalous", "Normal"]
    assert records[0]["input"].endswith("bright.png")
    assert records[0]["anomaly_map"] == {"size": 64, "dtype": "float32"}
    assert "anomaly_map_values" not in records[0]
    for record in records:
        assert (overlays / record["overlay_path"].split("/")[-1]).exists()
    assert records[1]["overlay_path"].endswith("000001_dark.png")


def test_infer_cli_prints_records_to_stdout(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(infer_cli, "create_detector", _fake_create_detector)
    images = tmp_path / "images"
    _write_images(images)

    rc = infer_cli.main(
        ["--model", "model.onnx", "--input", str(images / "dark.png"), "--include-map-values"]
    )

    assert rc == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["label"] == "Normal"
    assert len(record["anomaly_map_values"]) == 64


def test_infer_cli_uses_config_file(tmp_path, monkeypatch) -> None:
    seen = []

    def create(config, listener=None):
        seen.append(config)
        return _fake_create_detector(config, listener)

    monkeypatch.setattr(infer_cli, "create_detector", create)
    images = tmp_path / "images"
    _write_images(images)
    cfg = tmp_path / "detector.json"
    cfg.write_text(json.dumps({"model_path": "model.onnx", "heatmap_max_alpha": 0.25}), encoding="utf-8")

    rc = infer_cli.main(["--config", str(cfg), "--input", str(images), "--save-jsonl", str(tmp_path / "r.jsonl")])

    assert rc == 0
    assert seen[0].model_path == str(tmp_path / "model.onnx")
    assert seen[0].heatmap_max_alpha == 0.25


def test_infer_cli_requires_model(tmp_path, capsys) -> None:
    rc = infer_cli.main(["--input", str(tmp_path)])

    assert rc == 2
    assert "error: --model is required" in capsys.readouterr().err


def test_infer_cli_reports_missing_input(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(infer_cli, "create_detector", _fake_create_detector)

    rc = infer_cli.main(["--model", "model.onnx", "--input", str(tmp_path / "missing")])

    assert rc == 2
    err = capsys.readouterr().err
    assert "Input not found" in err
    assert "context: model='model.onnx'" in err
