from __future__ import annotations

import numpy as np
import pytest

from pyanomcam.calibration.stats import CalibrationStats
from pyanomcam.config.settings import DetectorConfig
from pyanomcam.detector import AnomalyDetector
from pyanomcam.errors import InitializationError, InvalidInputError
from pyanomcam.inputs.frame import Frame


class _Input:
    name = "input"
    shape = [1, 3, 4, 4]


class _DummySession:
    def __init__(self, score: float = 60.0, exc: Exception | None = None) -> None:
        self.score = score
        self.exc = exc
        self.feeds: list[np.ndarray] = []

    def get_inputs(self):
        return [_Input()]

    def run(self, output_names, input_feed):
        self.feeds.append(input_feed["input"])
        if self.exc is not None:
            raise self.exc
        return [np.linspace(40.0, 45.0, 16, dtype=np.float32), np.array([self.score], dtype=np.float32)]


class _RecordingListener:
    def __init__(self) -> None:
        self.results: list[tuple] = []
        self.errors: list[str] = []

    def on_results(self, result, inference_time_ms, image_height, image_width) -> None:
        self.results.append((result, inference_time_ms, image_height, image_width))

    def on_error(self, message: str) -> None:
        self.errors.append(message)


class _Factory:
    def __init__(self, *sessions) -> None:
        self.sessions = list(sessions)
        self.calls: list[tuple] = []

    def __call__(self, model_path, *, providers):
        self.calls.append((model_path, tuple(providers)))
        item = self.sessions.pop(0) if len(self.sessions) > 1 else self.sessions[0]
        if isinstance(item, Exception):
            raise item
        return item


def _detector(factory, listener=None) -> AnomalyDetector:
    return AnomalyDetector(
        DetectorConfig(model_path="model.onnx"),
        listener,
        stats=CalibrationStats(),
        session_factory=factory,
    )


def test_detect_reports_result_with_display_size() -> None:
    session = _DummySession()
    listener = _RecordingListener()
    detector = _detector(_Factory(session), listener)
    image = np.zeros((6, 10, 3), dtype=np.uint8)

    result = detector.detect(image, 90)

    assert result is not None
    assert result.label == "Anomalous"
    assert listener.errors == []
    recorded, elapsed_ms, h, w = listener.results[0]
    assert recorded is result
    assert elapsed_ms >= 0.0
    assert (h, w) == (10, 6)
    assert result.image.shape == (10, 6, 3)
    assert session.feeds[0].shape == (1, 3, 4, 4)
    assert session.feeds[0].dtype == np.float32


def test_session_factory_receives_configured_providers() -> None:
    factory = _Factory(_DummySession())
    detector = _detector(factory)
    assert detector.is_initialized
    assert detector.input_shape == (1, 3, 4, 4)
    assert factory.calls == [("model.onnx", ("CPUExecutionProvider",))]


def test_initialization_failure_is_reported_and_retried() -> None:
    session = _DummySession(score=10.0)
    factory = _Factory(RuntimeError("no such provider"), session)
    listener = _RecordingListener()

    detector = _detector(factory, listener)

    assert not detector.is_initialized
    assert listener.errors == ["Detector failed to initialize: Failed to create model session: no such provider"]

    result = detector.detect(np.zeros((4, 4, 3), dtype=np.uint8))
    assert result is not None
    assert result.label == "Normal"
    assert detector.is_initialized
    assert len(factory.calls) == 2


def test_initialization_failure_during_detect() -> None:
    factory = _Factory(InitializationError("Model not found: model.onnx"))
    listener = _RecordingListener()
    detector = _detector(factory, listener)

    assert detector.detect(np.zeros((4, 4, 3), dtype=np.uint8)) is None
    assert listener.errors == ["Detector failed to initialize: Model not found: model.onnx"] * 2
    with pytest.raises(InitializationError):
        detector.detect_or_raise(np.zeros((4, 4, 3), dtype=np.uint8))


def test_failed_run_drops_session() -> None:
    bad = _DummySession(exc=RuntimeError("device lost"))
    good = _DummySession()
    factory = _Factory(bad, good)
    listener = _RecordingListener()
    detector = _detector(factory, listener)

    assert detector.detect(np.zeros((4, 4, 3), dtype=np.uint8)) is None
    assert listener.errors == ["Detection failed: Model run failed: device lost"]
    assert not detector.is_initialized

    assert detector.detect(np.zeros((4, 4, 3), dtype=np.uint8)) is not None
    assert len(factory.calls) == 2


def test_invalid_input_keeps_session() -> None:
    listener = _RecordingListener()
    detector = _detector(_Factory(_DummySession()), listener)

    assert detector.detect(np.zeros((4, 4), dtype=np.uint8)) is None
    assert listener.errors[0].startswith("Detection failed: ")
    assert detector.is_initialized
    with pytest.raises(InvalidInputError):
        detector.detect_or_raise(np.zeros((4, 4), dtype=np.uint8))


def test_detect_accepts_frames_and_other_formats() -> None:
    detector = _detector(_Factory(_DummySession()))
    bgr = np.zeros((8, 4, 3), dtype=np.uint8)
    bgr[..., 0] = 255

    frame_result = detector.detect(Frame(data=bgr, input_format="bgr_u8_hwc", rotation_degrees=270))
    assert frame_result is not None
    assert frame_result.image.shape == (4, 8, 3)
    assert np.all(frame_result.image[..., 2] == 255)

    array_result = detector.detect(bgr, input_format="bgr_u8_hwc")
    assert array_result is not None
    assert array_result.image.shape == (8, 4, 3)


def test_render_uses_configured_opacity() -> None:
    detector = AnomalyDetector(
        DetectorConfig(model_path="model.onnx", heatmap_max_alpha=0.0),
        stats=CalibrationStats(),
        session_factory=_Factory(_DummySession()),
    )
    image = np.full((64, 64, 3), 50, dtype=np.uint8)
    result = detector.detect_or_raise(image)

    overlay = detector.render(result)

    assert overlay.shape == image.shape
    # Zero opacity: only the label plate changes pixels.
    assert np.array_equal(overlay[-8:, -8:], image[-8:, -8:])
