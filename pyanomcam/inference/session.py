from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, Sequence

import numpy as np

from pyanomcam.errors import InferenceError, InitializationError, InvalidInputError
from pyanomcam.utils.optional_deps import require

logger = logging.getLogger(__name__)


class ModelSession(Protocol):
    """The subset of `onnxruntime.InferenceSession` the invoker relies on."""

    def get_inputs(self) -> Sequence[Any]: ...

    def run(self, output_names: Optional[Sequence[str]], input_feed: Mapping[str, Any]) -> Sequence[Any]: ...


@dataclass(frozen=True)
class InferenceOutput:
    """Raw model outputs: flattened anomaly map (output 0) and score (output 1)."""

    anomaly_map: np.ndarray
    raw_score: float


def load_onnx_session(
    model_path: str | Path,
    *,
    providers: Sequence[str] = ("CPUExecutionProvider",),
) -> ModelSession:
    """Create an onnxruntime session for `model_path`.

    Any failure (missing runtime, missing file, invalid model) is reported as
    `InitializationError`.
    """

    path = Path(model_path)
    if not path.is_file():
        raise InitializationError(f"Model not found: {path}")

    try:
        ort = require("onnxruntime", purpose="model inference")
    except ImportError as exc:
        raise InitializationError(str(exc)) from exc

    try:
        sess_options = ort.SessionOptions()
        sess_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        session = ort.InferenceSession(
            str(path),
            sess_options=sess_options,
            providers=list(providers),
        )
    except Exception as exc:  # noqa: BLE001 - runtime boundary
        raise InitializationError(f"Failed to load model {path}: {exc}") from exc

    logger.info("Loaded model %s (providers=%s)", path, session.get_providers())
    return session


def _resolve_dim(value: Any, fallback: int) -> int:
    # Symbolic dims come back as strings (e.g. "height") or None.
    if isinstance(value, (int, np.integer)) and int(value) > 0:
        return int(value)
    return int(fallback)


class InferenceInvoker:
    """Runs one model session with a fixed ``(1, 3, H, W)`` input.

    The input name and shape are read from the session's first declared
    input when the invoker is constructed and never change afterwards.
    """

    def __init__(self, session: ModelSession, *, default_size_hw: tuple[int, int] = (224, 224)) -> None:
        if session is None:
            raise InitializationError("Model session is not initialized")

        try:
            inputs = list(session.get_inputs())
        except Exception as exc:  # noqa: BLE001 - runtime boundary
            raise InitializationError(f"Failed to read model inputs: {exc}") from exc
        if not inputs:
            raise InitializationError("Model has no input")

        first = inputs[0]
        shape = list(getattr(first, "shape", None) or [])
        if len(shape) != 4:
            raise InitializationError(f"Expected a 4D (N,C,H,W) model input, got shape {shape}")
        channels = _resolve_dim(shape[1], 3)
        if channels != 3:
            raise InitializationError(f"Expected a 3-channel model input, got {channels} channels")

        self._session = session
        self.input_name = str(first.name)
        self.input_shape = (
            1,
            3,
            _resolve_dim(shape[2], default_size_hw[0]),
            _resolve_dim(shape[3], default_size_hw[1]),
        )

    @property
    def input_size_hw(self) -> tuple[int, int]:
        return int(self.input_shape[2]), int(self.input_shape[3])

    def run_inference(self, tensor: np.ndarray) -> InferenceOutput:
        """Submit a ``(3,H,W)`` or ``(1,3,H,W)`` tensor and return the raw outputs."""

        arr = np.asarray(tensor)
        if arr.ndim == 3:
            arr = arr[np.newaxis, ...]
        if tuple(int(d) for d in arr.shape) != self.input_shape:
            raise InvalidInputError(
                f"Input tensor shape {tuple(arr.shape)} does not match model input {self.input_shape}"
            )
        feed = {self.input_name: np.ascontiguousarray(arr, dtype=np.float32)}

        try:
            outputs = self._session.run(None, feed)
        except Exception as exc:  # noqa: BLE001 - runtime boundary
            raise InferenceError(f"Model run failed: {exc}") from exc

        if outputs is None or len(outputs) < 2:
            count = 0 if outputs is None else len(outputs)
            raise InferenceError(f"Expected 2 model outputs (anomaly map, score), got {count}")

        anomaly_map = _as_float_array(outputs[0], name="anomaly map")
        score = _as_float_array(outputs[1], name="score")
        return InferenceOutput(anomaly_map=anomaly_map.reshape(-1), raw_score=float(score.reshape(-1)[0]))


def _as_float_array(value: Any, *, name: str) -> np.ndarray:
    try:
        arr = np.array(value, dtype=np.float32)
    except (TypeError, ValueError) as exc:
        raise InferenceError(f"Model output '{name}' is not numeric: {exc}") from exc
    if arr.size == 0:
        raise InferenceError(f"Model output '{name}' is empty")
    return arr
