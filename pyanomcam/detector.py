from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Protocol, Sequence, Union

import numpy as np

from pyanomcam.calibration.stats import CalibrationStats, load_calibration_stats
from pyanomcam.config.settings import DetectorConfig
from pyanomcam.errors import InferenceError, InitializationError
from pyanomcam.inference.session import InferenceInvoker, ModelSession, load_onnx_session
from pyanomcam.inputs.frame import Frame, frame_to_rgb, rotate_image
from pyanomcam.inputs.image_format import ImageFormat, normalize_numpy_image
from pyanomcam.postprocess.normalize import normalize_output
from pyanomcam.preprocessing.tensor import to_chw_tensor
from pyanomcam.result import DetectionResult

logger = logging.getLogger(__name__)

ImageInput = Union[np.ndarray, Frame]
SessionFactory = Callable[..., ModelSession]


class DetectorListener(Protocol):
    def on_results(
        self,
        result: DetectionResult,
        inference_time_ms: float,
        image_height: int,
        image_width: int,
    ) -> None: ...

    def on_error(self, message: str) -> None: ...


class LoggingListener:
    """Listener used when the caller does not supply one."""

    def on_results(
        self,
        result: DetectionResult,
        inference_time_ms: float,
        image_height: int,
        image_width: int,
    ) -> None:
        logger.info(
            "%s score=%.3f (%dx%d, %.1f ms)",
            result.label,
            result.score,
            image_width,
            image_height,
            inference_time_ms,
        )

    def on_error(self, message: str) -> None:
        logger.error("%s", message)


def _default_session_factory(model_path: str, *, providers: Sequence[str]) -> ModelSession:
    return load_onnx_session(model_path, providers=providers)


class AnomalyDetector:
    """Frame -> tensor -> model -> normalized `DetectionResult`.

    The calibration stats are loaded once. The model session is created on
    construction; when that fails, the error goes to the listener and the
    next `detect` call tries again. A failed model run also drops the session
    so the following frame starts from a fresh one.
    """

    def __init__(
        self,
        config: DetectorConfig,
        listener: Optional[DetectorListener] = None,
        *,
        stats: Optional[CalibrationStats] = None,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self.config = config
        self.listener: DetectorListener = listener if listener is not None else LoggingListener()
        self.stats = stats if stats is not None else load_calibration_stats(config.metadata_path)
        self._session_factory = session_factory or _default_session_factory
        self._invoker: Optional[InferenceInvoker] = None
        self.setup()

    @property
    def is_initialized(self) -> bool:
        return self._invoker is not None

    @property
    def input_shape(self) -> Optional[tuple[int, int, int, int]]:
        return self._invoker.input_shape if self._invoker is not None else None

    def setup(self) -> bool:
        """Create the session, reporting failures to the listener. Returns success."""

        try:
            self._ensure_invoker()
        except InitializationError as exc:
            logger.error("Detector failed to initialize: %s", exc)
            self.listener.on_error(f"Detector failed to initialize: {exc}")
            return False
        return True

    def _ensure_invoker(self) -> InferenceInvoker:
        if self._invoker is not None:
            return self._invoker
        try:
            session = self._session_factory(self.config.model_path, providers=self.config.providers)
        except InitializationError:
            raise
        except Exception as exc:  # noqa: BLE001 - session factory boundary
            raise InitializationError(f"Failed to create model session: {exc}") from exc
        self._invoker = InferenceInvoker(session, default_size_hw=self.config.input_size)
        logger.info("Model input %s shape=%s", self._invoker.input_name, self._invoker.input_shape)
        return self._invoker

    def _to_rgb(self, image: ImageInput, rotation_degrees: int, input_format: Any) -> np.ndarray:
        if isinstance(image, Frame):
            return frame_to_rgb(image)
        rgb = normalize_numpy_image(image, input_format=input_format)
        return rotate_image(rgb, rotation_degrees)

    def detect_or_raise(
        self,
        image: ImageInput,
        rotation_degrees: int = 0,
        *,
        input_format: str | ImageFormat = ImageFormat.RGB_U8_HWC,
    ) -> DetectionResult:
        """Run the full pipeline on one image and return the result.

        `Frame` inputs carry their own format and rotation.
        """

        invoker = self._ensure_invoker()
        rgb = self._to_rgb(image, rotation_degrees, input_format)
        tensor = to_chw_tensor(rgb, invoker.input_size_hw, interpolation=self.config.interpolation)
        try:
            output = invoker.run_inference(tensor)
        except InferenceError:
            self._invoker = None
            raise
        return normalize_output(output, self.stats, image=rgb)

    def detect(
        self,
        image: ImageInput,
        rotation_degrees: int = 0,
        *,
        input_format: str | ImageFormat = ImageFormat.RGB_U8_HWC,
    ) -> Optional[DetectionResult]:
        """Run the pipeline and report to the listener instead of raising."""

        start = time.monotonic()
        try:
            result = self.detect_or_raise(image, rotation_degrees, input_format=input_format)
        except InitializationError as exc:
            logger.error("Detector failed to initialize: %s", exc)
            self.listener.on_error(f"Detector failed to initialize: {exc}")
            return None
        except Exception as exc:  # noqa: BLE001 - detection boundary, next frame is a fresh attempt
            logger.error("Detection failed: %s", exc)
            self.listener.on_error(f"Detection failed: {exc}")
            return None

        elapsed_ms = (time.monotonic() - start) * 1000.0
        h, w = (int(d) for d in result.image.shape[:2])
        self.listener.on_results(result, elapsed_ms, h, w)
        return result

    def render(self, result: DetectionResult) -> np.ndarray:
        """Composite for `result` using the configured heatmap opacity."""

        return result.visualize(max_alpha=self.config.heatmap_max_alpha)
