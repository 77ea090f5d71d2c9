from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

import numpy as np

from pyanomcam.detector import AnomalyDetector
from pyanomcam.inputs.frame import Frame, frame_to_rgb
from pyanomcam.preprocessing.tensor import jpeg_roundtrip
from pyanomcam.result import DetectionResult

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]
OverlayCallback = Callable[[np.ndarray, DetectionResult], None]
ErrorCallback = Callable[[str], None]


def _call_inline(fn: Callable[[], None]) -> None:
    fn()


class LatestFrameProcessor:
    """Single-slot frame processor with latest-frame-wins backpressure.

    At most one frame is in flight. Frames submitted while the slot is taken
    are closed and counted in `dropped_frames` instead of being queued.
    Detection runs on a dedicated single worker thread; overlays and error
    messages are handed to `dispatch`, which is expected to run the callback
    on the display thread.

    The processor registers itself as the detector's listener.
    """

    def __init__(
        self,
        detector: AnomalyDetector,
        *,
        on_overlay: Optional[OverlayCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        dispatch: Optional[Dispatch] = None,
        preview_downscale: bool = False,
    ) -> None:
        self.detector = detector
        self.detector.listener = self
        self._on_overlay = on_overlay
        self._on_error = on_error
        self._dispatch = dispatch or _call_inline
        self._preview_downscale = bool(preview_downscale)

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pyanomcam-frames")
        self._slot = threading.Lock()
        self._stats_lock = threading.Lock()
        self._current: Optional[DetectionResult] = None
        self.dropped_frames = 0
        self.processed_frames = 0

    @property
    def busy(self) -> bool:
        return self._slot.locked()

    @property
    def current_result(self) -> Optional[DetectionResult]:
        return self._current

    def submit(self, frame: Frame) -> Optional[Future]:
        """Schedule `frame`, or drop it when a frame is already in flight.

        Returns the worker future, or None when the frame was dropped.
        """

        if not self._slot.acquire(blocking=False):
            with self._stats_lock:
                self.dropped_frames += 1
            frame.close()
            return None

        try:
            return self._executor.submit(self._process, frame)
        except RuntimeError as exc:
            # Executor already shut down.
            self._slot.release()
            frame.close()
            logger.error("Frame rejected: %s", exc)
            return None

    def _process(self, frame: Frame) -> None:
        try:
            self._replace_result(None)
            rgb = frame_to_rgb(frame)
            if self._preview_downscale:
                rgb = jpeg_roundtrip(
                    rgb,
                    quality=self.detector.config.jpeg_quality,
                    target_size=self.detector.config.preview_target_size,
                )
            self.detector.detect(rgb)
        except Exception as exc:  # noqa: BLE001 - worker boundary, next frame is a fresh attempt
            logger.error("Error processing image: %s", exc)
            self.on_error(f"Error processing image: {exc}")
        finally:
            with self._stats_lock:
                self.processed_frames += 1
            frame.close()
            self._slot.release()

    def _replace_result(self, result: Optional[DetectionResult]) -> None:
        previous = self._current
        self._current = result
        if previous is not None and previous is not result:
            previous.release()

    def on_results(
        self,
        result: DetectionResult,
        inference_time_ms: float,
        image_height: int,
        image_width: int,
    ) -> None:
        logger.debug(
            "%s score=%.3f (%dx%d) in %.1f ms",
            result.label,
            result.score,
            image_width,
            image_height,
            inference_time_ms,
        )
        self._replace_result(result)
        if self._on_overlay is None:
            return

        def show() -> None:
            try:
                overlay = self.detector.render(result)
            except Exception as exc:  # noqa: BLE001 - display boundary
                logger.error("Error updating UI: %s", exc)
                return
            self._on_overlay(overlay, result)

        self._dispatch(show)

    def on_error(self, message: str) -> None:
        if self._on_error is None:
            return
        callback = self._on_error
        self._dispatch(lambda: callback(message))

    def shutdown(self, *, wait: bool = True) -> None:
        """Stop the worker and release the current result's overlay."""

        self._executor.shutdown(wait=wait)
        if wait:
            self._replace_result(None)
        logger.info(
            "Frame processor stopped: processed=%d dropped=%d",
            self.processed_frames,
            self.dropped_frames,
        )

    def __enter__(self) -> "LatestFrameProcessor":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
