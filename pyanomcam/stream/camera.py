from __future__ import annotations

import logging
import time
from typing import Iterator, Optional

import cv2

from pyanomcam.errors import InitializationError
from pyanomcam.inputs.frame import Frame
from pyanomcam.inputs.image_format import ImageFormat

logger = logging.getLogger(__name__)


class OpenCvFrameSource:
    """Camera frames from `cv2.VideoCapture`, delivered as BGR `Frame`s."""

    def __init__(
        self,
        index: int = 0,
        *,
        width: Optional[int] = None,
        height: Optional[int] = None,
        fps: Optional[float] = None,
        rotation_degrees: int = 0,
    ) -> None:
        self.index = int(index)
        self.rotation_degrees = int(rotation_degrees)
        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            backend = getattr(cv2, "CAP_V4L2", None)
            if backend is not None:
                capture = cv2.VideoCapture(self.index, backend)
        if not capture.isOpened():
            capture.release()
            raise InitializationError(f"Unable to open camera index {self.index}")

        if width is not None:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, int(width))
        if height is not None:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, int(height))
        if fps is not None:
            capture.set(cv2.CAP_PROP_FPS, float(fps))

        self._capture = capture
        logger.info(
            "Opened camera %d (%dx%d)",
            self.index,
            int(capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0),
            int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0),
        )

    def read(self) -> Frame | None:
        ok, image = self._capture.read()
        if not ok or image is None:
            return None
        return Frame(
            data=image,
            input_format=ImageFormat.BGR_U8_HWC,
            rotation_degrees=self.rotation_degrees,
            timestamp=time.time(),
        )

    def frames(self, *, max_frames: int = 0) -> Iterator[Frame]:
        """Yield frames until the camera stops (or `max_frames` when > 0)."""

        count = 0
        while int(max_frames) <= 0 or count < int(max_frames):
            frame = self.read()
            if frame is None:
                logger.warning("Camera %d returned no frame; stopping", self.index)
                return
            count += 1
            yield frame

    def close(self) -> None:
        self._capture.release()

    def __enter__(self) -> "OpenCvFrameSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
