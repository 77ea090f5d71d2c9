from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import cv2
import numpy as np

from pyanomcam.errors import InvalidInputError
from pyanomcam.inputs.image_format import (
    ImageFormat,
    normalize_numpy_image,
    parse_image_format,
    yuv_frame_size_hw,
    yuv_planes_to_nv21,
)

logger = logging.getLogger(__name__)

_ROTATIONS = {
    0: None,
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


@dataclass
class Frame:
    """One camera frame as delivered by a frame source.

    The owner of a frame must call `close()` once it is done with it,
    whether or not processing succeeded; `on_close` hands the underlying
    buffer back to the source.
    """

    data: np.ndarray
    input_format: ImageFormat
    rotation_degrees: int = 0
    timestamp: float = field(default_factory=time.time)
    on_close: Optional[Callable[[], None]] = field(default=None, repr=False, compare=False)
    _closed: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.input_format = parse_image_format(self.input_format)
        rotation = int(self.rotation_degrees) % 360
        if rotation not in _ROTATIONS:
            raise InvalidInputError(f"rotation_degrees must be a multiple of 90, got {self.rotation_degrees}")
        self.rotation_degrees = rotation

    @classmethod
    def from_yuv_planes(
        cls,
        y: np.ndarray,
        u: np.ndarray,
        v: np.ndarray,
        *,
        rotation_degrees: int = 0,
        on_close: Optional[Callable[[], None]] = None,
    ) -> "Frame":
        """Build an NV21 frame from a capture API that hands out separate Y/U/V planes."""

        return cls(
            data=yuv_planes_to_nv21(y, u, v),
            input_format=ImageFormat.NV21,
            rotation_degrees=rotation_degrees,
            on_close=on_close,
        )

    @property
    def size_hw(self) -> tuple[int, int]:
        """Picture size (before rotation)."""

        arr = self.data
        if self.input_format in (ImageFormat.NV21, ImageFormat.I420):
            return yuv_frame_size_hw(arr)
        if self.input_format is ImageFormat.RGB_F32_CHW:
            return int(arr.shape[1]), int(arr.shape[2])
        return int(arr.shape[0]), int(arr.shape[1])

    @property
    def height(self) -> int:
        return self.size_hw[0]

    @property
    def width(self) -> int:
        return self.size_hw[1]

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.on_close is not None:
            try:
                self.on_close()
            except Exception as exc:  # noqa: BLE001 - release hook must not mask processing errors
                logger.error("Failed to release frame: %s", exc)

    def __enter__(self) -> "Frame":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def rotate_image(image: np.ndarray, rotation_degrees: int) -> np.ndarray:
    """Rotate an HWC image clockwise by a multiple of 90 degrees."""

    rotation = int(rotation_degrees) % 360
    if rotation not in _ROTATIONS:
        raise InvalidInputError(f"rotation_degrees must be a multiple of 90, got {rotation_degrees}")
    code = _ROTATIONS[rotation]
    if code is None:
        return image
    return np.ascontiguousarray(cv2.rotate(image, code))


def frame_to_rgb(frame: Frame) -> np.ndarray:
    """Decode a frame into upright RGB/u8/HWC."""

    rgb = normalize_numpy_image(frame.data, input_format=frame.input_format)
    return rotate_image(rgb, frame.rotation_degrees)
