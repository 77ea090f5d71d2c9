"""Input utilities for camera frames.

Callers declare the frame format explicitly and `pyanomcam` converts it to a
single canonical numpy representation:

- RGB
- uint8
- HWC
"""

from __future__ import annotations

from .frame import Frame, frame_to_rgb, rotate_image
from .image_format import ImageFormat, normalize_numpy_image, parse_image_format, yuv_planes_to_nv21

__all__ = [
    "Frame",
    "ImageFormat",
    "frame_to_rgb",
    "normalize_numpy_image",
    "parse_image_format",
    "rotate_image",
    "yuv_planes_to_nv21",
]
