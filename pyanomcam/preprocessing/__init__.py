from __future__ import annotations

from .tensor import (
    jpeg_roundtrip,
    resize_rgb,
    sample_size_for,
    target_size_keep_aspect,
    to_chw_tensor,
)

__all__ = [
    "jpeg_roundtrip",
    "resize_rgb",
    "sample_size_for",
    "target_size_keep_aspect",
    "to_chw_tensor",
]
