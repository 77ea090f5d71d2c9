from __future__ import annotations

from .normalize import (
    anomalous_pixel_fraction,
    minmax_normalize_map,
    normalize_output,
    normalize_pixel_threshold,
    threshold_centered_score,
)

__all__ = [
    "anomalous_pixel_fraction",
    "minmax_normalize_map",
    "normalize_output",
    "normalize_pixel_threshold",
    "threshold_centered_score",
]
