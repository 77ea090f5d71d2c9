"""Calibration statistics exported alongside the model."""

from __future__ import annotations

from .stats import (
    DEFAULT_IMAGE_THRESHOLD,
    DEFAULT_PIXEL_THRESHOLD,
    DEFAULT_PRED_SCORES_MAX,
    DEFAULT_PRED_SCORES_MIN,
    CalibrationStats,
    calibration_stats_from_mapping,
    load_calibration_stats,
)

__all__ = [
    "DEFAULT_IMAGE_THRESHOLD",
    "DEFAULT_PIXEL_THRESHOLD",
    "DEFAULT_PRED_SCORES_MAX",
    "DEFAULT_PRED_SCORES_MIN",
    "CalibrationStats",
    "calibration_stats_from_mapping",
    "load_calibration_stats",
]
