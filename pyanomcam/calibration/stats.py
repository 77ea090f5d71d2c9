from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from pyanomcam.config.io import load_config

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_THRESHOLD = 42.5799674987793
DEFAULT_PIXEL_THRESHOLD = 42.5799674987793
DEFAULT_PRED_SCORES_MIN = 54.49655514941406
DEFAULT_PRED_SCORES_MAX = 70.5367202758789

_DEFAULTS = {
    "image_threshold": DEFAULT_IMAGE_THRESHOLD,
    "pixel_threshold": DEFAULT_PIXEL_THRESHOLD,
    "pred_scores_min": DEFAULT_PRED_SCORES_MIN,
    "pred_scores_max": DEFAULT_PRED_SCORES_MAX,
}


@dataclass(frozen=True)
class CalibrationStats:
    """Training-time score statistics used to interpret raw model outputs."""

    image_threshold: float = DEFAULT_IMAGE_THRESHOLD
    pixel_threshold: float = DEFAULT_PIXEL_THRESHOLD
    pred_scores_min: float = DEFAULT_PRED_SCORES_MIN
    pred_scores_max: float = DEFAULT_PRED_SCORES_MAX

    def __post_init__(self) -> None:
        for name in _DEFAULTS:
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
        if float(self.pred_scores_max) <= float(self.pred_scores_min):
            raise ValueError(
                "pred_scores_max must be greater than pred_scores_min. "
                f"Got min={self.pred_scores_min}, max={self.pred_scores_max}."
            )

    @property
    def score_range(self) -> float:
        return float(self.pred_scores_max) - float(self.pred_scores_min)

    def to_dict(self) -> dict[str, float]:
        return {name: float(getattr(self, name)) for name in _DEFAULTS}


def _coerce_stat(payload: Mapping[str, Any], key: str) -> float:
    default = _DEFAULTS[key]
    if key not in payload:
        logger.warning("Calibration key %r missing; using default %s", key, default)
        return default

    value = payload[key]
    # bool is an int subclass; a flag is never a valid statistic.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.warning("Calibration key %r is not numeric (%r); using default %s", key, value, default)
        return default

    out = float(value)
    if not math.isfinite(out):
        logger.warning("Calibration key %r is not finite (%r); using default %s", key, value, default)
        return default
    return out


def calibration_stats_from_mapping(payload: Mapping[str, Any] | None) -> CalibrationStats:
    """Build stats from a metadata mapping, falling back per key to defaults."""

    if not payload:
        logger.warning("Calibration metadata is empty; using default calibration stats")
        return CalibrationStats()

    values = {key: _coerce_stat(payload, key) for key in _DEFAULTS}
    try:
        return CalibrationStats(**values)
    except ValueError as exc:
        logger.warning("Calibration metadata is inconsistent (%s); using default calibration stats", exc)
        return CalibrationStats()


def load_calibration_stats(path: str | Path | None) -> CalibrationStats:
    """Load calibration stats from a metadata document.

    The document is the `metadata.json` exported next to the model with keys
    `image_threshold`, `pixel_threshold`, `pred_scores_min` and
    `pred_scores_max`. A missing, unreadable or malformed document never
    raises: the documented defaults are used instead.
    """

    if path is None:
        logger.warning("No calibration metadata configured; using default calibration stats")
        return CalibrationStats()

    meta_path = Path(path)
    if not meta_path.is_file():
        logger.warning("Calibration metadata not found at %s; using default calibration stats", meta_path)
        return CalibrationStats()

    try:
        payload = load_config(meta_path, kind="metadata document")
    except Exception as exc:  # noqa: BLE001 - metadata is advisory, defaults apply
        logger.warning("Failed to read calibration metadata %s (%s); using defaults", meta_path, exc)
        return CalibrationStats()

    stats = calibration_stats_from_mapping(payload)
    logger.info(
        "Calibration stats: image_threshold=%.4f pixel_threshold=%.4f min=%.4f max=%.4f",
        stats.image_threshold,
        stats.pixel_threshold,
        stats.pred_scores_min,
        stats.pred_scores_max,
    )
    return stats
