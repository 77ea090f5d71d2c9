"""Score normalization.

Two different policies live here on purpose:

- `threshold_centered_score` maps the image-level score onto [0, 1] using the
  calibration statistics, with the image threshold landing on 0.5.
- `minmax_normalize_map` rescales one frame's anomaly map by that frame's own
  min/max, independent of the calibration.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

from pyanomcam.calibration.stats import CalibrationStats
from pyanomcam.errors import InferenceError
from pyanomcam.inference.session import InferenceOutput
from pyanomcam.result import ANOMALOUS, NORMAL, DetectionResult

logger = logging.getLogger(__name__)


def threshold_centered_score(value: float, threshold: float, min_val: float, max_val: float) -> float:
    """Return ``clip((value - threshold) / (max_val - min_val) + 0.5, 0, 1)``."""

    denom = float(max_val) - float(min_val)
    if denom <= 0.0:
        raise ValueError(f"max_val must be greater than min_val, got min={min_val}, max={max_val}")
    normalized = (float(value) - float(threshold)) / denom + 0.5
    if np.isnan(normalized):
        return 0.0
    return float(min(max(normalized, 0.0), 1.0))


def minmax_normalize_map(anomaly_map: np.ndarray) -> np.ndarray:
    """Rescale a map to [0, 1] by its own min/max.

    A uniform map (max == min) becomes all zeros.
    """

    m = np.asarray(anomaly_map, dtype=np.float64)
    if m.size == 0:
        return np.zeros(m.shape, dtype=np.float32)

    min_val = float(np.min(m))
    max_val = float(np.max(m))
    denom = max_val - min_val
    if not denom > 0.0:
        return np.zeros(m.shape, dtype=np.float32)

    out = (m - min_val) / denom
    return np.clip(out, 0.0, 1.0).astype(np.float32)


def normalize_pixel_threshold(pixel_threshold: float, frame_min: float, frame_max: float) -> float:
    """Move the calibration pixel threshold into the frame's min-max space.

    The result is not clamped. For a uniform frame it is -1.0 when every
    pixel exceeds the threshold and 1.0 when none does.
    """

    denom = float(frame_max) - float(frame_min)
    if not denom > 0.0:
        return -1.0 if float(pixel_threshold) < float(frame_min) else 1.0
    return (float(pixel_threshold) - float(frame_min)) / denom


def anomalous_pixel_fraction(normalized_map: np.ndarray, normalized_threshold: float) -> float:
    """Fraction of map entries strictly above `normalized_threshold`."""

    m = np.asarray(normalized_map)
    if m.size == 0:
        return 0.0
    return float(np.count_nonzero(m > float(normalized_threshold))) / float(m.size)


def normalize_output(
    output: InferenceOutput,
    stats: CalibrationStats,
    *,
    image: Optional[np.ndarray] = None,
) -> DetectionResult:
    """Turn raw model outputs into a `DetectionResult`."""

    raw_map = np.asarray(output.anomaly_map, dtype=np.float32).reshape(-1)
    if raw_map.size == 0:
        raise InferenceError("Anomaly map is empty")
    if not np.all(np.isfinite(raw_map)):
        raise InferenceError("Anomaly map contains non-finite values")

    raw_score = float(output.raw_score)
    if not math.isfinite(raw_score):
        raise InferenceError(f"Image score is not finite: {raw_score}")
    frame_min = float(np.min(raw_map))
    frame_max = float(np.max(raw_map))

    normalized_map = minmax_normalize_map(raw_map)
    normalized_threshold = normalize_pixel_threshold(stats.pixel_threshold, frame_min, frame_max)
    fraction = anomalous_pixel_fraction(normalized_map, normalized_threshold)

    is_anomaly = raw_score > float(stats.image_threshold)
    score = threshold_centered_score(
        raw_score,
        stats.image_threshold,
        stats.pred_scores_min,
        stats.pred_scores_max,
    )

    logger.debug(
        "raw_score=%.4f score=%.4f map_size=%d map_min=%.4f map_max=%.4f "
        "pixel_threshold=%.4f anomalous_fraction=%.4f label=%s",
        raw_score,
        score,
        raw_map.size,
        frame_min,
        frame_max,
        normalized_threshold,
        fraction,
        ANOMALOUS if is_anomaly else NORMAL,
    )

    return DetectionResult(
        label=ANOMALOUS if is_anomaly else NORMAL,
        score=score,
        raw_score=raw_score,
        anomaly_map=normalized_map,
        pixel_threshold=normalized_threshold,
        anomalous_pixel_fraction=fraction,
        image=image,
    )
