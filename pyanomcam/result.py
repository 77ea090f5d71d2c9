from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from pyanomcam.utils.jsonable import to_jsonable

ANOMALOUS = "Anomalous"
NORMAL = "Normal"


@dataclass(frozen=True, eq=False)
class DetectionResult:
    """Normalized outcome of one frame.

    `anomaly_map` is the flat, per-frame min-max normalized map and
    `pixel_threshold` the calibration pixel threshold moved into that same
    space. `image` is the RGB/u8/HWC frame the overlay is drawn on.
    """

    label: str
    score: float
    raw_score: float
    anomaly_map: np.ndarray
    pixel_threshold: float
    anomalous_pixel_fraction: float
    image: Optional[np.ndarray] = field(default=None, repr=False, compare=False)
    _overlay: Optional[np.ndarray] = field(default=None, init=False, repr=False, compare=False)

    @property
    def is_anomaly(self) -> bool:
        return self.label == ANOMALOUS

    @property
    def has_overlay(self) -> bool:
        return self._overlay is not None

    def visualize(self, *, max_alpha: float = 0.5) -> np.ndarray:
        """Return the heatmap composite, computing it on first access.

        Later calls return the cached array until `release()` is called.
        """

        if self._overlay is not None:
            return self._overlay
        if self.image is None:
            raise ValueError("DetectionResult has no base image to draw on")

        from pyanomcam.visualization.heatmap import render_result

        overlay = render_result(self, max_alpha=max_alpha)
        # Memoized view; the result's own fields stay immutable.
        object.__setattr__(self, "_overlay", overlay)
        return overlay

    def release(self) -> None:
        """Drop the cached composite."""

        object.__setattr__(self, "_overlay", None)

    def to_jsonable(self, *, include_map_values: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "label": str(self.label),
            "is_anomaly": bool(self.is_anomaly),
            "score": float(self.score),
            "raw_score": float(self.raw_score),
            "pixel_threshold": float(self.pixel_threshold),
            "anomalous_pixel_fraction": float(self.anomalous_pixel_fraction),
            "anomaly_map": {
                "size": int(self.anomaly_map.size),
                "dtype": str(self.anomaly_map.dtype),
            },
        }
        if include_map_values:
            payload["anomaly_map_values"] = to_jsonable(self.anomaly_map)
        return payload
