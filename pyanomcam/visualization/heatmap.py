"""Heatmap overlays for detection results.

The normalized anomaly map is a flat ``N*N`` grid. Each cell is stretched
over its share of the base image and blended with a blue -> cyan -> green ->
yellow -> red color ramp whose opacity grows with the cell value.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import cv2
import numpy as np
from PIL import Image

from pyanomcam.errors import RenderError

if TYPE_CHECKING:
    from pyanomcam.result import DetectionResult

logger = logging.getLogger(__name__)

LABEL_BACKGROUND_ALPHA = 160.0 / 255.0


def heatmap_colors(values: np.ndarray) -> np.ndarray:
    """Map values in [0, 1] to uint8 RGB colors, shape ``values.shape + (3,)``.

    | range        | R            | G                | B                |
    |--------------|--------------|------------------|------------------|
    | [0, 0.25)    | 0            | 4v*255           | 255              |
    | [0.25, 0.5)  | 0            | 255              | (1-4(v-0.25))*255|
    | [0.5, 0.75)  | 4(v-0.5)*255 | 255              | 0                |
    | [0.75, 1]    | 255          | (1-4(v-0.75))*255| 0                |
    """

    v = np.clip(np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0), 0.0, 1.0)

    r = np.zeros_like(v)
    g = np.zeros_like(v)
    b = np.zeros_like(v)

    seg0 = v < 0.25
    seg1 = (v >= 0.25) & (v < 0.5)
    seg2 = (v >= 0.5) & (v < 0.75)
    seg3 = v >= 0.75

    g[seg0] = v[seg0] * 4.0 * 255.0
    b[seg0] = 255.0

    g[seg1] = 255.0
    b[seg1] = (1.0 - (v[seg1] - 0.25) * 4.0) * 255.0

    r[seg2] = (v[seg2] - 0.5) * 4.0 * 255.0
    g[seg2] = 255.0

    r[seg3] = 255.0
    g[seg3] = (1.0 - (v[seg3] - 0.75) * 4.0) * 255.0

    rgb = np.stack([r, g, b], axis=-1)
    # Components are truncated, not rounded.
    return np.clip(np.floor(rgb), 0.0, 255.0).astype(np.uint8)


def heatmap_color(value: float) -> tuple[int, int, int]:
    r, g, b = heatmap_colors(np.asarray([value], dtype=np.float64))[0]
    return int(r), int(g), int(b)


def grid_side(length: int) -> int:
    """Side of the square grid holding `length` cells."""

    n = int(math.isqrt(int(length))) if length > 0 else 0
    if n <= 0 or n * n != int(length):
        raise RenderError(f"Anomaly map of length {length} is not a square grid")
    return n


def render_heatmap_overlay(
    image: np.ndarray,
    anomaly_map: np.ndarray,
    *,
    max_alpha: float = 0.5,
) -> np.ndarray:
    """Blend the gridded heatmap over an RGB/u8/HWC image. Returns a new array."""

    base = np.asarray(image)
    if base.ndim != 3 or base.shape[2] != 3 or base.dtype != np.uint8:
        raise RenderError(f"Expected RGB/u8/HWC base image, got dtype={base.dtype} shape={base.shape}")
    h, w = int(base.shape[0]), int(base.shape[1])
    if h <= 0 or w <= 0:
        raise RenderError(f"Base image has zero dimensions: {base.shape}")

    flat = np.asarray(anomaly_map, dtype=np.float32).reshape(-1)
    n = grid_side(flat.size)
    grid = np.clip(np.nan_to_num(flat.reshape(n, n), nan=0.0), 0.0, 1.0)

    # Cell (x, y) covers [x*W/N, (x+1)*W/N) x [y*H/N, (y+1)*H/N).
    rows = (np.arange(h) * n) // h
    cols = (np.arange(w) * n) // w

    cell_colors = heatmap_colors(grid).astype(np.float32)
    cell_alpha = grid * float(min(max(max_alpha, 0.0), 1.0))

    colors = cell_colors[rows[:, None], cols[None, :]]
    alpha = cell_alpha[rows[:, None], cols[None, :]][..., None]

    blended = base.astype(np.float32) * (1.0 - alpha) + colors * alpha
    return np.clip(np.rint(blended), 0.0, 255.0).astype(np.uint8)


def format_label(label: str, score: float) -> str:
    """Return ``"<label> (<pct>%)"``; the percentage reflects confidence in the label."""

    pct = float(score) * 100.0 if label == "Anomalous" else (1.0 - float(score)) * 100.0
    return f"{label} ({pct:.1f}%)"


def draw_label(
    image: np.ndarray,
    text: str,
    *,
    origin: Optional[tuple[int, int]] = None,
) -> np.ndarray:
    """Draw `text` at the top-left corner over a translucent background plate."""

    out = np.ascontiguousarray(image).copy()
    h, w = int(out.shape[0]), int(out.shape[1])

    font = cv2.FONT_HERSHEY_SIMPLEX
    text_px = max(h / 20.0, 12.0)
    scale = text_px / 22.0
    thickness = max(1, int(round(scale * 2)))
    padding = max(2, h // 50)

    (tw, th), baseline = cv2.getTextSize(text, font, scale, thickness)
    if origin is None:
        x, y = padding, padding + th
    else:
        x, y = int(origin[0]), int(origin[1])

    x0, y0 = max(0, x - padding), max(0, y - th - padding)
    x1, y1 = min(w, x + tw + padding), min(h, y + baseline + padding)
    if x1 > x0 and y1 > y0:
        plate = out[y0:y1, x0:x1].astype(np.float32) * (1.0 - LABEL_BACKGROUND_ALPHA)
        out[y0:y1, x0:x1] = np.clip(np.rint(plate), 0.0, 255.0).astype(np.uint8)

    cv2.putText(out, text, (x, y), font, scale, (0, 0, 0), thickness + 2, cv2.LINE_AA)
    cv2.putText(out, text, (x, y), font, scale, (255, 255, 255), thickness, cv2.LINE_AA)
    return out


def render_result(result: "DetectionResult", *, max_alpha: float = 0.5) -> np.ndarray:
    """Compose heatmap and label for a result.

    Falls back to a copy of the unmodified base image when the overlay cannot
    be drawn.
    """

    base = np.asarray(result.image)
    try:
        overlay = render_heatmap_overlay(base, result.anomaly_map, max_alpha=max_alpha)
        return draw_label(overlay, format_label(result.label, result.score))
    except (RenderError, cv2.error, ValueError) as exc:
        logger.error("Error in visualization: %s", exc)
        return base.copy()


def save_overlay_image(
    result: "DetectionResult",
    out_path: str | Path,
    *,
    max_alpha: float = 0.5,
) -> Path:
    """Write the result's composite (RGB) to `out_path`."""

    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    composite = result.visualize(max_alpha=max_alpha)
    Image.fromarray(composite).save(out)
    return out
