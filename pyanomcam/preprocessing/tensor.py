"""Pixel format conversion: RGB frames to planar float tensors.

The model consumes a channel-major ``(3, H, W)`` float tensor in ``[0, 1]``
(batched to ``(1, 3, H, W)`` by the invoker). Preview helpers mirror how the
camera path downsizes frames before they reach the detector: a JPEG round
trip decoded at a power-of-two reduced size.
"""

from __future__ import annotations

from typing import Literal

import cv2
import numpy as np

from pyanomcam.errors import InvalidInputError

Interpolation = Literal["bilinear", "nearest"]

_INTERPOLATION_FLAGS = {
    "bilinear": cv2.INTER_LINEAR,
    "nearest": cv2.INTER_NEAREST,
}

# OpenCV can only decode JPEGs at 1/2, 1/4 and 1/8 scale.
_REDUCED_DECODE_FLAGS = {
    1: cv2.IMREAD_COLOR,
    2: cv2.IMREAD_REDUCED_COLOR_2,
    4: cv2.IMREAD_REDUCED_COLOR_4,
    8: cv2.IMREAD_REDUCED_COLOR_8,
}


def _require_rgb_u8(image: np.ndarray) -> np.ndarray:
    if not isinstance(image, np.ndarray):
        raise TypeError(f"Expected np.ndarray, got {type(image)}")
    if image.ndim != 3 or image.shape[2] != 3:
        raise InvalidInputError(f"Expected RGB image of shape (H,W,3), got {image.shape}")
    if image.dtype != np.uint8:
        raise InvalidInputError(f"Expected dtype=uint8, got {image.dtype}")
    if image.shape[0] <= 0 or image.shape[1] <= 0:
        raise InvalidInputError(f"Image has zero dimensions: {image.shape}")
    return image


def _parse_size_hw(size_hw: tuple[int, int]) -> tuple[int, int]:
    try:
        h, w = int(size_hw[0]), int(size_hw[1])
    except Exception as exc:  # noqa: BLE001 - validation boundary
        raise InvalidInputError(f"size_hw must be a pair of ints, got {size_hw!r}") from exc
    if h <= 0 or w <= 0:
        raise InvalidInputError(f"Target size must be positive, got {(h, w)}")
    return h, w


def resize_rgb(
    image: np.ndarray,
    size_hw: tuple[int, int],
    *,
    interpolation: Interpolation = "bilinear",
) -> np.ndarray:
    """Resize an RGB image to (H, W). Returns a new array."""

    img = _require_rgb_u8(image)
    h, w = _parse_size_hw(size_hw)
    flag = _INTERPOLATION_FLAGS.get(str(interpolation))
    if flag is None:
        raise ValueError(f"Unknown interpolation: {interpolation!r}. Choose from: bilinear, nearest.")
    if img.shape[0] == h and img.shape[1] == w:
        return img.copy()
    return cv2.resize(img, (w, h), interpolation=flag)


def to_chw_tensor(
    image: np.ndarray,
    size_hw: tuple[int, int],
    *,
    interpolation: Interpolation = "bilinear",
) -> np.ndarray:
    """Convert an RGB/u8/HWC image into a ``(3, H, W)`` float32 tensor in [0, 1].

    Red lands in plane 0, green in plane 1 and blue in plane 2, so the value
    of pixel ``i`` in channel ``c`` sits at flat index ``c*H*W + i``.
    """

    resized = resize_rgb(image, size_hw, interpolation=interpolation)
    chw = np.transpose(resized, (2, 0, 1)).astype(np.float32) / np.float32(255.0)
    return np.ascontiguousarray(chw)


def target_size_keep_aspect(width: int, height: int, target: int) -> tuple[int, int]:
    """Return (width, height) with the longer side set to `target`."""

    w, h, t = int(width), int(height), int(target)
    if w <= 0 or h <= 0 or t <= 0:
        raise InvalidInputError(f"Sizes must be positive, got width={w} height={h} target={t}")
    ratio = w / h
    if w > h:
        return t, max(1, int(t / ratio))
    return max(1, int(t * ratio)), t


def sample_size_for(width: int, height: int, req_width: int, req_height: int) -> int:
    """Largest power-of-two sub-sampling factor keeping both sides >= requested."""

    sample = 1
    if height > req_height or width > req_width:
        half_h = int(height) // 2
        half_w = int(width) // 2
        while half_h // sample >= req_height and half_w // sample >= req_width:
            sample *= 2
    return sample


def jpeg_roundtrip(image: np.ndarray, *, quality: int = 75, target_size: int = 224) -> np.ndarray:
    """JPEG-encode an RGB frame and decode it at a reduced size.

    The decode factor is the largest power of two that keeps the picture at
    least as large as the aspect-preserving `target_size` box.
    """

    img = _require_rgb_u8(image)
    h, w = int(img.shape[0]), int(img.shape[1])

    ok, encoded = cv2.imencode(
        ".jpg",
        cv2.cvtColor(img, cv2.COLOR_RGB2BGR),
        [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)],
    )
    if not ok:
        raise InvalidInputError(f"Failed to JPEG-encode frame of shape {img.shape}")

    tw, th = target_size_keep_aspect(w, h, target_size)
    sample = sample_size_for(w, h, tw, th)
    decode_factor = min(sample, 8)

    decoded = cv2.imdecode(encoded, _REDUCED_DECODE_FLAGS[decode_factor])
    if decoded is None:
        raise InvalidInputError("Failed to decode JPEG frame")

    if sample > decode_factor:
        dh = max(1, h // sample)
        dw = max(1, w // sample)
        decoded = cv2.resize(decoded, (dw, dh), interpolation=cv2.INTER_AREA)

    return np.ascontiguousarray(cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB))
