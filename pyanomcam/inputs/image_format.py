from __future__ import annotations

from enum import Enum
from typing import Any

import cv2
import numpy as np

from pyanomcam.errors import InvalidInputError


class ImageFormat(str, Enum):
    """Supported explicit input formats for in-memory images."""

    BGR_U8_HWC = "bgr_u8_hwc"
    RGB_U8_HWC = "rgb_u8_hwc"
    RGBA_U8_HWC = "rgba_u8_hwc"
    ARGB_U32 = "argb_u32"
    RGB_F32_CHW = "rgb_f32_chw"
    NV21 = "nv21"
    I420 = "i420"


_YUV_CODES = {
    ImageFormat.NV21: cv2.COLOR_YUV2RGB_NV21,
    ImageFormat.I420: cv2.COLOR_YUV2RGB_I420,
}


def parse_image_format(raw: str | ImageFormat) -> ImageFormat:
    if isinstance(raw, ImageFormat):
        return raw
    try:
        return ImageFormat(str(raw).strip().lower())
    except Exception as exc:  # noqa: BLE001 - value validation helper
        raise InvalidInputError(f"Unknown image format: {raw!r}") from exc


def _require_ndarray(image: Any) -> np.ndarray:
    if not isinstance(image, np.ndarray):
        raise TypeError(f"Expected np.ndarray, got {type(image)}")
    if image.size == 0:
        raise InvalidInputError(f"Image has zero size: shape={image.shape}")
    return image


def _require_u8_hwc(arr: np.ndarray, fmt: ImageFormat, channels: int) -> None:
    if arr.dtype != np.uint8:
        raise InvalidInputError(f"Expected dtype=uint8 for {fmt.value}, got {arr.dtype}")
    if arr.ndim != 3 or arr.shape[2] != channels:
        raise InvalidInputError(f"Expected shape (H,W,{channels}) for {fmt.value}, got {arr.shape}")


def yuv_frame_size_hw(arr: np.ndarray) -> tuple[int, int]:
    """Return the (H, W) of the picture stored in a ``(H*3/2, W)`` YUV 4:2:0 buffer."""

    rows, width = int(arr.shape[0]), int(arr.shape[1])
    if (rows * 2) % 3 != 0:
        raise InvalidInputError(f"YUV 4:2:0 buffer must have H*3/2 rows, got {rows}")
    height = rows * 2 // 3
    if height % 2 or width % 2:
        raise InvalidInputError(f"YUV 4:2:0 frames need even dimensions, got {(height, width)}")
    return height, width


def _argb_to_rgb(arr: np.ndarray) -> np.ndarray:
    if arr.ndim != 2:
        raise InvalidInputError(f"Expected shape (H,W) of packed pixels for argb_u32, got {arr.shape}")
    if arr.dtype == np.int32:
        packed = arr.view(np.uint32)
    elif arr.dtype == np.uint32:
        packed = arr
    else:
        raise InvalidInputError(f"Expected dtype=int32/uint32 for argb_u32, got {arr.dtype}")

    rgb = np.empty(arr.shape + (3,), dtype=np.uint8)
    rgb[..., 0] = (packed >> 16) & 0xFF
    rgb[..., 1] = (packed >> 8) & 0xFF
    rgb[..., 2] = packed & 0xFF
    return rgb


def normalize_numpy_image(image: Any, *, input_format: str | ImageFormat) -> np.ndarray:
    """Normalize an in-memory image into canonical ``RGB/u8/HWC``.

    This function is intentionally strict: it uses the declared `input_format`
    and does not guess. The input array is never modified.
    """

    fmt = parse_image_format(input_format)
    arr = _require_ndarray(image)

    if fmt is ImageFormat.BGR_U8_HWC:
        _require_u8_hwc(arr, fmt, 3)
        return np.ascontiguousarray(arr[..., ::-1])

    if fmt is ImageFormat.RGB_U8_HWC:
        _require_u8_hwc(arr, fmt, 3)
        return np.ascontiguousarray(arr)

    if fmt is ImageFormat.RGBA_U8_HWC:
        _require_u8_hwc(arr, fmt, 4)
        return np.ascontiguousarray(arr[..., :3])

    if fmt is ImageFormat.ARGB_U32:
        return _argb_to_rgb(arr)

    if fmt is ImageFormat.RGB_F32_CHW:
        if arr.ndim != 3 or arr.shape[0] != 3:
            raise InvalidInputError(f"Expected shape (3,H,W) for {fmt.value}, got {arr.shape}")
        if arr.dtype not in (np.float32, np.float64):
            raise InvalidInputError(f"Expected dtype=float32/float64 for {fmt.value}, got {arr.dtype}")
        if not np.all(np.isfinite(arr)):
            raise InvalidInputError(f"Expected finite values for {fmt.value}, got NaN or inf")
        max_val = float(np.max(arr))
        min_val = float(np.min(arr))
        if max_val > 1.0 + 1e-6 or min_val < 0.0 - 1e-6:
            raise InvalidInputError(
                f"Expected values in [0,1] for {fmt.value}. Got min={min_val:.6f}, max={max_val:.6f}."
            )
        hwc = np.transpose(arr, (1, 2, 0))
        scaled = np.clip(np.rint(hwc * 255.0), 0.0, 255.0).astype(np.uint8, copy=False)
        return np.ascontiguousarray(scaled)

    if fmt in _YUV_CODES:
        if arr.dtype != np.uint8 or arr.ndim != 2:
            raise InvalidInputError(
                f"Expected a 2D uint8 buffer of shape (H*3/2,W) for {fmt.value}, "
                f"got dtype={arr.dtype} shape={arr.shape}"
            )
        yuv_frame_size_hw(arr)
        return np.ascontiguousarray(cv2.cvtColor(arr, _YUV_CODES[fmt]))

    raise RuntimeError(f"Unhandled image format: {fmt}")


def yuv_planes_to_nv21(y: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Pack planar Y, U, V (4:2:0) into a single NV21 buffer.

    NV21 stores the full-resolution luma plane followed by interleaved
    V/U samples, shape ``(H*3/2, W)``. Plane-based capture APIs go through
    `Frame.from_yuv_planes`, which wraps the packed buffer.
    """

    y_arr = np.asarray(y, dtype=np.uint8)
    u_arr = np.asarray(u, dtype=np.uint8)
    v_arr = np.asarray(v, dtype=np.uint8)
    if y_arr.ndim != 2 or y_arr.size == 0:
        raise InvalidInputError(f"Y plane must be a non-empty 2D array, got shape {y_arr.shape}")

    h, w = int(y_arr.shape[0]), int(y_arr.shape[1])
    if h % 2 or w % 2:
        raise InvalidInputError(f"YUV 4:2:0 frames need even dimensions, got {(h, w)}")
    chroma_shape = (h // 2, w // 2)
    if u_arr.shape != chroma_shape or v_arr.shape != chroma_shape:
        raise InvalidInputError(
            f"Chroma planes must have shape {chroma_shape}, got U={u_arr.shape} V={v_arr.shape}"
        )

    vu = np.empty((h // 2, w), dtype=np.uint8)
    vu[:, 0::2] = v_arr
    vu[:, 1::2] = u_arr
    return np.concatenate([y_arr, vu], axis=0)
