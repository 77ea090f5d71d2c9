"""pyanomcam - camera anomaly detection with heatmap overlays.

Frames are converted into planar float tensors, scored by an exported ONNX
anomaly model, normalized with the model's calibration stats and rendered as
a heatmap over the original frame.

Keep top-level imports lightweight: exports are loaded on demand so that
`import pyanomcam` works without OpenCV or onnxruntime being imported.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    # Modules
    "calibration",
    "config",
    "inference",
    "inputs",
    "postprocess",
    "preprocessing",
    "stream",
    "visualization",
    # Pipeline
    "AnomalyDetector",
    "CalibrationStats",
    "DetectionResult",
    "DetectorConfig",
    "Frame",
    "ImageFormat",
    "LatestFrameProcessor",
    # Errors
    "PyanomcamError",
    "InitializationError",
    "InvalidInputError",
    "InferenceError",
    "RenderError",
]


_LAZY_SUBMODULES = {
    "calibration",
    "config",
    "inference",
    "inputs",
    "postprocess",
    "preprocessing",
    "stream",
    "visualization",
}

_LAZY_EXPORTS = {
    "AnomalyDetector": ("detector", "AnomalyDetector"),
    "CalibrationStats": ("calibration.stats", "CalibrationStats"),
    "DetectionResult": ("result", "DetectionResult"),
    "DetectorConfig": ("config.settings", "DetectorConfig"),
    "Frame": ("inputs.frame", "Frame"),
    "ImageFormat": ("inputs.image_format", "ImageFormat"),
    "LatestFrameProcessor": ("stream.processor", "LatestFrameProcessor"),
    "PyanomcamError": ("errors", "PyanomcamError"),
    "InitializationError": ("errors", "InitializationError"),
    "InvalidInputError": ("errors", "InvalidInputError"),
    "InferenceError": ("errors", "InferenceError"),
    "RenderError": ("errors", "RenderError"),
}


def __getattr__(name: str) -> Any:  # pragma: no cover - thin delegation
    if name in _LAZY_SUBMODULES:
        module = import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module

    target = _LAZY_EXPORTS.get(name)
    if target is not None:
        module_name, attr = target
        module = import_module(f"{__name__}.{module_name}")
        value = getattr(module, attr)
        globals()[name] = value
        return value

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:  # pragma: no cover - tooling convenience
    return sorted(set(globals()) | set(__all__))
