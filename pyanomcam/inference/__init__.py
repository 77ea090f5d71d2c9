"""Model session wrapper.

The anomaly model itself is opaque: `InferenceInvoker` feeds it one
``(1, 3, H, W)`` tensor and reads back the positional outputs
(0 = anomaly map, 1 = image score).
"""

from __future__ import annotations

from .session import InferenceInvoker, InferenceOutput, ModelSession, load_onnx_session

__all__ = [
    "InferenceInvoker",
    "InferenceOutput",
    "ModelSession",
    "load_onnx_session",
]
