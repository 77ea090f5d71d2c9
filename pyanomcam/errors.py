"""Error taxonomy for the detection pipeline.

Every failure on the detection path derives from `PyanomcamError` so the
detector boundary can turn it into a user-visible message without crashing
the host process.
"""

from __future__ import annotations


class PyanomcamError(RuntimeError):
    """Base class for pipeline errors."""


class InitializationError(PyanomcamError):
    """The model session (or a camera) could not be set up."""


class InvalidInputError(PyanomcamError, ValueError):
    """Frame dimensions, format or data are unusable."""


class InferenceError(PyanomcamError):
    """The runtime call failed or returned unexpected outputs."""


class RenderError(PyanomcamError):
    """The overlay could not be drawn (e.g. non-square anomaly map)."""


__all__ = [
    "PyanomcamError",
    "InitializationError",
    "InvalidInputError",
    "InferenceError",
    "RenderError",
]
