"""Live camera processing: frame source, single-slot processor, UI dispatch."""

from __future__ import annotations

from .camera import OpenCvFrameSource
from .dispatch import QueueDispatcher
from .processor import LatestFrameProcessor

__all__ = ["LatestFrameProcessor", "OpenCvFrameSource", "QueueDispatcher"]
