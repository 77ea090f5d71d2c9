from __future__ import annotations

from .io import load_config
from .settings import DetectorConfig, load_detector_config

__all__ = ["DetectorConfig", "load_config", "load_detector_config"]
