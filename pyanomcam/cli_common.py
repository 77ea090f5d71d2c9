from __future__ import annotations

import argparse
import logging
from typing import Optional

from pyanomcam.config.settings import DetectorConfig, load_detector_config
from pyanomcam.detector import AnomalyDetector, DetectorListener

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def add_detector_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--model", default=None, help="Path to the exported ONNX model")
    parser.add_argument(
        "--metadata",
        default=None,
        help="Path to metadata.json with calibration stats (defaults are used when omitted)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="JSON/YAML detector config; --model/--metadata/--provider override its values",
    )
    parser.add_argument(
        "--provider",
        action="append",
        default=None,
        help="onnxruntime execution provider (repeatable), e.g. CUDAExecutionProvider",
    )
    parser.add_argument(
        "--heatmap-alpha",
        type=float,
        default=None,
        help="Maximum heatmap opacity in [0,1] (default 0.5)",
    )
    parser.add_argument("--log-level", default="WARNING", choices=_LOG_LEVELS)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_detector_config(args: argparse.Namespace) -> DetectorConfig:
    """Merge `--config` with explicit CLI flags (flags win)."""

    if args.config is not None:
        base = load_detector_config(args.config)
        payload = {
            "model_path": base.model_path,
            "metadata_path": base.metadata_path,
            "providers": list(base.providers),
            "input_size": list(base.input_size),
            "interpolation": base.interpolation,
            "heatmap_max_alpha": base.heatmap_max_alpha,
            "jpeg_quality": base.jpeg_quality,
            "preview_target_size": base.preview_target_size,
        }
    else:
        if args.model is None:
            raise ValueError("--model is required when --config is not provided")
        payload = {}

    if args.model is not None:
        payload["model_path"] = str(args.model)
    if args.metadata is not None:
        payload["metadata_path"] = str(args.metadata)
    if args.provider:
        payload["providers"] = [str(p) for p in args.provider]
    if args.heatmap_alpha is not None:
        payload["heatmap_max_alpha"] = float(args.heatmap_alpha)

    return DetectorConfig.from_dict(payload)


def create_detector(
    config: DetectorConfig,
    listener: Optional[DetectorListener] = None,
) -> AnomalyDetector:
    return AnomalyDetector(config, listener)
