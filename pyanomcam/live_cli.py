from __future__ import annotations

import argparse
import logging
import sys

import cv2
import numpy as np

from pyanomcam.cli_common import (
    add_detector_arguments,
    build_detector_config,
    configure_logging,
    create_detector,
)
from pyanomcam.result import DetectionResult
from pyanomcam.stream.camera import OpenCvFrameSource
from pyanomcam.stream.dispatch import QueueDispatcher
from pyanomcam.stream.processor import LatestFrameProcessor

logger = logging.getLogger(__name__)

_WINDOW = "pyanomcam"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pyanomcam-live")
    add_detector_arguments(parser)
    parser.add_argument("--camera", type=int, default=0, help="Camera index for cv2.VideoCapture")
    parser.add_argument("--width", type=int, default=None, help="Requested capture width")
    parser.add_argument("--height", type=int, default=None, help="Requested capture height")
    parser.add_argument(
        "--rotation",
        type=int,
        default=0,
        choices=[0, 90, 180, 270],
        help="Clockwise rotation of the sensor relative to the display",
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        default=0,
        help="Stop after this many captured frames (0 = until 'q' or camera end)",
    )
    parser.add_argument(
        "--no-preview-downscale",
        action="store_true",
        help="Feed full-resolution frames instead of the JPEG-downscaled preview",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = build_detector_config(args)
        detector = create_detector(config)
        dispatcher = QueueDispatcher()

        def show(overlay: np.ndarray, result: DetectionResult) -> None:
            cv2.imshow(_WINDOW, cv2.cvtColor(overlay, cv2.COLOR_RGB2BGR))

        def report(message: str) -> None:
            print(message, file=sys.stderr)

        processor = LatestFrameProcessor(
            detector,
            on_overlay=show,
            on_error=report,
            dispatch=dispatcher,
            preview_downscale=not bool(args.no_preview_downscale),
        )

        with OpenCvFrameSource(
            args.camera,
            width=args.width,
            height=args.height,
            rotation_degrees=args.rotation,
        ) as source, processor:
            for frame in source.frames(max_frames=int(args.max_frames)):
                processor.submit(frame)
                dispatcher.drain()
                if (cv2.waitKey(1) & 0xFF) == ord("q"):
                    break
            dispatcher.drain()

        print(
            f"frames processed={processor.processed_frames} dropped={processor.dropped_frames}",
            file=sys.stderr,
        )
        return 0
    except Exception as exc:  # noqa: BLE001 - CLI boundary
        print(f"error: {exc}", file=sys.stderr)
        return 2
    finally:
        try:
            cv2.destroyAllWindows()
        except cv2.error as exc:
            logger.debug("No window to destroy: %s", exc)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
