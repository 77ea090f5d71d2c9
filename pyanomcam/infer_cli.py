from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image

from pyanomcam.cli_common import (
    add_detector_arguments,
    build_detector_config,
    configure_logging,
    create_detector,
)
from pyanomcam.utils.jsonable import to_jsonable
from pyanomcam.visualization.heatmap import save_overlay_image

_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pyanomcam-infer")
    add_detector_arguments(parser)
    parser.add_argument(
        "--input",
        action="append",
        required=True,
        help="Input image path or directory (repeatable). Directories are scanned recursively.",
    )
    parser.add_argument(
        "--rotation",
        type=int,
        default=0,
        choices=[0, 90, 180, 270],
        help="Clockwise rotation applied to every input before detection",
    )
    parser.add_argument("--save-jsonl", default=None, help="Optional JSONL output path")
    parser.add_argument(
        "--save-overlays",
        default=None,
        help="Optional directory to save heatmap overlays as .png",
    )
    parser.add_argument(
        "--include-map-values",
        action="store_true",
        help="Include the normalized anomaly map values in each JSON record",
    )
    return parser


def _collect_image_paths(raw: str | Path) -> list[str]:
    path = Path(raw)
    if not path.exists():
        raise FileNotFoundError(f"Input not found: {path}")

    if path.is_file():
        if path.suffix.lower() not in _IMAGE_SUFFIXES:
            raise ValueError(f"Unsupported image type: {path}")
        return [str(path)]

    out: list[str] = []
    for p in sorted(path.rglob("*")):
        if p.is_file() and p.suffix.lower() in _IMAGE_SUFFIXES:
            out.append(str(p))
    return out


def _load_rgb(path: str | Path) -> np.ndarray:
    with Image.open(str(path)) as im:
        arr = np.asarray(im.convert("RGB"), dtype=np.uint8)
    return np.ascontiguousarray(arr)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = build_detector_config(args)

        inputs: list[str] = []
        for raw in args.input:
            inputs.extend(_collect_image_paths(raw))
        if not inputs:
            raise ValueError("No input images found.")

        detector = create_detector(config)

        overlay_dir = Path(args.save_overlays) if args.save_overlays is not None else None
        records: list[dict[str, Any]] = []
        for i, input_path in enumerate(inputs):
            image = _load_rgb(input_path)
            result = detector.detect_or_raise(image, int(args.rotation))

            record = result.to_jsonable(include_map_values=bool(args.include_map_values))
            record["index"] = int(i)
            record["input"] = str(input_path)
            if overlay_dir is not None:
                out_path = overlay_dir / f"{i:06d}_{Path(input_path).stem}.png"
                save_overlay_image(result, out_path, max_alpha=config.heatmap_max_alpha)
                record["overlay_path"] = out_path
            result.release()
            records.append(to_jsonable(record))

        if args.save_jsonl is not None:
            out_path = Path(args.save_jsonl)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            with out_path.open("w", encoding="utf-8") as f:
                for record in records:
                    f.write(json.dumps(record, sort_keys=True))
                    f.write("\n")
        else:
            for record in records:
                print(json.dumps(record, sort_keys=True))

        return 0
    except Exception as exc:  # noqa: BLE001 - CLI boundary
        print(f"error: {exc}", file=sys.stderr)
        model = getattr(args, "model", None)
        if model:
            print(f"context: model={model!r}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
