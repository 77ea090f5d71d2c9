from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from pyanomcam.config.io import load_config

_INTERPOLATIONS = ("bilinear", "nearest")


def _require_mapping(value: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{name} must be a dict/object, got {type(value).__name__}")
    return value


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_size(value: Any, *, default: tuple[int, int]) -> tuple[int, int]:
    if value is None:
        return (int(default[0]), int(default[1]))

    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"input_size must be a list/tuple of length 2, got {value!r}")
    try:
        h = int(value[0])
        w = int(value[1])
    except Exception as exc:  # noqa: BLE001 - validation boundary
        raise ValueError(f"input_size must contain ints, got {value!r}") from exc
    if h <= 0 or w <= 0:
        raise ValueError(f"input_size must be positive, got {(h, w)}")
    return (h, w)


def _float_in_range(value: Any, *, name: str, low: float, high: float) -> float:
    try:
        out = float(value)
    except Exception as exc:  # noqa: BLE001 - validation boundary
        raise ValueError(f"{name} must be a float, got {value!r}") from exc
    if not (low <= out <= high):
        raise ValueError(f"{name} must be in [{low}, {high}], got {out}")
    return out


def _int_in_range(value: Any, *, name: str, low: int, high: int) -> int:
    try:
        out = int(value)
    except Exception as exc:  # noqa: BLE001 - validation boundary
        raise ValueError(f"{name} must be an int, got {value!r}") from exc
    if not (low <= out <= high):
        raise ValueError(f"{name} must be in [{low}, {high}], got {out}")
    return out


@dataclass(frozen=True)
class DetectorConfig:
    """Runtime settings for `AnomalyDetector`.

    `input_size` is only used when the model declares symbolic spatial
    dimensions; a concrete `(1, 3, H, W)` input always wins.
    """

    model_path: str
    metadata_path: str | None = None
    providers: tuple[str, ...] = ("CPUExecutionProvider",)
    input_size: tuple[int, int] = (224, 224)
    interpolation: str = "bilinear"
    heatmap_max_alpha: float = 0.5
    jpeg_quality: int = 75
    preview_target_size: int = 224

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DetectorConfig":
        top = _require_mapping(raw, name="config")

        model_path = _optional_str(top.get("model_path", None))
        if model_path is None:
            raise ValueError("model_path is required")

        providers_raw = top.get("providers", None)
        if providers_raw is None:
            providers: tuple[str, ...] = ("CPUExecutionProvider",)
        elif isinstance(providers_raw, str):
            providers = (providers_raw,)
        elif isinstance(providers_raw, (list, tuple)) and providers_raw:
            providers = tuple(str(p) for p in providers_raw)
        else:
            raise ValueError(f"providers must be a string or non-empty list, got {providers_raw!r}")

        interpolation = str(top.get("interpolation", "bilinear")).strip().lower()
        if interpolation not in _INTERPOLATIONS:
            raise ValueError(f"interpolation must be one of: {'|'.join(_INTERPOLATIONS)}")

        return cls(
            model_path=model_path,
            metadata_path=_optional_str(top.get("metadata_path", None)),
            providers=providers,
            input_size=_parse_size(top.get("input_size", None), default=(224, 224)),
            interpolation=interpolation,
            heatmap_max_alpha=_float_in_range(
                top.get("heatmap_max_alpha", 0.5), name="heatmap_max_alpha", low=0.0, high=1.0
            ),
            jpeg_quality=_int_in_range(top.get("jpeg_quality", 75), name="jpeg_quality", low=1, high=100),
            preview_target_size=_int_in_range(
                top.get("preview_target_size", 224), name="preview_target_size", low=1, high=16384
            ),
        )


def load_detector_config(path: str | Path) -> DetectorConfig:
    """Load a `DetectorConfig` from JSON/YAML.

    Relative `model_path`/`metadata_path` entries are resolved against the
    config file's directory.
    """

    cfg_path = Path(path)
    payload = load_config(cfg_path, kind="detector config")
    base = cfg_path.parent
    for key in ("model_path", "metadata_path"):
        value = payload.get(key, None)
        if value is None:
            continue
        p = Path(str(value))
        if not p.is_absolute():
            payload[key] = str(base / p)
    return DetectorConfig.from_dict(payload)
