from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pyanomcam.utils.optional_deps import require

_JSON_SUFFIXES = (".json",)
_YAML_SUFFIXES = (".yml", ".yaml")


def _read_document(path: Path, *, kind: str) -> Any:
    suffix = path.suffix.lower()
    if suffix in _YAML_SUFFIXES:
        yaml = require("yaml", extra="yaml", purpose=f"YAML {kind} files")
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_config(path: str | Path, *, kind: str = "detector config") -> dict[str, Any]:
    """Read a detector config or model metadata document into a dict.

    `.json` is always accepted; `.yml`/`.yaml` needs the `yaml` extra.
    An empty document reads as ``{}``. `kind` only names the document in
    error messages.
    """

    doc_path = Path(path)
    suffix = doc_path.suffix.lower()
    if suffix not in _JSON_SUFFIXES + _YAML_SUFFIXES:
        raise ValueError(
            f"Cannot read {kind} {str(doc_path)!r}: unsupported extension {suffix!r} "
            "(expected .json, .yml or .yaml)"
        )

    data = _read_document(doc_path, kind=kind)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"The {kind} {str(doc_path)!r} must hold a key/value object, got {type(data).__name__}"
        )
    return dict(data)
