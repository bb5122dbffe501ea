from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml


def ensure_parent(path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def load_yaml(path: str | Path) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping YAML: {path}")
    return data


def dump_json(path: str | Path, obj: Any) -> Path:
    """Write ``obj`` as strict JSON (NaN is rejected) and return the path."""
    p = ensure_parent(path)
    with p.open("w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2, sort_keys=True, allow_nan=False)
        f.write("\n")
    return p


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Nested mappings merge key by key; any other value in ``override`` wins.

    Nested mappings are copied, so the result never aliases ``base``.
    """
    merged = {k: dict(v) if isinstance(v, Mapping) else v for k, v in base.items()}
    for k, v in override.items():
        current = merged.get(k)
        if isinstance(current, Mapping) and isinstance(v, Mapping):
            merged[k] = deep_merge(current, v)
        else:
            merged[k] = v
    return merged


def fmt_number(value: float | int) -> str:
    """Render a number the way a default C++ ostream would (six significant digits)."""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    return f"{float(value):g}"
