from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict


def _plain(value: Any) -> Any:
    """Non-finite floats have no JSON spelling; they are recorded as null."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class JsonlLogger:
    """Structured run trace: one JSON object per line, no-op without a path.

    Usable as a context manager; the file is closed on exit even when the run
    raises.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else None
        self._fh = None
        self.records = 0
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self.path.open("w", encoding="utf-8")

    def __enter__(self) -> "JsonlLogger":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def enabled(self) -> bool:
        return self._fh is not None

    def log(self, event: str, t: float | None = None, **fields: Any) -> None:
        if not self._fh:
            return
        row: Dict[str, Any] = {key: _plain(value) for key, value in fields.items()}
        row["event"] = event
        if t is not None:
            row["t"] = _plain(t)
        self._fh.write(json.dumps(row, sort_keys=True, allow_nan=False) + "\n")
        self._fh.flush()
        self.records += 1

    def close(self) -> None:
        if self._fh:
            self._fh.close()
            self._fh = None
