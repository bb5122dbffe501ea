from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import FrozenSet, Iterable

from manetexp.core.types import AggregateResult, SweepKey
from manetexp.utils.io import ensure_parent, fmt_number

SUMMARY_FIELDS = (
    "nWifis",
    "nodeSpeed",
    "packet_per_sec",
    "packet_delivery_ratio",
    "packet_drop_ratio",
    "avg_delay",
    "throughput",
)

# First point of each axis of the default three-axis sweep
# (nodes at 20 m/s and 4 pps, speed at 50 nodes and 4 pps, rate at 50 nodes and 20 m/s).
SENTINEL_KEYS: FrozenSet[SweepKey] = frozenset({(20, 20, 4), (50, 5, 4), (50, 20, 100)})

HEADER_POLICIES = ("ensure", "sentinel")


class SweepOutputManager:
    """Owns one summary CSV shared by every run of a parameter sweep.

    Header policies:
    - ``ensure``: write the header only when the file is missing or empty.
    - ``sentinel``: truncate and rewrite the header whenever the run's
      (nWifis, nodeSpeed, packet_per_sec) key is one of ``sentinel_keys``;
      any other key appends to whatever is already there. Re-running a
      sentinel key wipes earlier rows.
    """

    def __init__(
        self,
        path: str | Path,
        policy: str = "ensure",
        sentinel_keys: Iterable[SweepKey] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if policy not in HEADER_POLICIES:
            raise ValueError(f"Unknown header policy: {policy}. Available: {list(HEADER_POLICIES)}")
        self.path = Path(path)
        self.policy = policy
        self.sentinel_keys = frozenset(
            tuple(int(v) for v in key) for key in (sentinel_keys or SENTINEL_KEYS)
        )
        self._log = logger or logging.getLogger("manetexp.summary")

    def is_sentinel(self, key: SweepKey) -> bool:
        return tuple(int(v) for v in key) in self.sentinel_keys

    def prepare(self, key: SweepKey) -> bool:
        """Apply the header policy for a run; returns True when a header was written."""
        if self.policy == "sentinel":
            if not self.is_sentinel(key):
                return False
            self._log.info("sweep key %s starts a new summary in %s", key, self.path)
            self._write_header("w")
            return True
        return self.ensure_header()

    def reset(self) -> None:
        """Start a fresh summary: truncate the file and write the header."""
        self._log.info("starting new summary in %s", self.path)
        self._write_header("w")

    def ensure_header(self) -> bool:
        if self.path.exists() and self.path.stat().st_size > 0:
            return False
        self._write_header("w")
        return True

    def _write_header(self, mode: str) -> None:
        ensure_parent(self.path)
        with self.path.open(mode, encoding="utf-8", newline="") as f:
            csv.writer(f, lineterminator="\n").writerow(SUMMARY_FIELDS)

    def append_result(self, result: AggregateResult) -> None:
        ensure_parent(self.path)
        with self.path.open("a", encoding="utf-8", newline="") as f:
            csv.writer(f, lineterminator="\n").writerow(
                [
                    result.n_wifis,
                    result.node_speed,
                    result.packet_per_sec,
                    fmt_number(result.packet_delivery_ratio),
                    fmt_number(result.packet_drop_ratio),
                    fmt_number(result.avg_delay),
                    fmt_number(result.throughput),
                ]
            )
        self._log.info("appended %s to %s", result.sweep_key, self.path)
