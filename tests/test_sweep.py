from __future__ import annotations

from pathlib import Path

import pytest

from manetexp.report.summary import SUMMARY_FIELDS
from manetexp.runtime.config import ConfigError
from manetexp.sweep import DEFAULT_AXES, parse_axes, run_sweep


def test_default_axes_follow_three_axis_sweep() -> None:
    axes = parse_axes(None)
    assert axes == list(DEFAULT_AXES)
    assert [a.name for a in axes] == ["nodes", "speed", "packetRate"]
    assert axes[0].values == [20, 40, 70, 100]


def test_axis_param_must_be_sweep_key() -> None:
    with pytest.raises(ConfigError):
        parse_axes([{"param": "seed", "values": [1, 2]}])
    with pytest.raises(ConfigError):
        parse_axes([{"param": "n_wifis", "values": []}])


def _small_sweep(tmp_path: Path) -> tuple[dict, dict]:
    base = {
        "n_sinks": 3,
        "total_time": 10.0,
        "app_start": 5.0,
        "area": {"width": 100.0, "height": 100.0},
        "outputs": {"timeseries_csv": str(tmp_path / "ts.csv")},
    }
    sweep_cfg = {
        "protocols": ["AODV"],
        "prefix": str(tmp_path / "sweep_{protocol}"),
        "axes": [
            {"name": "nodes", "param": "n_wifis", "values": [4, 6], "fixed": {"node_speed": 5, "packet_per_sec": 2}},
        ],
    }
    return sweep_cfg, base


def test_sweep_appends_one_row_per_point(tmp_path: Path) -> None:
    sweep_cfg, base = _small_sweep(tmp_path)
    outputs = run_sweep(sweep_cfg, base)

    assert [o["n_wifis"] for o in outputs] == [4, 6]
    lines = (tmp_path / "sweep_aodv_nodes.csv").read_text(encoding="utf-8").splitlines()
    assert lines[0] == ",".join(SUMMARY_FIELDS)
    assert [line.split(",")[0] for line in lines[1:]] == ["4", "6"]


def test_rerunning_sweep_replaces_previous_rows(tmp_path: Path) -> None:
    sweep_cfg, base = _small_sweep(tmp_path)
    run_sweep(sweep_cfg, base)
    run_sweep(sweep_cfg, base)

    lines = (tmp_path / "sweep_aodv_nodes.csv").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert lines[0] == ",".join(SUMMARY_FIELDS)
    assert [line.split(",")[0] for line in lines[1:]] == ["4", "6"]


def test_invalid_point_fails_before_any_summary_is_touched(tmp_path: Path) -> None:
    sweep_cfg, base = _small_sweep(tmp_path)
    summary = tmp_path / "sweep_aodv_nodes.csv"
    summary.write_text("previous results\n", encoding="utf-8")
    sweep_cfg["axes"][0]["values"] = [4, 1]

    with pytest.raises(ConfigError, match="n_wifis must be >= 2"):
        run_sweep(sweep_cfg, base)
    assert summary.read_text(encoding="utf-8") == "previous results\n"
