from __future__ import annotations

import json
from pathlib import Path

import pytest

from manetexp.cli.main import EXIT_CONFIG_ERROR, build_parser, main, overrides_from_args


def _paths(tmp_path: Path) -> list[str]:
    return [
        "--timeseries-csv",
        str(tmp_path / "ts.csv"),
        "--summary-csv",
        str(tmp_path / "summary.csv"),
    ]


def test_unknown_protocol_exits_before_any_output(tmp_path: Path) -> None:
    code = main(["--log-level", "ERROR", "run", "--protocol", "BATMAN", *_paths(tmp_path)])
    assert code == EXIT_CONFIG_ERROR
    assert not (tmp_path / "ts.csv").exists()
    assert not (tmp_path / "summary.csv").exists()


def test_dsr_with_flow_monitor_exits(tmp_path: Path) -> None:
    code = main(["--log-level", "ERROR", "run", "--protocol", "DSR", "--flowMonitor=1", *_paths(tmp_path)])
    assert code == EXIT_CONFIG_ERROR
    assert not (tmp_path / "ts.csv").exists()


def test_camel_case_aliases_map_to_config_keys(tmp_path: Path) -> None:
    args = build_parser().parse_args(
        [
            "run",
            "--nWifis=20",
            "--nodeSpeed=20",
            "--packetsPerSecond=4",
            "--CSVfileName",
            str(tmp_path / "nodes.csv"),
            "--traceMobility=0",
        ]
    )
    overrides = overrides_from_args(args)
    assert overrides["n_wifis"] == 20
    assert overrides["node_speed"] == 20
    assert overrides["packet_per_sec"] == 4
    assert overrides["trace_mobility"] is False
    assert overrides["outputs"] == {"summary_csv": str(tmp_path / "nodes.csv")}


def test_run_prints_json_result(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cfg_path = tmp_path / "small.yaml"
    cfg_path.write_text(
        """
protocol: OLSR
n_wifis: 6
n_sinks: 3
node_speed: 0
packet_per_sec: 4
total_time: 12.0
app_start: 5.0
area:
  width: 100
  height: 100
""".strip(),
        encoding="utf-8",
    )
    code = main(["--log-level", "WARNING", "run", "--config", str(cfg_path), *_paths(tmp_path)])
    assert code == 0

    result = json.loads(capsys.readouterr().out)
    assert result["protocol"] == "OLSR"
    assert result["samples"] == 12
    assert (tmp_path / "summary.csv").exists()


def test_validate_reports_errors(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["validate", "--protocol", "BATMAN"]) == EXIT_CONFIG_ERROR
    out = json.loads(capsys.readouterr().out)
    assert out["ok"] is False

    assert main(["validate", "--protocol", "OLSR"]) == 0


def test_plot_timeseries_subcommand(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    ts = tmp_path / "ts.csv"
    ts.write_text(
        "SimulationSecond,ReceiveRate,PacketsReceived,NumberOfSinks,RoutingProtocol,TransmissionPower\n"
        "0,0,0,10,AODV,7.5\n"
        "1,1.536,3,10,AODV,7.5\n"
        "2,3.072,6,10,AODV,7.5\n",
        encoding="utf-8",
    )
    out_png = tmp_path / "ts.png"
    assert main(["plot", "--timeseries", str(ts), "--out", str(out_png)]) == 0
    assert json.loads(capsys.readouterr().out)["out"] == str(out_png)
    assert out_png.stat().st_size > 0


def test_non_numeric_yaml_value_is_config_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cfg_path = tmp_path / "bad.yaml"
    cfg_path.write_text("n_wifis: many\n", encoding="utf-8")

    assert main(["validate", "--config", str(cfg_path)]) == EXIT_CONFIG_ERROR
    out = json.loads(capsys.readouterr().out)
    assert out["ok"] is False
    assert any("n_wifis must be a number" in e for e in out["errors"])

    code = main(["--log-level", "ERROR", "run", "--config", str(cfg_path), *_paths(tmp_path)])
    assert code == EXIT_CONFIG_ERROR
    assert not (tmp_path / "ts.csv").exists()
