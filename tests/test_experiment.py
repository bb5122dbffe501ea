from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from manetexp.experiment import FLOW_CSV_FIELDS, RoutingExperiment, run_experiment
from manetexp.measure.sampler import TimeSeriesWriter
from manetexp.net.flowmon import FlowMonitor, FlowMonitorError
from manetexp.report.summary import SUMMARY_FIELDS
from manetexp.runtime.config import config_from_dict


def build_cfg(tmp_path: Path, **overrides) -> dict:
    cfg = {
        "protocol": "AODV",
        "n_wifis": 6,
        "n_sinks": 3,
        "node_speed": 0,
        "packet_per_sec": 4,
        "total_time": 20.0,
        "app_start": 5.0,
        "seed": 7,
        "area": {"width": 100.0, "height": 100.0},
        "outputs": {
            "timeseries_csv": str(tmp_path / "ts.csv"),
            "summary_csv": str(tmp_path / "summary.csv"),
        },
    }
    cfg.update(overrides)
    return cfg


def _rows(path: Path) -> list[dict]:
    with path.open("r", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def test_small_static_run_delivers_and_reports(tmp_path: Path) -> None:
    run = run_experiment(config_from_dict(build_cfg(tmp_path)))

    rows = _rows(tmp_path / "ts.csv")
    assert len(rows) == 20
    assert [float(r["SimulationSecond"]) for r in rows] == [float(t) for t in range(20)]
    assert all(r["RoutingProtocol"] == "AODV" for r in rows)
    assert all(r["NumberOfSinks"] == "3" for r in rows)
    # traffic starts between t=5 and t=6
    assert all(int(r["PacketsReceived"]) == 0 for r in rows[:6])
    assert sum(int(r["PacketsReceived"]) for r in rows) == run["packets_sampled"]
    assert run["packets_sampled"] <= run["packets_received"] <= run["packets_sent"]

    summary = (tmp_path / "summary.csv").read_text(encoding="utf-8").splitlines()
    assert summary[0] == ",".join(SUMMARY_FIELDS)
    assert len(summary) == 2
    assert summary[1].startswith("6,0,4,")

    assert run["packet_drop_ratio"] == 0.0
    assert run["packet_delivery_ratio"] > 0.95
    assert run["summary_header_written"] is True


def test_same_seed_gives_identical_time_series(tmp_path: Path) -> None:
    cfg = build_cfg(tmp_path, node_speed=20, area={"width": 300.0, "height": 600.0})
    run_experiment(config_from_dict(cfg))
    first = (tmp_path / "ts.csv").read_text(encoding="utf-8")
    run_experiment(config_from_dict(cfg))
    second = (tmp_path / "ts.csv").read_text(encoding="utf-8")
    assert first == second


def test_dsr_without_flow_monitor_writes_no_summary_row(tmp_path: Path) -> None:
    run = run_experiment(config_from_dict(build_cfg(tmp_path, protocol="DSR", flow_monitor=False)))

    assert "packet_delivery_ratio" not in run
    assert run["summary_csv"] is None
    assert run["packets_received"] > 0
    assert (tmp_path / "summary.csv").read_text(encoding="utf-8").splitlines() == [",".join(SUMMARY_FIELDS)]


def test_flow_monitor_failure_skips_reporting_only(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(self):
        raise FlowMonitorError("flow table unavailable")

    monkeypatch.setattr(FlowMonitor, "collect", _boom)
    experiment = RoutingExperiment(config_from_dict(build_cfg(tmp_path)))
    run = experiment.run()

    assert experiment.result is None
    assert "packet_delivery_ratio" not in run
    assert len(_rows(tmp_path / "ts.csv")) == 20
    assert len((tmp_path / "summary.csv").read_text(encoding="utf-8").splitlines()) == 1


def test_optional_outputs(tmp_path: Path) -> None:
    outputs = {
        "timeseries_csv": str(tmp_path / "ts.csv"),
        "summary_csv": str(tmp_path / "summary.csv"),
        "flow_csv": str(tmp_path / "flows.csv"),
        "events_jsonl": str(tmp_path / "events.jsonl"),
        "mobility_trace": str(tmp_path / "run.mob"),
        "result_json": str(tmp_path / "result.json"),
    }
    cfg = build_cfg(tmp_path, protocol="OLSR", trace_mobility=True, outputs=outputs)
    run_experiment(config_from_dict(cfg))

    flows = _rows(tmp_path / "flows.csv")
    assert len(flows) == 3
    assert list(flows[0].keys()) == list(FLOW_CSV_FIELDS)
    assert [int(f["FlowId"]) for f in flows] == [1, 2, 3]

    events = [json.loads(line) for line in (tmp_path / "events.jsonl").read_text(encoding="utf-8").splitlines()]
    assert [e["event"] for e in events].count("sample") == 20
    assert events[-1]["event"] == "summary"
    assert events[-1]["n_wifis"] == 6

    mob_lines = (tmp_path / "run.mob").read_text(encoding="utf-8").splitlines()
    assert len(mob_lines) == 6 * 20

    saved = json.loads((tmp_path / "result.json").read_text(encoding="utf-8"))
    assert saved["result"]["protocol"] == "OLSR"
    assert saved["config"]["n_wifis"] == 6
    assert saved["config"]["outputs"]["flow_csv"] == str(tmp_path / "flows.csv")


def test_sentinel_policy_rewrites_summary_per_run(tmp_path: Path) -> None:
    cfg = build_cfg(tmp_path, n_wifis=20, node_speed=20, n_sinks=10, header_policy="sentinel")
    run_experiment(config_from_dict(cfg))
    run_experiment(config_from_dict(cfg))

    lines = (tmp_path / "summary.csv").read_text(encoding="utf-8").splitlines()
    assert lines[0] == ",".join(SUMMARY_FIELDS)
    assert len(lines) == 2


def _strict_json(line: str) -> dict:
    def _reject(token: str) -> None:
        raise ValueError(f"non-standard JSON constant {token}")

    return json.loads(line, parse_constant=_reject)


def test_flow_table_is_closed_once_reported(tmp_path: Path) -> None:
    experiment = RoutingExperiment(config_from_dict(build_cfg(tmp_path)))
    experiment.run()

    assert experiment.result is not None
    with pytest.raises(FlowMonitorError):
        experiment.flow_monitor.collect()


def test_undefined_metrics_are_null_in_event_trace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(FlowMonitor, "collect", lambda self: [])
    outputs = {
        "timeseries_csv": str(tmp_path / "ts.csv"),
        "summary_csv": str(tmp_path / "summary.csv"),
        "events_jsonl": str(tmp_path / "events.jsonl"),
    }
    run = run_experiment(config_from_dict(build_cfg(tmp_path, outputs=outputs)))

    assert run["packet_delivery_ratio"] is None
    assert (tmp_path / "summary.csv").read_text(encoding="utf-8").splitlines()[1] == "6,0,4,nan,nan,nan,nan"
    lines = (tmp_path / "events.jsonl").read_text(encoding="utf-8").splitlines()
    summary = _strict_json(lines[-1])
    assert summary["event"] == "summary"
    assert summary["packet_delivery_ratio"] is None
    assert summary["throughput"] is None


def test_output_error_mid_run_still_finishes_trace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    original_append = TimeSeriesWriter.append

    def _disk_full(self, row):
        if row.simulation_second >= 3.0:
            raise OSError("No space left on device")
        original_append(self, row)

    monkeypatch.setattr(TimeSeriesWriter, "append", _disk_full)
    outputs = {
        "timeseries_csv": str(tmp_path / "ts.csv"),
        "summary_csv": str(tmp_path / "summary.csv"),
        "events_jsonl": str(tmp_path / "events.jsonl"),
    }
    experiment = RoutingExperiment(config_from_dict(build_cfg(tmp_path, outputs=outputs)))
    with pytest.raises(OSError):
        experiment.run()

    assert len(_rows(tmp_path / "ts.csv")) == 3
    events = [_strict_json(line) for line in (tmp_path / "events.jsonl").read_text(encoding="utf-8").splitlines()]
    assert [e["event"] for e in events] == ["sample", "sample", "sample", "summary"]
    assert events[-1]["t"] == 3.0
    assert experiment.scheduler.pending == 0
