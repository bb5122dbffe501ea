from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

from manetexp.experiment import run_experiment
from manetexp.report.summary import SweepOutputManager
from manetexp.runtime.config import ConfigError, ExperimentConfig, config_from_dict, load_effective_config
from manetexp.utils.io import deep_merge, load_yaml

_log = logging.getLogger("manetexp.sweep")


@dataclass(frozen=True)
class SweepAxis:
    name: str
    param: str
    values: List[int]
    fixed: Dict[str, Any] = field(default_factory=dict)


DEFAULT_AXES = (
    SweepAxis("nodes", "n_wifis", [20, 40, 70, 100], {"node_speed": 20, "packet_per_sec": 4}),
    SweepAxis("speed", "node_speed", [5, 10, 15, 20], {"n_wifis": 50, "packet_per_sec": 4}),
    SweepAxis("packetRate", "packet_per_sec", [100, 200, 300, 400], {"n_wifis": 50, "node_speed": 20}),
)

SWEEP_PARAMS = ("n_wifis", "node_speed", "packet_per_sec")


def parse_axes(raw: Any) -> List[SweepAxis]:
    if not raw:
        return list(DEFAULT_AXES)
    axes: List[SweepAxis] = []
    for item in raw:
        param = str(item["param"])
        if param not in SWEEP_PARAMS:
            raise ConfigError(f"sweep axis param must be one of {list(SWEEP_PARAMS)}, got {param}")
        try:
            values = [int(v) for v in item.get("values", [])]
        except (TypeError, ValueError):
            raise ConfigError(f"sweep axis {param} values must be integers") from None
        if not values:
            raise ConfigError(f"sweep axis {param} has no values")
        axes.append(
            SweepAxis(
                name=str(item.get("name", param)),
                param=param,
                values=values,
                fixed=dict(item.get("fixed", {})),
            )
        )
    return axes


def summary_path(prefix: str, axis: SweepAxis) -> str:
    return f"{prefix}_{axis.name}.csv"


def run_sweep(
    sweep_cfg: Mapping[str, Any],
    base_cfg: Mapping[str, Any] | None = None,
) -> List[Dict[str, Any]]:
    """Run every point of every axis.

    Every point is validated before anything runs. Each (protocol, axis)
    summary file is then reset once before its first point, so re-running a
    sweep replaces the previous results instead of appending to them.
    """
    base = dict(base_cfg or {})
    base = deep_merge(base, dict(sweep_cfg.get("base", {}) or {}))
    protocols = [str(p) for p in sweep_cfg.get("protocols", [base.get("protocol", "AODV")])]
    prefix_tpl = str(sweep_cfg.get("prefix", "results/{protocol}"))
    axes = parse_axes(sweep_cfg.get("axes"))
    try:
        repeats = int(sweep_cfg.get("repeats", 1))
        base_seed = int(base.get("seed", 1))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid sweep: repeats and seed must be integers ({exc})") from None

    plan: List[Tuple[str, SweepAxis, int, ExperimentConfig]] = []
    for protocol in protocols:
        prefix = prefix_tpl.format(protocol=protocol.lower())
        for axis in axes:
            for value in axis.values:
                for rep in range(repeats):
                    cfg = deep_merge(base, dict(axis.fixed))
                    cfg["protocol"] = protocol
                    cfg[axis.param] = value
                    cfg["seed"] = base_seed + rep
                    cfg["outputs"] = deep_merge(
                        dict(cfg.get("outputs", {}) or {}),
                        {"summary_csv": summary_path(prefix, axis)},
                    )
                    plan.append((summary_path(prefix, axis), axis, rep, config_from_dict(cfg)))

    outputs: List[Dict[str, Any]] = []
    started: set[str] = set()
    for path, axis, rep, experiment_cfg in plan:
        if path not in started:
            SweepOutputManager(path).reset()
            started.add(path)
        _log.info(
            "Running simulation with %d nodes, %d m/s speed, %d packets/s (%s, repeat %d)",
            experiment_cfg.n_wifis,
            experiment_cfg.node_speed,
            experiment_cfg.packet_per_sec,
            experiment_cfg.protocol,
            rep,
        )
        result = run_experiment(experiment_cfg)
        result["axis"] = axis.name
        result["repeat"] = rep
        outputs.append(result)
    return outputs


def run_sweep_file(config_path: str | Path) -> List[Dict[str, Any]]:
    sweep_cfg = load_yaml(config_path)
    base_cfg = load_effective_config(config_path)
    for key in ("axes", "protocols", "prefix", "repeats", "base"):
        base_cfg.pop(key, None)
    return run_sweep(sweep_cfg, base_cfg)
