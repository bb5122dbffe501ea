from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from manetexp.net.protocols import available_protocols, protocol_supports_flow_monitor
from manetexp.report.summary import HEADER_POLICIES
from manetexp.utils.io import deep_merge, load_yaml


class ConfigError(ValueError):
    """Invalid experiment configuration; raised before any simulation work."""


@dataclass(frozen=True)
class AreaConfig:
    width: float = 300.0
    height: float = 1500.0


@dataclass(frozen=True)
class OutputConfig:
    timeseries_csv: str = "results/manet-routing.output.csv"
    summary_csv: str = "results/manet-routing.summary.csv"
    flow_csv: str = ""
    mobility_trace: str = "results/manet-routing-compare.mob"
    events_jsonl: str = ""
    result_json: str = ""


@dataclass(frozen=True)
class ExperimentConfig:
    protocol: str = "AODV"
    n_wifis: int = 50
    node_speed: int = 5
    node_pause: float = 0.0
    packet_per_sec: int = 100
    packet_size: int = 64
    total_time: float = 200.0
    app_start: float = 100.0
    app_start_jitter: float = 1.0
    n_sinks: int = 10
    port: int = 9
    tx_power_dbm: float = 7.5
    rx_threshold_dbm: float = -80.0
    frequency_hz: float = 2.412e9
    seed: int = 1
    trace_mobility: bool = False
    flow_monitor: bool = True
    header_policy: str = "ensure"
    area: AreaConfig = field(default_factory=AreaConfig)
    outputs: OutputConfig = field(default_factory=OutputConfig)

    @property
    def data_rate_bps(self) -> int:
        return self.packet_per_sec * self.packet_size * 8

    @property
    def sweep_key(self) -> tuple[int, int, int]:
        return (self.n_wifis, self.node_speed, self.packet_per_sec)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_INT_KEYS = ("n_wifis", "node_speed", "packet_per_sec", "packet_size", "n_sinks", "port", "seed")
_FLOAT_KEYS = (
    "node_pause",
    "total_time",
    "app_start",
    "app_start_jitter",
    "tx_power_dbm",
    "rx_threshold_dbm",
    "frequency_hz",
)


def _number(cfg: Mapping[str, Any], key: str, default: Any, cast: Callable[[Any], Any], errors: list[str]) -> Any:
    """Coerce ``cfg[key]``; a bad value is reported in ``errors`` and yields None."""
    value = cfg.get(key, default)
    try:
        return cast(value)
    except (TypeError, ValueError):
        errors.append(f"{key} must be a number, got {value!r}")
        return None


def validate_config(cfg: Mapping[str, Any]) -> list[str]:
    errors: list[str] = []

    protocol = str(cfg.get("protocol", "AODV"))
    if protocol not in available_protocols():
        errors.append(f"No such protocol: {protocol}. Available: {available_protocols()}")
    elif bool(cfg.get("flow_monitor", True)) and not protocol_supports_flow_monitor(protocol):
        errors.append(f"FlowMonitor does not work with {protocol}")

    defaults = ExperimentConfig()
    num = {key: _number(cfg, key, getattr(defaults, key), int, errors) for key in _INT_KEYS}
    num.update({key: _number(cfg, key, getattr(defaults, key), float, errors) for key in _FLOAT_KEYS})

    for key in ("packet_per_sec", "packet_size"):
        if num[key] is not None and num[key] <= 0:
            errors.append(f"{key} must be > 0")
    if num["n_wifis"] is not None and num["n_wifis"] < 2:
        errors.append("n_wifis must be >= 2")
    for key in ("node_speed", "node_pause", "app_start_jitter"):
        if num[key] is not None and num[key] < 0:
            errors.append(f"{key} must be >= 0")
    n_sinks, n_wifis = num["n_sinks"], num["n_wifis"]
    if n_sinks is not None:
        if n_sinks <= 0:
            errors.append("n_sinks must be > 0")
        elif n_wifis is not None and n_sinks % max(1, n_wifis) == 0:
            errors.append("n_sinks must not be a multiple of n_wifis (a source would send to itself)")

    total_time = num["total_time"]
    if total_time is not None:
        if total_time <= 0:
            errors.append("total_time must be > 0")
        if num["app_start"] is not None and num["app_start"] >= total_time:
            errors.append("app_start must be before total_time")

    policy = str(cfg.get("header_policy", "ensure"))
    if policy not in HEADER_POLICIES:
        errors.append(f"header_policy must be one of {list(HEADER_POLICIES)}")

    area = cfg.get("area", {})
    if not isinstance(area, Mapping):
        errors.append("'area' must be a mapping")
    else:
        width = _number(area, "width", defaults.area.width, float, errors)
        height = _number(area, "height", defaults.area.height, float, errors)
        if (width is not None and width <= 0) or (height is not None and height <= 0):
            errors.append("area.width and area.height must be > 0")

    outputs = cfg.get("outputs", {})
    if not isinstance(outputs, Mapping):
        errors.append("'outputs' must be a mapping")

    return errors


def config_from_dict(cfg: Mapping[str, Any]) -> ExperimentConfig:
    errors = validate_config(cfg)
    if errors:
        raise ConfigError("Invalid config: " + "; ".join(errors))

    area_raw = dict(cfg.get("area", {}) or {})
    out_raw = dict(cfg.get("outputs", {}) or {})
    default_out = OutputConfig()
    return ExperimentConfig(
        protocol=str(cfg.get("protocol", "AODV")),
        n_wifis=int(cfg.get("n_wifis", 50)),
        node_speed=int(cfg.get("node_speed", 5)),
        node_pause=float(cfg.get("node_pause", 0.0)),
        packet_per_sec=int(cfg.get("packet_per_sec", 100)),
        packet_size=int(cfg.get("packet_size", 64)),
        total_time=float(cfg.get("total_time", 200.0)),
        app_start=float(cfg.get("app_start", 100.0)),
        app_start_jitter=float(cfg.get("app_start_jitter", 1.0)),
        n_sinks=int(cfg.get("n_sinks", 10)),
        port=int(cfg.get("port", 9)),
        tx_power_dbm=float(cfg.get("tx_power_dbm", 7.5)),
        rx_threshold_dbm=float(cfg.get("rx_threshold_dbm", -80.0)),
        frequency_hz=float(cfg.get("frequency_hz", 2.412e9)),
        seed=int(cfg.get("seed", 1)),
        trace_mobility=bool(cfg.get("trace_mobility", False)),
        flow_monitor=bool(cfg.get("flow_monitor", True)),
        header_policy=str(cfg.get("header_policy", "ensure")),
        area=AreaConfig(
            width=float(area_raw.get("width", 300.0)),
            height=float(area_raw.get("height", 1500.0)),
        ),
        outputs=OutputConfig(
            timeseries_csv=str(out_raw.get("timeseries_csv", default_out.timeseries_csv)),
            summary_csv=str(out_raw.get("summary_csv", default_out.summary_csv)),
            flow_csv=str(out_raw.get("flow_csv", "") or ""),
            mobility_trace=str(out_raw.get("mobility_trace", default_out.mobility_trace)),
            events_jsonl=str(out_raw.get("events_jsonl", "") or ""),
            result_json=str(out_raw.get("result_json", "") or ""),
        ),
    )


def find_defaults(config_path: str | Path | None = None) -> Path | None:
    candidates = []
    if config_path is not None:
        cfg_path = Path(config_path).resolve()
        parts = cfg_path.parts
        if "configs" in parts:
            idx = parts.index("configs")
            root = Path(*parts[:idx]) if idx > 0 else Path("/")
            candidates.append(root / "configs" / "defaults.yaml")
        candidates.append(cfg_path.parent / "defaults.yaml")
    candidates.append(Path.cwd() / "configs" / "defaults.yaml")
    for path in candidates:
        if path.exists():
            return path
    return None


def load_effective_config(
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Dict[str, Any]:
    cfg: Dict[str, Any] = {}
    defaults_path = find_defaults(config_path)
    if defaults_path is not None:
        cfg = load_yaml(defaults_path)
    if config_path is not None and (defaults_path is None or Path(config_path).resolve() != defaults_path.resolve()):
        cfg = deep_merge(cfg, load_yaml(config_path))
    if overrides:
        cfg = deep_merge(cfg, dict(overrides))
    return cfg


def load_experiment_config(
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ExperimentConfig:
    return config_from_dict(load_effective_config(config_path, overrides))
