from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from manetexp.net.protocols import available_protocols
from manetexp.runtime.config import ConfigError, load_effective_config, load_experiment_config, validate_config

EXIT_CONFIG_ERROR = 2


def _bool_arg(value: str) -> bool:
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"expected a boolean, got {value!r}")


def _add_run_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", default=None, help="Experiment YAML, merged over configs/defaults.yaml.")
    p.add_argument(
        "--protocol",
        default=None,
        help=f"Routing protocol ({', '.join(available_protocols())}).",
    )
    p.add_argument("--n-wifis", "--nWifis", dest="n_wifis", type=int, default=None, help="Number of wifi nodes.")
    p.add_argument("--node-speed", "--nodeSpeed", dest="node_speed", type=int, default=None, help="Speed of nodes (m/s).")
    p.add_argument(
        "--packets-per-second",
        "--packetsPerSecond",
        dest="packet_per_sec",
        type=int,
        default=None,
        help="Packets per second per source.",
    )
    p.add_argument(
        "--summary-csv",
        "--CSVfileName",
        dest="summary_csv",
        default=None,
        help="Sweep summary CSV the run appends to.",
    )
    p.add_argument("--timeseries-csv", dest="timeseries_csv", default=None, help="Per-second throughput CSV.")
    p.add_argument("--flow-csv", dest="flow_csv", default=None, help="Optional per-flow statistics CSV.")
    p.add_argument("--events-jsonl", dest="events_jsonl", default=None, help="Optional JSONL event trace.")
    p.add_argument("--result-json", dest="result_json", default=None, help="Write the run result and effective config as JSON.")
    p.add_argument(
        "--trace-mobility",
        "--traceMobility",
        dest="trace_mobility",
        type=_bool_arg,
        nargs="?",
        const=True,
        default=None,
        help="Enable mobility tracing.",
    )
    p.add_argument(
        "--flow-monitor",
        "--flowMonitor",
        dest="flow_monitor",
        type=_bool_arg,
        nargs="?",
        const=True,
        default=None,
        help="Enable flow monitoring (required for the summary row).",
    )
    p.add_argument(
        "--header-policy",
        choices=["ensure", "sentinel"],
        default=None,
        help="Summary header policy (default: ensure).",
    )
    p.add_argument("--seed", type=int, default=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="manetexp", description="MANET routing comparison experiments")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Run one experiment")
    _add_run_options(p_run)

    p_validate = sub.add_parser("validate", help="Validate an experiment config")
    _add_run_options(p_validate)

    p_sweep = sub.add_parser("sweep", help="Run a parameter sweep")
    p_sweep.add_argument("--config", required=True, help="Sweep YAML.")

    p_plot = sub.add_parser("plot", help="Plot a sweep summary or per-second throughput CSV")
    source = p_plot.add_mutually_exclusive_group(required=True)
    source.add_argument("--summary", help="Summary CSV path.")
    source.add_argument("--timeseries", help="Per-second throughput CSV path.")
    p_plot.add_argument("--warmup", type=float, default=0.0, help="Drop time-series rows before this second.")
    p_plot.add_argument("--x", default="nWifis", choices=["nWifis", "nodeSpeed", "packet_per_sec"])
    p_plot.add_argument("--out", required=True, help="Output PNG path.")
    return parser


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for key in ("protocol", "n_wifis", "node_speed", "packet_per_sec", "trace_mobility", "flow_monitor", "seed"):
        value = getattr(args, key, None)
        if value is not None:
            overrides[key] = value
    if getattr(args, "header_policy", None):
        overrides["header_policy"] = args.header_policy
    outputs = {}
    for key in ("summary_csv", "timeseries_csv", "flow_csv", "events_jsonl", "result_json"):
        value = getattr(args, key, None)
        if value is not None:
            outputs[key] = value
    if outputs:
        overrides["outputs"] = outputs
    return overrides


def _print(obj: Any) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False, sort_keys=True))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    log = logging.getLogger("manetexp.cli")

    try:
        if args.cmd == "run":
            from manetexp.experiment import run_experiment

            cfg = load_experiment_config(args.config, overrides_from_args(args))
            _print(run_experiment(cfg))
            return 0

        if args.cmd == "validate":
            cfg = load_effective_config(args.config, overrides_from_args(args))
            errors = validate_config(cfg)
            if errors:
                _print({"ok": False, "errors": errors})
                return EXIT_CONFIG_ERROR
            _print({"ok": True})
            return 0

        if args.cmd == "sweep":
            from manetexp.sweep import run_sweep_file

            _print(run_sweep_file(args.config))
            return 0

        if args.cmd == "plot":
            from manetexp.report.plot import plot_summary, plot_timeseries

            if args.timeseries:
                out = plot_timeseries(args.timeseries, args.out, warmup_s=args.warmup)
            else:
                out = plot_summary(args.summary, args.x, args.out)
            _print({"ok": True, "out": str(out)})
            return 0
    except ConfigError as exc:
        log.error("%s", exc)
        return EXIT_CONFIG_ERROR

    return 1


if __name__ == "__main__":
    sys.exit(main())
