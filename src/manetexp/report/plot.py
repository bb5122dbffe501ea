from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pandas as pd

from manetexp.measure.sampler import TIMESERIES_FIELDS
from manetexp.report.summary import SUMMARY_FIELDS

METRICS = (
    "packet_delivery_ratio",
    "packet_drop_ratio",
    "avg_delay",
    "throughput",
)

AXIS_LABELS = {
    "nWifis": "Number of Nodes",
    "nodeSpeed": "Node Speed (m/s)",
    "packet_per_sec": "Packets per Second",
    "packet_delivery_ratio": "Packet Delivery Ratio",
    "packet_drop_ratio": "Packet Drop Ratio",
    "avg_delay": "Average Delay (s)",
    "throughput": "Throughput (kbps)",
}


def load_summary(path: str | Path) -> pd.DataFrame:
    data = pd.read_csv(path)
    missing = [c for c in SUMMARY_FIELDS if c not in data.columns]
    if missing:
        raise ValueError(f"{path}: missing summary columns {missing}")
    for col in METRICS:
        data[col] = pd.to_numeric(data[col], errors="coerce")
    return data


def load_timeseries(path: str | Path, warmup_s: float = 0.0) -> pd.DataFrame:
    data = pd.read_csv(path)
    missing = [c for c in TIMESERIES_FIELDS if c not in data.columns]
    if missing:
        raise ValueError(f"{path}: missing time-series columns {missing}")
    if warmup_s > 0:
        data = data[data["SimulationSecond"] >= warmup_s]
    return data.reset_index(drop=True)


def _pyplot():
    try:
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except Exception as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for plotting") from exc
    return plt


def plot_summary(
    summary_csv: str | Path,
    x: str,
    out_png: str | Path,
    metrics: Sequence[str] = METRICS,
) -> Path:
    import seaborn as sns

    plt = _pyplot()
    if x not in SUMMARY_FIELDS[:3]:
        raise ValueError(f"x must be one of {list(SUMMARY_FIELDS[:3])}, got {x!r}")

    data = load_summary(summary_csv).sort_values(x)
    fig, axes = plt.subplots(1, len(metrics), figsize=(4 * len(metrics), 4), squeeze=False)
    for ax, metric in zip(axes[0], metrics):
        sns.lineplot(data=data, x=x, y=metric, marker="o", ax=ax)
        ax.set_xlabel(AXIS_LABELS.get(x, x))
        ax.set_ylabel(AXIS_LABELS.get(metric, metric))
        ax.grid(True)
    fig.tight_layout()
    out = Path(out_png)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=150)
    plt.close(fig)
    return out


def plot_timeseries(timeseries_csv: str | Path, out_png: str | Path, warmup_s: float = 0.0) -> Path:
    import seaborn as sns

    plt = _pyplot()
    data = load_timeseries(timeseries_csv, warmup_s=warmup_s)
    fig, ax = plt.subplots(figsize=(10, 4))
    sns.lineplot(data=data, x="SimulationSecond", y="ReceiveRate", hue="RoutingProtocol", ax=ax)
    ax.set_xlabel("Simulation Second")
    ax.set_ylabel("Receive Rate (kbps)")
    ax.grid(True)
    fig.tight_layout()
    out = Path(out_png)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=150)
    plt.close(fig)
    return out
