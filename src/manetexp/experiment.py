from __future__ import annotations

import csv
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

from manetexp.core.logging import JsonlLogger
from manetexp.core.scheduler import RepeatingTask, Scheduler
from manetexp.core.types import AggregateResult, FlowRecord
from manetexp.measure.accountant import ReceptionAccountant
from manetexp.measure.flowstats import OBSERVATION_WINDOW_S, FlowStatsAggregator, is_undefined
from manetexp.measure.sampler import ThroughputSampler, TimeSeriesWriter
from manetexp.net.flowmon import FlowMonitor, FlowMonitorError
from manetexp.net.mobility import MobilityTrace, RandomWaypointMobility
from manetexp.net.network import WirelessNetwork
from manetexp.net.topology import friis_range_m
from manetexp.net.traffic import (
    EPHEMERAL_PORT_BASE,
    Ipv4AddressHelper,
    OnOffApplication,
    UdpSink,
    packet_uids,
)
from manetexp.report.summary import SweepOutputManager
from manetexp.runtime.config import ExperimentConfig
from manetexp.utils.io import dump_json, ensure_parent, fmt_number

FLOW_CSV_FIELDS = (
    "FlowId",
    "SourceIp",
    "DestinationIp",
    "TxPackets",
    "RxPackets",
    "LostPackets",
    "Throughput",
    "Delay",
    "PacketDeliveryRatio",
    "PacketDropRatio",
)


def _json_number(value: float) -> Optional[float]:
    return None if is_undefined(value) else value


class RoutingExperiment:
    """One run of the routing comparison: provision, simulate, measure, report.

    Output files, in order of creation:
    - the per-second time series (truncated, header rewritten every run),
    - the sweep summary (header per the configured policy, one row per run),
    - optionally a per-flow CSV, a mobility trace and a JSONL event trace.
    """

    def __init__(self, config: ExperimentConfig, logger: logging.Logger | None = None) -> None:
        self.cfg = config
        self._log = logger or logging.getLogger("manetexp.experiment")
        self.scheduler = Scheduler()
        self.accountant = ReceptionAccountant(self.scheduler.now)
        self.flow_monitor: FlowMonitor | None = None
        self.sinks: List[UdpSink] = []
        self.sources: List[OnOffApplication] = []
        self.result: AggregateResult | None = None

    def run(self) -> Dict[str, Any]:
        out = self.cfg.outputs
        with JsonlLogger(out.events_jsonl or None) as trace:
            try:
                payload = self._simulate(trace)
            finally:
                self.scheduler.destroy()
                if self.flow_monitor is not None:
                    self.flow_monitor.close()
                summary = self.result.to_dict() if self.result else {}
                trace.log("summary", t=self.scheduler.now(), **summary)
        if out.result_json:
            dump_json(out.result_json, {"result": payload, "config": self.cfg.to_dict()})
        return payload

    def _simulate(self, trace: JsonlLogger) -> Dict[str, Any]:
        cfg = self.cfg
        out = cfg.outputs

        timeseries = TimeSeriesWriter(out.timeseries_csv)
        timeseries.start()
        summary = SweepOutputManager(out.summary_csv, policy=cfg.header_policy)
        header_written = summary.prepare(cfg.sweep_key)

        rng = random.Random(cfg.seed)
        mobility = RandomWaypointMobility(
            n_nodes=cfg.n_wifis,
            width=cfg.area.width,
            height=cfg.area.height,
            max_speed=cfg.node_speed,
            pause=cfg.node_pause,
            seed=rng.randrange(2**31),
        )
        range_m = friis_range_m(cfg.tx_power_dbm, cfg.rx_threshold_dbm, cfg.frequency_hz)
        network = WirelessNetwork(self.scheduler, mobility, range_m, cfg.protocol)
        self._log.info(
            "run start: protocol=%s nodes=%d speed=%d pps=%d rate=%dbps range=%.1fm",
            cfg.protocol,
            cfg.n_wifis,
            cfg.node_speed,
            cfg.packet_per_sec,
            cfg.data_rate_bps,
            range_m,
        )

        if cfg.flow_monitor:
            self.flow_monitor = FlowMonitor()
            network.on_delivered = self.flow_monitor.on_rx
            network.on_dropped = self.flow_monitor.on_drop

        self._install_traffic(network, rng)

        if cfg.trace_mobility:
            mob_trace = MobilityTrace(out.mobility_trace, mobility)
            RepeatingTask(
                self.scheduler, 1.0, lambda: mob_trace.record(self.scheduler.now()), until=cfg.total_time
            ).arm()

        sampler = ThroughputSampler(
            self.scheduler,
            self.accountant,
            timeseries,
            sink_count=cfg.n_sinks,
            protocol_name=cfg.protocol,
            tx_power_dbm=cfg.tx_power_dbm,
            total_time=cfg.total_time,
            trace=trace,
        )
        sampler.arm()

        self.scheduler.stop(cfg.total_time)
        end = self.scheduler.run()
        self._log.info(
            "run finished at t=%s: sent=%d delivered=%d dropped=%d samples=%d",
            end,
            sum(s.sent for s in self.sources),
            network.delivered_packets,
            network.dropped_packets,
            timeseries.rows_written,
        )

        self.result = self._report(summary)

        payload: Dict[str, Any] = {
            "protocol": cfg.protocol,
            "n_wifis": cfg.n_wifis,
            "node_speed": cfg.node_speed,
            "packet_per_sec": cfg.packet_per_sec,
            "seed": cfg.seed,
            "end_time": end,
            "samples": timeseries.rows_written,
            "packets_sent": sum(s.sent for s in self.sources),
            "packets_received": self.accountant.total_packets,
            "packets_sampled": sampler.packets_sampled,
            "summary_header_written": header_written,
            "timeseries_csv": str(timeseries.path),
            "summary_csv": str(summary.path) if self.result else None,
        }
        if self.result is not None:
            payload.update(
                {
                    "packet_delivery_ratio": _json_number(self.result.packet_delivery_ratio),
                    "packet_drop_ratio": _json_number(self.result.packet_drop_ratio),
                    "avg_delay": _json_number(self.result.avg_delay),
                    "throughput": _json_number(self.result.throughput),
                }
            )
        return payload

    def _install_traffic(self, network: WirelessNetwork, rng: random.Random) -> None:
        cfg = self.cfg
        addresses = Ipv4AddressHelper().assign(cfg.n_wifis)
        uids = packet_uids()
        on_send = self.flow_monitor.on_tx if self.flow_monitor else None
        for i in range(cfg.n_wifis // 2):
            sink_node = i
            source_node = (i + cfg.n_sinks) % cfg.n_wifis
            sink = UdpSink(sink_node, (addresses[sink_node], cfg.port), self.accountant)
            network.bind(sink)
            self.sinks.append(sink)

            app = OnOffApplication(
                self.scheduler,
                network,
                node=source_node,
                local=(addresses[source_node], EPHEMERAL_PORT_BASE + i),
                remote=sink.address,
                remote_node=sink_node,
                packet_size=cfg.packet_size,
                packets_per_sec=cfg.packet_per_sec,
                uids=uids,
                on_send=on_send,
            )
            app.start(rng.uniform(cfg.app_start, cfg.app_start + cfg.app_start_jitter), cfg.total_time)
            self.sources.append(app)
        self._log.debug("installed %d source/sink pairs", len(self.sources))

    def _report(self, summary: SweepOutputManager) -> AggregateResult | None:
        if self.flow_monitor is None:
            return None
        cfg = self.cfg
        try:
            records = self.flow_monitor.collect()
        except FlowMonitorError as exc:
            self._log.warning("flow statistics unavailable, skipping summary: %s", exc)
            return None

        aggregator = FlowStatsAggregator(packet_bytes=cfg.packet_size, window_s=OBSERVATION_WINDOW_S)
        result = aggregator.aggregate(records, cfg.n_wifis, cfg.node_speed, cfg.packet_per_sec)
        summary.append_result(result)
        if cfg.outputs.flow_csv:
            write_flow_csv(cfg.outputs.flow_csv, aggregator, records)
        return result


def write_flow_csv(path: str | Path, aggregator: FlowStatsAggregator, records: List[FlowRecord]) -> Path:
    p = ensure_parent(path)
    with p.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=FLOW_CSV_FIELDS, lineterminator="\n")
        writer.writeheader()
        for row in aggregator.per_flow(records):
            writer.writerow({k: fmt_number(v) if isinstance(v, float) else v for k, v in row.items()})
    return p


def run_experiment(config: ExperimentConfig) -> Dict[str, Any]:
    return RoutingExperiment(config).run()
