from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

NodeId = int
SweepKey = Tuple[int, int, int]
FiveTuple = Tuple[str, str, int, int, int]


@dataclass
class ReceptionState:
    bytes_total: int = 0
    packets_received: int = 0


@dataclass(frozen=True)
class SampleRow:
    simulation_second: float
    receive_rate_kbps: float
    packets_received: int
    sink_count: int
    protocol_name: str
    tx_power_dbm: float


@dataclass(frozen=True)
class FlowRecord:
    flow_id: int
    tx_packets: int
    rx_packets: int
    lost_packets: int
    delay_sum: float
    source: str = ""
    destination: str = ""


@dataclass(frozen=True)
class FlowTotals:
    tx_packets: int
    rx_packets: int
    lost_packets: int
    delay_sum: float


@dataclass(frozen=True)
class AggregateResult:
    n_wifis: int
    node_speed: int
    packet_per_sec: int
    packet_delivery_ratio: float
    packet_drop_ratio: float
    avg_delay: float
    throughput: float

    @property
    def sweep_key(self) -> SweepKey:
        return (self.n_wifis, self.node_speed, self.packet_per_sec)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_wifis": self.n_wifis,
            "node_speed": self.node_speed,
            "packet_per_sec": self.packet_per_sec,
            "packet_delivery_ratio": self.packet_delivery_ratio,
            "packet_drop_ratio": self.packet_drop_ratio,
            "avg_delay": self.avg_delay,
            "throughput": self.throughput,
        }

