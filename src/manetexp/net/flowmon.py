from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List

from manetexp.core.types import FiveTuple, FlowRecord
from manetexp.net.traffic import Packet

UDP_PROTOCOL = 17


class FlowMonitorError(RuntimeError):
    """The flow monitor cannot produce statistics for this run."""


@dataclass
class FlowStats:
    tx_packets: int = 0
    rx_packets: int = 0
    lost_packets: int = 0
    tx_bytes: int = 0
    rx_bytes: int = 0
    delay_sum: float = 0.0


class FlowClassifier:
    """Maps five-tuples to flow ids, numbered from 1 in order of first sight."""

    def __init__(self) -> None:
        self._ids: Dict[FiveTuple, int] = {}
        self._tuples: Dict[int, FiveTuple] = {}

    def classify(self, packet: Packet) -> int:
        key: FiveTuple = (
            packet.source[0],
            packet.destination[0],
            UDP_PROTOCOL,
            packet.source[1],
            packet.destination[1],
        )
        flow_id = self._ids.get(key)
        if flow_id is None:
            flow_id = len(self._ids) + 1
            self._ids[key] = flow_id
            self._tuples[flow_id] = key
        return flow_id

    def find_flow(self, flow_id: int) -> FiveTuple:
        return self._tuples[flow_id]


class FlowMonitor:
    """End-to-end flow accounting probed by the traffic sources and the network.

    A packet is counted as transmitted when the source sends it, as received
    (with its one-way delay) when it reaches its sink, and as lost when the
    network drops it. Packets still in flight at ``collect`` time count as
    neither.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or logging.getLogger("manetexp.flowmon")
        self.classifier = FlowClassifier()
        self._stats: Dict[int, FlowStats] = {}
        self._in_flight: Dict[int, int] = {}
        self._closed = False

    def _flow(self, packet: Packet) -> FlowStats:
        flow_id = self.classifier.classify(packet)
        stats = self._stats.get(flow_id)
        if stats is None:
            stats = self._stats[flow_id] = FlowStats()
        return stats

    def on_tx(self, packet: Packet) -> None:
        stats = self._flow(packet)
        stats.tx_packets += 1
        stats.tx_bytes += packet.size
        self._in_flight[packet.uid] = self.classifier.classify(packet)

    def on_rx(self, packet: Packet, now: float) -> None:
        if self._in_flight.pop(packet.uid, None) is None:
            return
        stats = self._flow(packet)
        stats.rx_packets += 1
        stats.rx_bytes += packet.size
        stats.delay_sum += now - packet.sent_at

    def on_drop(self, packet: Packet, reason: str = "") -> None:
        if self._in_flight.pop(packet.uid, None) is None:
            return
        self._flow(packet).lost_packets += 1
        self._log.debug("flow packet %d lost: %s", packet.uid, reason or "unknown")

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def close(self) -> None:
        """Freeze the flow table once the run has been reported."""
        self._closed = True

    def collect(self) -> List[FlowRecord]:
        if self._closed:
            raise FlowMonitorError("flow monitor already closed")
        records: List[FlowRecord] = []
        for flow_id in sorted(self._stats):
            stats = self._stats[flow_id]
            src, dst, _, _, _ = self.classifier.find_flow(flow_id)
            records.append(
                FlowRecord(
                    flow_id=flow_id,
                    tx_packets=stats.tx_packets,
                    rx_packets=stats.rx_packets,
                    lost_packets=stats.lost_packets,
                    delay_sum=stats.delay_sum,
                    source=src,
                    destination=dst,
                )
            )
        self._log.info("collected %d flows (%d packets in flight)", len(records), self.in_flight)
        return records
