from __future__ import annotations

import logging
import math
from typing import Iterable, List

from manetexp.core.types import AggregateResult, FlowRecord, FlowTotals

# Application payload of every CBR packet, in bytes.
PACKET_BYTES = 64

# Throughput is averaged over this fixed window (200 s run minus 100 s start-up),
# not over the actual run length.
OBSERVATION_WINDOW_S = 100.0

NAN = float("nan")


def _ratio(num: float, den: float) -> float:
    if den == 0:
        return NAN
    return num / den


def sum_flows(records: Iterable[FlowRecord]) -> FlowTotals:
    tx = rx = lost = 0
    delay = 0.0
    for rec in records:
        tx += int(rec.tx_packets)
        rx += int(rec.rx_packets)
        lost += int(rec.lost_packets)
        delay += float(rec.delay_sum)
    return FlowTotals(tx_packets=tx, rx_packets=rx, lost_packets=lost, delay_sum=delay)


def windowed_throughput_kbps(
    rx_packets: int,
    tx_packets: int,
    packet_bytes: int = PACKET_BYTES,
    window_s: float = OBSERVATION_WINDOW_S,
) -> float:
    if tx_packets == 0:
        return NAN
    return rx_packets * packet_bytes * 8.0 / (window_s * 1000.0)


class FlowStatsAggregator:
    """Reduces the per-flow table of one run into an AggregateResult.

    Delivery and drop ratios are computed independently; packets still in
    flight when the run ended count toward neither, so the two ratios need
    not add up to one.
    """

    def __init__(
        self,
        packet_bytes: int = PACKET_BYTES,
        window_s: float = OBSERVATION_WINDOW_S,
        logger: logging.Logger | None = None,
    ) -> None:
        self.packet_bytes = int(packet_bytes)
        self.window_s = float(window_s)
        self._log = logger or logging.getLogger("manetexp.flowstats")

    def aggregate(
        self,
        records: Iterable[FlowRecord],
        n_wifis: int,
        node_speed: int,
        packet_per_sec: int,
    ) -> AggregateResult:
        records = list(records)
        totals = sum_flows(records)
        result = AggregateResult(
            n_wifis=int(n_wifis),
            node_speed=int(node_speed),
            packet_per_sec=int(packet_per_sec),
            packet_delivery_ratio=_ratio(totals.rx_packets, totals.tx_packets),
            packet_drop_ratio=_ratio(totals.lost_packets, totals.tx_packets),
            avg_delay=_ratio(totals.delay_sum, totals.rx_packets),
            throughput=windowed_throughput_kbps(
                totals.rx_packets, totals.tx_packets, self.packet_bytes, self.window_s
            ),
        )
        if totals.tx_packets == 0:
            self._log.warning("no packets transmitted across %d flows; ratios undefined", len(records))
        self._log.info(
            "flows=%d tx=%d rx=%d lost=%d pdr=%s drop=%s delay=%s throughput=%s",
            len(records),
            totals.tx_packets,
            totals.rx_packets,
            totals.lost_packets,
            result.packet_delivery_ratio,
            result.packet_drop_ratio,
            result.avg_delay,
            result.throughput,
        )
        return result

    def per_flow(self, records: Iterable[FlowRecord]) -> List[dict]:
        """Per-flow breakdown of the same ratios, ordered by flow id."""
        rows = []
        for rec in sorted(records, key=lambda r: r.flow_id):
            rows.append(
                {
                    "FlowId": rec.flow_id,
                    "SourceIp": rec.source,
                    "DestinationIp": rec.destination,
                    "TxPackets": rec.tx_packets,
                    "RxPackets": rec.rx_packets,
                    "LostPackets": rec.lost_packets,
                    "Throughput": windowed_throughput_kbps(
                        rec.rx_packets, rec.tx_packets, self.packet_bytes, self.window_s
                    ),
                    "Delay": _ratio(rec.delay_sum, rec.rx_packets),
                    "PacketDeliveryRatio": _ratio(rec.rx_packets, rec.tx_packets),
                    "PacketDropRatio": _ratio(rec.lost_packets, rec.tx_packets),
                }
            )
        return rows


def is_undefined(value: float) -> bool:
    return isinstance(value, float) and math.isnan(value)
