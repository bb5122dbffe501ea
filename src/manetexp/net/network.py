from __future__ import annotations

import logging
import math
from typing import Callable, Dict

from manetexp.core.scheduler import Scheduler
from manetexp.net.mobility import RandomWaypointMobility
from manetexp.net.protocols import RoutingModel, load_protocol
from manetexp.net.topology import Topology
from manetexp.net.traffic import Packet, UdpSink

PER_HOP_DELAY_S = 0.002
TOPOLOGY_RESOLUTION_S = 0.1


class WirelessNetwork:
    """Ad hoc channel between mobile nodes.

    Neighbourship is a unit disk of ``range_m`` around each node, sampled on a
    ``resolution``-second grid. A sent packet either finds a route through the
    protocol model and arrives ``hops * per_hop_delay`` (plus route setup)
    later, or is dropped on the spot.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        mobility: RandomWaypointMobility,
        range_m: float,
        protocol: str,
        protocol_params: Dict | None = None,
        per_hop_delay: float = PER_HOP_DELAY_S,
        resolution: float = TOPOLOGY_RESOLUTION_S,
        logger: logging.Logger | None = None,
    ) -> None:
        self._scheduler = scheduler
        self.mobility = mobility
        self.range_m = float(range_m)
        self.per_hop_delay = float(per_hop_delay)
        self.resolution = float(resolution)
        self._log = logger or logging.getLogger("manetexp.network")
        self._topologies: Dict[int, Topology] = {}
        self._sinks: Dict[tuple, UdpSink] = {}
        self.routing: RoutingModel = load_protocol(protocol)(self.topology_at, protocol_params)
        self.on_delivered: Callable[[Packet, float], None] | None = None
        self.on_dropped: Callable[[Packet, str], None] | None = None
        self.delivered_packets = 0
        self.dropped_packets = 0

    def topology_at(self, t: float) -> Topology:
        slot = int(math.floor(t / self.resolution + 1e-9))
        topo = self._topologies.get(slot)
        if topo is None:
            self._topologies.pop(slot - 2, None)
            topo = Topology.from_positions(self.mobility.positions(slot * self.resolution), self.range_m)
            self._topologies[slot] = topo
        return topo

    def bind(self, sink: UdpSink) -> None:
        self._sinks[sink.address] = sink

    def send(self, packet: Packet) -> None:
        now = self._scheduler.now()
        decision = self.routing.route(packet.src_node, packet.dst_node, now)
        if decision is None:
            self._drop(packet, "no route")
            return
        latency = decision.setup_delay + decision.hops * self.per_hop_delay
        self._scheduler.schedule(latency, self._deliver, packet)

    def _deliver(self, packet: Packet) -> None:
        sink = self._sinks.get(packet.destination)
        if sink is None:
            self._drop(packet, "port unreachable")
            return
        self.delivered_packets += 1
        if self.on_delivered is not None:
            self.on_delivered(packet, self._scheduler.now())
        sink.receive(packet)

    def _drop(self, packet: Packet, reason: str) -> None:
        self.dropped_packets += 1
        if self.on_dropped is not None:
            self.on_dropped(packet, reason)
