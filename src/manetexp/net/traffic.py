from __future__ import annotations

import ipaddress
import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterator, List, Tuple

from manetexp.core.scheduler import Scheduler
from manetexp.measure.accountant import ReceptionAccountant

if TYPE_CHECKING:
    from manetexp.net.network import WirelessNetwork

SocketAddress = Tuple[str, int]

EPHEMERAL_PORT_BASE = 49153


@dataclass(frozen=True)
class Packet:
    uid: int
    src_node: int
    dst_node: int
    source: SocketAddress
    destination: SocketAddress
    size: int
    sent_at: float


class Ipv4AddressHelper:
    """Assigns consecutive host addresses from one subnet, node 0 first."""

    def __init__(self, network: str = "10.1.1.0", mask: str = "255.255.255.0") -> None:
        self.subnet = ipaddress.IPv4Network(f"{network}/{mask}")

    def assign(self, n_nodes: int) -> List[str]:
        hosts = self.subnet.hosts()
        out: List[str] = []
        for _ in range(int(n_nodes)):
            try:
                out.append(str(next(hosts)))
            except StopIteration:
                raise ValueError(f"subnet {self.subnet} too small for {n_nodes} nodes") from None
        return out


class UdpSink:
    """Receiving socket bound on a sink node; every datagram feeds the accountant."""

    def __init__(self, node: int, address: SocketAddress, accountant: ReceptionAccountant) -> None:
        self.node = node
        self.address = address
        self._accountant = accountant
        self.received = 0

    def receive(self, packet: Packet) -> None:
        self.received += 1
        self._accountant.on_arrival(packet.size, self.node, packet.source)


class OnOffApplication:
    """Constant-bit-rate UDP source (always on) between ``start`` and ``stop``."""

    def __init__(
        self,
        scheduler: Scheduler,
        network: "WirelessNetwork",
        node: int,
        local: SocketAddress,
        remote: SocketAddress,
        remote_node: int,
        packet_size: int,
        packets_per_sec: float,
        uids: Iterator[int],
        on_send: Callable[[Packet], None] | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._network = network
        self.node = node
        self.local = local
        self.remote = remote
        self.remote_node = remote_node
        self.packet_size = int(packet_size)
        self.interval = 1.0 / float(packets_per_sec)
        self._uids = uids
        self._on_send = on_send
        self.stop_time = float("inf")
        self.sent = 0

    def start(self, start: float, stop: float) -> None:
        self.stop_time = float(stop)
        if start < self.stop_time:
            self._scheduler.schedule_at(start, self._send)

    def _send(self) -> None:
        now = self._scheduler.now()
        if now >= self.stop_time:
            return
        packet = Packet(
            uid=next(self._uids),
            src_node=self.node,
            dst_node=self.remote_node,
            source=self.local,
            destination=self.remote,
            size=self.packet_size,
            sent_at=now,
        )
        self.sent += 1
        if self._on_send is not None:
            self._on_send(packet)
        self._network.send(packet)
        if now + self.interval < self.stop_time:
            self._scheduler.schedule(self.interval, self._send)


def packet_uids() -> Iterator[int]:
    return itertools.count(1)
