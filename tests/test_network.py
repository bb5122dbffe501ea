from __future__ import annotations

import pytest

from manetexp.core.scheduler import Scheduler
from manetexp.measure.accountant import ReceptionAccountant
from manetexp.net.mobility import RandomWaypointMobility
from manetexp.net.network import WirelessNetwork
from manetexp.net.traffic import Ipv4AddressHelper, OnOffApplication, UdpSink, packet_uids


def _pair(range_m: float, area: float = 10.0, protocol: str = "OLSR", remote_port: int = 9):
    sched = Scheduler()
    acct = ReceptionAccountant(sched.now)
    mob = RandomWaypointMobility(2, area, area, 0.0, seed=4)
    network = WirelessNetwork(sched, mob, range_m, protocol)
    sink = UdpSink(0, ("10.1.1.1", 9), acct)
    network.bind(sink)
    app = OnOffApplication(
        sched,
        network,
        node=1,
        local=("10.1.1.2", 49153),
        remote=("10.1.1.1", remote_port),
        remote_node=0,
        packet_size=64,
        packets_per_sec=4,
        uids=packet_uids(),
    )
    return sched, acct, network, sink, app


def test_address_helper_assigns_consecutive_hosts() -> None:
    assert Ipv4AddressHelper().assign(3) == ["10.1.1.1", "10.1.1.2", "10.1.1.3"]
    with pytest.raises(ValueError):
        Ipv4AddressHelper().assign(300)


def test_cbr_source_sends_until_stop_and_sink_counts() -> None:
    sched, acct, network, sink, app = _pair(range_m=100.0)
    app.start(1.0, 3.0)
    sched.run()

    assert app.sent == 8
    assert network.delivered_packets == 8
    assert sink.received == 8
    assert acct.total_bytes == 8 * 64


def test_unreachable_sink_drops_packets() -> None:
    sched, acct, network, sink, app = _pair(range_m=0.001, area=1000.0)
    reasons = []
    network.on_dropped = lambda packet, reason: reasons.append(reason)
    app.start(0.0, 1.0)
    sched.run()

    assert network.dropped_packets == 4
    assert set(reasons) == {"no route"}
    assert acct.total_packets == 0


def test_unbound_port_drops_on_arrival() -> None:
    sched, acct, network, sink, app = _pair(range_m=100.0, remote_port=10)
    reasons = []
    network.on_dropped = lambda packet, reason: reasons.append(reason)
    app.start(0.0, 0.5)
    sched.run()

    assert reasons == ["port unreachable", "port unreachable"]
    assert sink.received == 0


def test_reactive_first_packet_pays_discovery() -> None:
    sched, acct, network, sink, app = _pair(range_m=100.0, protocol="AODV")
    arrivals = []
    network.on_delivered = lambda packet, now: arrivals.append(now - packet.sent_at)
    app.start(0.0, 0.5)
    sched.run()

    assert arrivals[0] == pytest.approx(0.01 + 0.002)
    assert arrivals[1] == pytest.approx(0.002)
