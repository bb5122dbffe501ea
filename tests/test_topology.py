from __future__ import annotations

import pytest

from manetexp.net.topology import Topology, friis_range_m


def _line(n: int = 4, spacing: float = 100.0) -> Topology:
    return Topology.from_positions({i: (i * spacing, 0.0) for i in range(n)}, range_m=150.0)


def test_from_positions_links_nodes_within_range() -> None:
    topo = _line()
    assert topo.has_link(0, 1)
    assert not topo.has_link(0, 2)
    assert topo.link_count() == 3
    assert topo.neighbors(1) == {0: pytest.approx(100.0), 2: pytest.approx(100.0)}
    assert topo.neighbors(9) == {}


def test_shortest_path_min_hops() -> None:
    topo = _line()
    assert topo.shortest_path(0, 3) == [0, 1, 2, 3]
    assert topo.shortest_path(2, 2) == [2]
    assert topo.path_intact([0, 1, 2, 3])
    assert not topo.path_intact([0, 2])


def test_shortest_path_unreachable() -> None:
    topo = Topology.from_positions({0: (0.0, 0.0), 1: (1000.0, 0.0)}, range_m=150.0)
    assert topo.shortest_path(0, 1) is None
    assert topo.shortest_path(0, 99) is None


def test_friis_range_grows_with_power() -> None:
    low = friis_range_m(7.5, -80.0, 2.412e9)
    high = friis_range_m(13.5, -80.0, 2.412e9)
    assert 200.0 < low < 260.0
    assert high == pytest.approx(low * 2.0, rel=1e-2)
