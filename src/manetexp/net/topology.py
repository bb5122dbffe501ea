from __future__ import annotations

import math
from collections import deque
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

NodeId = int
Position = Tuple[float, float]

SPEED_OF_LIGHT = 299792458.0


def friis_range_m(tx_power_dbm: float, rx_threshold_dbm: float, frequency_hz: float) -> float:
    """Distance at which free-space received power drops to the threshold."""
    wavelength = SPEED_OF_LIGHT / float(frequency_hz)
    budget_db = float(tx_power_dbm) - float(rx_threshold_dbm)
    return wavelength / (4.0 * math.pi) * 10.0 ** (budget_db / 20.0)


class Topology:
    """Undirected neighbour graph; link metric is the distance in metres."""

    def __init__(self) -> None:
        self._adj: Dict[NodeId, Dict[NodeId, float]] = {}

    def add_node(self, node: NodeId) -> None:
        self._adj.setdefault(node, {})

    def nodes(self) -> List[NodeId]:
        return sorted(self._adj.keys())

    def neighbors(self, node: NodeId) -> Dict[NodeId, float]:
        return dict(self._adj.get(node, {}))

    def has_link(self, u: NodeId, v: NodeId) -> bool:
        return v in self._adj.get(u, {})

    def add_link(self, u: NodeId, v: NodeId, metric: float = 1.0) -> None:
        self.add_node(u)
        self.add_node(v)
        self._adj[u][v] = float(metric)
        self._adj[v][u] = float(metric)

    def link_count(self) -> int:
        return sum(len(nei) for nei in self._adj.values()) // 2

    def shortest_path(self, src: NodeId, dst: NodeId) -> Optional[List[NodeId]]:
        """Minimum-hop path, ties broken by lowest node id; None when unreachable."""
        if src not in self._adj or dst not in self._adj:
            return None
        if src == dst:
            return [src]
        prev: Dict[NodeId, NodeId] = {src: src}
        queue = deque([src])
        while queue:
            node = queue.popleft()
            for nbr in sorted(self._adj[node]):
                if nbr in prev:
                    continue
                prev[nbr] = node
                if nbr == dst:
                    path = [dst]
                    while path[-1] != src:
                        path.append(prev[path[-1]])
                    return list(reversed(path))
                queue.append(nbr)
        return None

    def path_intact(self, path: Sequence[NodeId]) -> bool:
        return all(self.has_link(a, b) for a, b in zip(path, path[1:]))

    @classmethod
    def from_positions(cls, positions: Mapping[NodeId, Position], range_m: float) -> "Topology":
        t = cls()
        nodes = sorted(positions)
        for node in nodes:
            t.add_node(node)
        for i, u in enumerate(nodes):
            pu = positions[u]
            for v in nodes[i + 1 :]:
                d = math.dist(pu, positions[v])
                if d <= range_m:
                    t.add_link(u, v, d)
        return t
