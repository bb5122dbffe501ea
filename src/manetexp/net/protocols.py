from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from manetexp.net.topology import NodeId, Topology

TopologyAt = Callable[[float], Topology]


@dataclass(frozen=True)
class RouteDecision:
    path: List[NodeId]
    setup_delay: float = 0.0

    @property
    def hops(self) -> int:
        return max(0, len(self.path) - 1)


class RoutingModel:
    """Route-availability model of one MANET routing protocol.

    A model only answers whether a packet sent now from ``src`` finds a usable
    path to ``dst`` and how long route setup delays it; it does not exchange
    control messages.
    """

    name = "base"
    proactive = True
    supports_flow_monitor = True

    def __init__(self, topology_at: TopologyAt, params: Dict[str, Any] | None = None) -> None:
        self._topology_at = topology_at
        self.params = dict(params or {})
        self.route_failures = 0

    def route(self, src: NodeId, dst: NodeId, now: float) -> Optional[RouteDecision]:
        raise NotImplementedError


class ProactiveModel(RoutingModel):
    """Routes over a topology snapshot refreshed every ``refresh_interval`` seconds.

    Between refreshes the snapshot goes stale; a snapshot path whose links
    have since broken drops the packet.
    """

    refresh_interval = 5.0

    def __init__(self, topology_at: TopologyAt, params: Dict[str, Any] | None = None) -> None:
        super().__init__(topology_at, params)
        self.refresh_interval = float(self.params.get("refresh_interval", self.refresh_interval))
        self._snapshot_at = -math.inf
        self._snapshot: Topology | None = None
        self._paths: Dict[Tuple[NodeId, NodeId], Optional[List[NodeId]]] = {}

    def _refresh(self, now: float) -> Topology:
        epoch = math.floor(now / self.refresh_interval) * self.refresh_interval
        if self._snapshot is None or epoch != self._snapshot_at:
            self._snapshot = self._topology_at(epoch)
            self._snapshot_at = epoch
            self._paths.clear()
        return self._snapshot

    def route(self, src: NodeId, dst: NodeId, now: float) -> Optional[RouteDecision]:
        snapshot = self._refresh(now)
        key = (src, dst)
        if key not in self._paths:
            self._paths[key] = snapshot.shortest_path(src, dst)
        path = self._paths[key]
        if path is None or not self._topology_at(now).path_intact(path):
            self.route_failures += 1
            return None
        return RouteDecision(path=list(path))


class ReactiveModel(RoutingModel):
    """On-demand discovery with a per-pair route cache.

    A cache miss (or a broken cached route) triggers discovery on the current
    topology; the discovering packet pays a request/reply round trip.
    """

    proactive = False
    discovery_delay_per_hop = 0.005
    route_timeout = 3.0

    def __init__(self, topology_at: TopologyAt, params: Dict[str, Any] | None = None) -> None:
        super().__init__(topology_at, params)
        self.discovery_delay_per_hop = float(
            self.params.get("discovery_delay_per_hop", self.discovery_delay_per_hop)
        )
        self.route_timeout = float(self.params.get("route_timeout", self.route_timeout))
        self._cache: Dict[Tuple[NodeId, NodeId], Tuple[List[NodeId], float]] = {}
        self.discoveries = 0

    def route(self, src: NodeId, dst: NodeId, now: float) -> Optional[RouteDecision]:
        current = self._topology_at(now)
        key = (src, dst)
        cached = self._cache.get(key)
        if cached is not None:
            path, expires = cached
            if now < expires and current.path_intact(path):
                self._cache[key] = (path, now + self.route_timeout)
                return RouteDecision(path=list(path))
            del self._cache[key]

        path = current.shortest_path(src, dst)
        self.discoveries += 1
        if path is None:
            self.route_failures += 1
            return None
        self._cache[key] = (path, now + self.route_timeout)
        setup = 2.0 * (len(path) - 1) * self.discovery_delay_per_hop
        return RouteDecision(path=list(path), setup_delay=setup)


class OlsrModel(ProactiveModel):
    name = "OLSR"
    refresh_interval = 5.0


class DsdvModel(ProactiveModel):
    name = "DSDV"
    refresh_interval = 15.0


class AodvModel(ReactiveModel):
    name = "AODV"
    route_timeout = 3.0


class DsrModel(ReactiveModel):
    name = "DSR"
    route_timeout = 300.0
    supports_flow_monitor = False


_REGISTRY: Dict[str, Type[RoutingModel]] = {
    model.name: model for model in (OlsrModel, AodvModel, DsdvModel, DsrModel)
}


def register_protocol(model_cls: Type[RoutingModel], name: str | None = None) -> None:
    """Make a model selectable by ``name``, defaulting to the model's own protocol name."""
    key = name or model_cls.name
    if key == RoutingModel.name:
        raise ValueError(f"{model_cls.__name__} does not declare a protocol name")
    _REGISTRY[key] = model_cls


def load_protocol(name: str) -> Type[RoutingModel]:
    try:
        return _REGISTRY[name]
    except KeyError:
        raise KeyError(f"No such protocol: {name}. Available: {available_protocols()}") from None


def available_protocols() -> list[str]:
    return sorted(_REGISTRY)


def protocol_supports_flow_monitor(name: str) -> bool:
    return load_protocol(name).supports_flow_monitor
