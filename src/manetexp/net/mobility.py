from __future__ import annotations

import math
import random
from bisect import bisect_right
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

Position = Tuple[float, float]


@dataclass(frozen=True)
class Leg:
    """One straight segment of a waypoint walk; the node pauses at ``end`` until ``until``."""

    t0: float
    start: Position
    end: Position
    arrive: float
    until: float

    def position(self, t: float) -> Position:
        if t >= self.arrive:
            return self.end
        span = self.arrive - self.t0
        if span <= 0:
            return self.end
        f = (t - self.t0) / span
        return (
            self.start[0] + (self.end[0] - self.start[0]) * f,
            self.start[1] + (self.end[1] - self.start[1]) * f,
        )

    def velocity(self, t: float) -> Position:
        if t >= self.arrive or self.arrive <= self.t0:
            return (0.0, 0.0)
        span = self.arrive - self.t0
        return ((self.end[0] - self.start[0]) / span, (self.end[1] - self.start[1]) / span)


class RandomWaypointMobility:
    """Random waypoint walk inside a rectangle.

    Speed is drawn from Uniform(0, max_speed) for every leg; a node with a zero
    speed draw stays where it is for that leg. Legs are generated lazily as
    later times are queried.
    """

    MIN_SPEED = 1e-3

    def __init__(
        self,
        n_nodes: int,
        width: float,
        height: float,
        max_speed: float,
        pause: float = 0.0,
        seed: int = 0,
    ) -> None:
        self.n_nodes = int(n_nodes)
        self.width = float(width)
        self.height = float(height)
        self.max_speed = max(0.0, float(max_speed))
        self.pause = max(0.0, float(pause))
        self.rng = random.Random(seed)
        self._legs: Dict[int, List[Leg]] = {}
        self._starts: Dict[int, List[float]] = {}
        for node in range(self.n_nodes):
            origin = self._random_point()
            self._legs[node] = [Leg(0.0, origin, origin, 0.0, 0.0)]
            self._starts[node] = [0.0]

    def _random_point(self) -> Position:
        return (self.rng.uniform(0.0, self.width), self.rng.uniform(0.0, self.height))

    def _extend(self, node: int, t: float) -> None:
        legs = self._legs[node]
        starts = self._starts[node]
        while legs[-1].until <= t:
            last = legs[-1]
            target = self._random_point()
            speed = self.rng.uniform(0.0, self.max_speed)
            t0 = last.until
            if speed < self.MIN_SPEED:
                # stalled leg: hold position for one pause-or-second interval
                hold = max(self.pause, 1.0)
                leg = Leg(t0, last.end, last.end, t0, t0 + hold)
            else:
                dist = math.dist(last.end, target)
                arrive = t0 + dist / speed
                leg = Leg(t0, last.end, target, arrive, arrive + self.pause)
            if leg.until <= t0:
                leg = Leg(leg.t0, leg.start, leg.end, leg.arrive, t0 + 1e-6)
            legs.append(leg)
            starts.append(leg.t0)

    def _leg_at(self, node: int, t: float) -> Leg:
        self._extend(node, t)
        idx = bisect_right(self._starts[node], t) - 1
        return self._legs[node][max(0, idx)]

    def position(self, node: int, t: float) -> Position:
        return self._leg_at(node, t).position(t)

    def velocity(self, node: int, t: float) -> Position:
        return self._leg_at(node, t).velocity(t)

    def positions(self, t: float) -> Dict[int, Position]:
        return {node: self.position(node, t) for node in range(self.n_nodes)}


class MobilityTrace:
    """Writes one ``t=... node=... pos=x:y:0 vel=vx:vy:0`` line per node per call."""

    def __init__(self, path: str | Path, mobility: RandomWaypointMobility) -> None:
        self.path = Path(path)
        self._mobility = mobility
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("", encoding="utf-8")
        self.lines = 0

    def record(self, t: float) -> None:
        with self.path.open("a", encoding="utf-8") as f:
            for node in range(self._mobility.n_nodes):
                x, y = self._mobility.position(node, t)
                vx, vy = self._mobility.velocity(node, t)
                f.write(f"t={t:g} node={node} pos={x:.3f}:{y:.3f}:0 vel={vx:.3f}:{vy:.3f}:0\n")
                self.lines += 1
