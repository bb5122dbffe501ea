from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Tuple


@dataclass(order=True)
class _Event:
    time: float
    seq: int
    callback: Callable[..., Any] = field(compare=False)
    args: Tuple[Any, ...] = field(compare=False, default=())
    cancelled: bool = field(compare=False, default=False)


class EventId:
    """Handle returned by ``Scheduler.schedule``; allows cancelling a pending event."""

    def __init__(self, event: _Event) -> None:
        self._event = event

    @property
    def time(self) -> float:
        return self._event.time

    def cancel(self) -> None:
        self._event.cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._event.cancelled


class Scheduler:
    """Single-threaded discrete-event scheduler.

    Events run strictly in simulated-time order; events sharing a timestamp run
    in the order they were inserted. ``stop`` is itself an event, so anything
    scheduled for the stop instant before the stop request still runs.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or logging.getLogger("manetexp.scheduler")
        self._queue: List[_Event] = []
        self._seq = itertools.count()
        self._now = 0.0
        self._stopped = False
        self.dispatched_events = 0

    def now(self) -> float:
        return self._now

    def schedule(self, delay: float, callback: Callable[..., Any], *args: Any) -> EventId:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        event = _Event(self._now + float(delay), next(self._seq), callback, args)
        heapq.heappush(self._queue, event)
        return EventId(event)

    def schedule_at(self, time: float, callback: Callable[..., Any], *args: Any) -> EventId:
        return self.schedule(max(0.0, float(time) - self._now), callback, *args)

    def stop(self, delay: float = 0.0) -> EventId:
        return self.schedule(delay, self._halt)

    def _halt(self) -> None:
        self._stopped = True

    @property
    def pending(self) -> int:
        return sum(1 for e in self._queue if not e.cancelled)

    def run(self) -> float:
        self._stopped = False
        self._log.debug("scheduler run: %d pending events", self.pending)
        while self._queue and not self._stopped:
            event = heapq.heappop(self._queue)
            if event.cancelled:
                continue
            self._now = event.time
            event.callback(*event.args)
            self.dispatched_events += 1
        self._log.debug(
            "scheduler stopped at t=%s after %d events (%d left undispatched)",
            self._now,
            self.dispatched_events,
            self.pending,
        )
        return self._now

    def destroy(self) -> None:
        self._queue.clear()


class RepeatingTask:
    """Periodic callback that re-arms itself until a fixed stop time.

    The first firing happens ``start`` seconds after ``arm`` is called; every
    subsequent firing is ``interval`` later. A firing is only scheduled while
    its time is strictly before ``until``.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        interval: float,
        callback: Callable[[], Any],
        until: float | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._scheduler = scheduler
        self.interval = float(interval)
        self._callback = callback
        self.until = until
        self.firings = 0
        self._pending: EventId | None = None

    @property
    def armed(self) -> bool:
        return self._pending is not None and not self._pending.cancelled

    def arm(self, start: float = 0.0) -> bool:
        return self._rearm(start)

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _rearm(self, delay: float) -> bool:
        fire_at = self._scheduler.now() + delay
        if self.until is not None and fire_at >= self.until:
            self._pending = None
            return False
        self._pending = self._scheduler.schedule(delay, self._fire)
        return True

    def _fire(self) -> None:
        self._pending = None
        self.firings += 1
        self._callback()
        self._rearm(self.interval)
