from __future__ import annotations

import ipaddress
import logging
from typing import Any, Callable

from manetexp.core.types import ReceptionState


def sender_ipv4(sender: Any) -> ipaddress.IPv4Address | None:
    """Return the IPv4 part of an ``(address, port)`` socket address, else None."""
    if not isinstance(sender, tuple) or len(sender) != 2:
        return None
    host, port = sender
    if not isinstance(port, int):
        return None
    try:
        return ipaddress.IPv4Address(host)
    except (ipaddress.AddressValueError, ValueError, TypeError):
        return None


def format_reception(now: float, node_id: int, sender: Any) -> str:
    addr = sender_ipv4(sender)
    if addr is not None:
        return f"{now:g} {node_id} received one packet from {addr}"
    return f"{now:g} {node_id} received one packet!"


class ReceptionAccountant:
    """Byte and packet counters shared by every sink of one experiment."""

    def __init__(
        self,
        clock: Callable[[], float],
        logger: logging.Logger | None = None,
    ) -> None:
        self._clock = clock
        self._log = logger or logging.getLogger("manetexp.accountant")
        self._state = ReceptionState()
        self.total_packets = 0
        self.total_bytes = 0

    @property
    def state(self) -> ReceptionState:
        return ReceptionState(self._state.bytes_total, self._state.packets_received)

    def on_arrival(self, byte_size: int, node_id: int, sender: Any = None) -> None:
        size = max(0, int(byte_size))
        self._state.bytes_total += size
        self._state.packets_received += 1
        self.total_bytes += size
        self.total_packets += 1
        if self._log.isEnabledFor(logging.INFO):
            self._log.info(format_reception(self._clock(), node_id, sender))

    def snapshot_and_reset(self) -> ReceptionState:
        snap = self.state
        self._state.bytes_total = 0
        self._state.packets_received = 0
        return snap
