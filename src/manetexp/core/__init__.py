"""Discrete-event core shared by the experiment components."""

from manetexp.core.logging import JsonlLogger
from manetexp.core.scheduler import EventId, RepeatingTask, Scheduler
from manetexp.core.types import (
    AggregateResult,
    FlowRecord,
    FlowTotals,
    ReceptionState,
    SampleRow,
    SweepKey,
)

__all__ = [
    "AggregateResult",
    "EventId",
    "FlowRecord",
    "FlowTotals",
    "JsonlLogger",
    "ReceptionState",
    "RepeatingTask",
    "SampleRow",
    "Scheduler",
    "SweepKey",
]
