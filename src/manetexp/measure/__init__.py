"""Reception accounting, periodic sampling and end-of-run flow statistics."""

from manetexp.measure.accountant import ReceptionAccountant, format_reception
from manetexp.measure.flowstats import (
    OBSERVATION_WINDOW_S,
    PACKET_BYTES,
    FlowStatsAggregator,
    sum_flows,
)
from manetexp.measure.sampler import TIMESERIES_FIELDS, ThroughputSampler, TimeSeriesWriter

__all__ = [
    "FlowStatsAggregator",
    "OBSERVATION_WINDOW_S",
    "PACKET_BYTES",
    "ReceptionAccountant",
    "TIMESERIES_FIELDS",
    "ThroughputSampler",
    "TimeSeriesWriter",
    "format_reception",
    "sum_flows",
]
