from __future__ import annotations

import csv
import logging
from pathlib import Path

from manetexp.core.logging import JsonlLogger
from manetexp.core.scheduler import RepeatingTask, Scheduler
from manetexp.core.types import SampleRow
from manetexp.measure.accountant import ReceptionAccountant
from manetexp.utils.io import ensure_parent, fmt_number

TIMESERIES_FIELDS = (
    "SimulationSecond",
    "ReceiveRate",
    "PacketsReceived",
    "NumberOfSinks",
    "RoutingProtocol",
    "TransmissionPower",
)

SAMPLE_INTERVAL_S = 1.0


def receive_rate_kbps(bytes_total: int) -> float:
    return bytes_total * 8.0 / 1000.0


class TimeSeriesWriter:
    """Per-second throughput CSV. No handle is kept open between rows."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.rows_written = 0

    def start(self) -> None:
        ensure_parent(self.path)
        with self.path.open("w", encoding="utf-8", newline="") as f:
            csv.writer(f, lineterminator="\n").writerow(TIMESERIES_FIELDS)
        self.rows_written = 0

    def append(self, row: SampleRow) -> None:
        with self.path.open("a", encoding="utf-8", newline="") as f:
            csv.writer(f, lineterminator="\n").writerow(
                [
                    fmt_number(row.simulation_second),
                    fmt_number(row.receive_rate_kbps),
                    row.packets_received,
                    row.sink_count,
                    row.protocol_name,
                    fmt_number(row.tx_power_dbm),
                ]
            )
        self.rows_written += 1


class ThroughputSampler:
    """Reads and resets the accountant once per tick and appends a SampleRow.

    The sampler is armed once before the run. Each firing re-arms it one tick
    later until the configured total duration, after which it goes idle.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        accountant: ReceptionAccountant,
        writer: TimeSeriesWriter,
        sink_count: int,
        protocol_name: str,
        tx_power_dbm: float,
        total_time: float | None = None,
        interval: float = SAMPLE_INTERVAL_S,
        trace: JsonlLogger | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._accountant = accountant
        self._writer = writer
        self.sink_count = int(sink_count)
        self.protocol_name = protocol_name
        self.tx_power_dbm = float(tx_power_dbm)
        self._trace = trace or JsonlLogger(path=None)
        self._log = logger or logging.getLogger("manetexp.sampler")
        self._task = RepeatingTask(scheduler, interval, self.sample, until=total_time)
        self.packets_sampled = 0

    @property
    def armed(self) -> bool:
        return self._task.armed

    @property
    def firings(self) -> int:
        return self._task.firings

    def arm(self, start: float = 0.0) -> bool:
        return self._task.arm(start)

    def sample(self) -> SampleRow:
        state = self._accountant.snapshot_and_reset()
        row = SampleRow(
            simulation_second=self._scheduler.now(),
            receive_rate_kbps=receive_rate_kbps(state.bytes_total),
            packets_received=state.packets_received,
            sink_count=self.sink_count,
            protocol_name=self.protocol_name,
            tx_power_dbm=self.tx_power_dbm,
        )
        self._writer.append(row)
        self.packets_sampled += row.packets_received
        self._trace.log(
            "sample",
            t=row.simulation_second,
            kbps=row.receive_rate_kbps,
            packets=row.packets_received,
        )
        self._log.debug(
            "sample t=%s rate=%.3f kbps packets=%d",
            row.simulation_second,
            row.receive_rate_kbps,
            row.packets_received,
        )
        return row
