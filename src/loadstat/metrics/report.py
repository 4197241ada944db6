from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable

import numpy as np
import pandas as pd

from loadstat.metrics.functions import latency_distribution, latency_histogram
from loadstat.metrics.models import (
    ErrorTally,
    Key,
    LatencyBucket,
    LatencyPercentile,
    MessageTypeRegistry,
    Snapshot,
)
from loadstat.stream import BoundedStream

logger = logging.getLogger(__name__)

OutputWriter = Callable[[str], "Awaitable[None] | None"]

_RULE = "─" * 7 + "┬" + "─" * 6 + "┬" + "┬".join(["─" * 8] * 9)
_MID_RULE = _RULE.replace("┬", "┼")
_COLUMNS = "│".join(
    [
        "elapsed",
        " concy",
        " success",
        " failure",
        "     qps",
        " max lat",
        " min lat",
        " avg lat",
        "   bytes",
        " bytes/s",
        " errors",
    ]
)


@dataclass(slots=True)
class Report:
    key: Key
    concurrency: int
    total_sec: float = 0.0
    success_count: int = 0
    failure_count: int = 0
    qps: float = 0.0
    max_latency_ms: float = 0.0
    min_latency_ms: float = 0.0
    avg_latency_ms: float = 0.0
    bytes_received: int = 0
    bytes_per_sec: int = 0
    latencies_ms: list[float] = field(default_factory=list)
    error_codes: ErrorTally = field(default_factory=ErrorTally)

    def apply(self, snapshot: Snapshot) -> None:
        """Overwrite every derived field from ``snapshot``."""
        elapsed_ns = snapshot.elapsed_ns if snapshot.elapsed_ns > 0 else 1
        self.success_count = snapshot.success_count
        self.failure_count = snapshot.failure_count
        self.latencies_ms = sorted(snapshot.latencies_ms)
        self.qps = snapshot.success_count * 1e9 / elapsed_ns
        if self.latencies_ms:
            self.max_latency_ms = self.latencies_ms[-1]
            self.min_latency_ms = self.latencies_ms[0]
            self.avg_latency_ms = float(np.mean(self.latencies_ms))
        else:
            self.max_latency_ms = self.min_latency_ms = self.avg_latency_ms = 0.0
        self.total_sec = snapshot.elapsed_ns / 1e9
        self.bytes_received = snapshot.bytes_received
        if self.total_sec > 0:
            self.bytes_per_sec = int(snapshot.bytes_received / self.total_sec)
        else:
            self.bytes_per_sec = 0
        self.error_codes = ErrorTally(snapshot.error_codes)

    @property
    def total_count(self) -> int:
        return self.success_count + self.failure_count

    def histogram(self) -> list[LatencyBucket]:
        return latency_histogram(self.latencies_ms, self.max_latency_ms, self.min_latency_ms)

    def distribution(self, drop_zero: bool = True) -> list[LatencyPercentile]:
        return latency_distribution(self.latencies_ms, drop_zero=drop_zero)


def format_report(
    report: Report,
    label: str,
    registry: MessageTypeRegistry,
    drop_zero: bool = True,
) -> str:
    type_name = registry.name_of(report.key.message_type)
    lines = [
        f"[{label}] ====> message type | method : {type_name} | {report.key.method}",
        _RULE,
        _COLUMNS,
        _MID_RULE,
        "│".join(
            [
                f"{report.total_sec:6.0f}s",
                f"{report.concurrency:6d}",
                f"{report.success_count:8d}",
                f"{report.failure_count:8d}",
                f"{report.qps:8.2f}",
                f"{report.max_latency_ms:6.2f}ms",
                f"{report.min_latency_ms:6.2f}ms",
                f"{report.avg_latency_ms:6.2f}ms",
                f"{str(report.bytes_received) + 'B':>8}",
                f"{str(report.bytes_per_sec) + 'B/s':>8}",
                str(report.error_codes),
            ]
        ),
        "Latency histogram:",
    ]
    for bucket in report.histogram():
        lines.append(f"{bucket.mark:8.2f}ms│{bucket.count:7d}│{bucket.frequency * 100:8.2f}%")
    lines.append("Latency distribution:")
    for entry in report.distribution(drop_zero=drop_zero):
        lines.append(f"{entry.percentage:7d}%     in {entry.latency:8.2f}ms")
    return "\n".join(lines)


class ReportRenderer:
    """Folds snapshots into per-key reports and writes each one out."""

    def __init__(
        self,
        concurrency: int,
        registry: MessageTypeRegistry,
        output: OutputWriter = print,
        drop_zero_percentiles: bool = True,
        buffer_size: int = 256,
    ) -> None:
        self.inbox: BoundedStream[Snapshot] = BoundedStream(buffer_size)
        self._concurrency = concurrency
        self._registry = registry
        self._output = output
        self._drop_zero = drop_zero_percentiles
        self._reports: dict[Key, Report] = {}

    async def run(self) -> list[Report]:
        async for snapshot in self.inbox:
            report = self._reports.get(snapshot.key)
            if report is None:
                report = Report(key=snapshot.key, concurrency=self._concurrency)
                self._reports[snapshot.key] = report
            report.apply(snapshot)
            text = format_report(report, snapshot.label, self._registry, self._drop_zero)
            try:
                written = self._output(text)
                if inspect.isawaitable(written):
                    await written
            except Exception:
                logger.exception("report output failed for %s", snapshot.label)
        logger.debug("renderer drained, %d report(s)", len(self._reports))
        return list(self._reports.values())


def reports_frame(
    reports: Iterable[Report],
    registry: MessageTypeRegistry | None = None,
) -> pd.DataFrame:
    registry = registry or MessageTypeRegistry()
    rows = []
    for r in reports:
        pct = {p.percentage: p.latency for p in r.distribution(drop_zero=False)}
        rows.append(
            {
                "message_type": registry.name_of(r.key.message_type),
                "method": r.key.method,
                "total_sec": r.total_sec,
                "concurrency": r.concurrency,
                "success": r.success_count,
                "failure": r.failure_count,
                "qps": r.qps,
                "max_ms": r.max_latency_ms,
                "min_ms": r.min_latency_ms,
                "avg_ms": r.avg_latency_ms,
                "p50_ms": pct.get(50, 0.0),
                "p90_ms": pct.get(90, 0.0),
                "p99_ms": pct.get(99, 0.0),
                "bytes": r.bytes_received,
                "bytes_per_sec": r.bytes_per_sec,
                "errors": str(r.error_codes),
            }
        )
    return pd.DataFrame(rows)
