from __future__ import annotations

from loadstat.metrics.aggregator import FINAL_LABEL, Aggregator
from loadstat.metrics.functions import PERCENTILES, latency_distribution, latency_histogram
from loadstat.metrics.models import (
    ErrorTally,
    Key,
    LatencyBucket,
    LatencyPercentile,
    MessageType,
    MessageTypeRegistry,
    OutcomeEvent,
    Snapshot,
    StatisticRecord,
)
from loadstat.metrics.report import Report, ReportRenderer, format_report, reports_frame

__all__ = [
    "Aggregator",
    "ErrorTally",
    "FINAL_LABEL",
    "Key",
    "LatencyBucket",
    "LatencyPercentile",
    "MessageType",
    "MessageTypeRegistry",
    "OutcomeEvent",
    "PERCENTILES",
    "Report",
    "ReportRenderer",
    "Snapshot",
    "StatisticRecord",
    "format_report",
    "latency_distribution",
    "latency_histogram",
    "reports_frame",
]
