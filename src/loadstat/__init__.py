from __future__ import annotations

from loadstat.config import RunConfig, TargetConfig
from loadstat.loadgen import HttpRequestHandler, Runner, run_load
from loadstat.metrics import MessageTypeRegistry, OutcomeEvent, Report

__version__ = "0.1.0"

__all__ = [
    "HttpRequestHandler",
    "MessageTypeRegistry",
    "OutcomeEvent",
    "Report",
    "RunConfig",
    "Runner",
    "TargetConfig",
    "run_load",
]
