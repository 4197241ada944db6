from __future__ import annotations

from loadstat.loadgen.client import ErrorCode, HttpRequestHandler, OutcomeFilter
from loadstat.loadgen.handler import CallOutcome, HandlerFactory, OutcomeSink, RequestHandler, timed
from loadstat.loadgen.runner import Runner, run_load

__all__ = [
    "CallOutcome",
    "ErrorCode",
    "HandlerFactory",
    "HttpRequestHandler",
    "OutcomeFilter",
    "OutcomeSink",
    "RequestHandler",
    "Runner",
    "run_load",
    "timed",
]
