from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Protocol

from loadstat.config import TargetConfig
from loadstat.metrics import OutcomeEvent
from loadstat.stream import BoundedStream

# recorded when a call raises before the instrumentation picked a code
UNCLASSIFIED_ERROR = -1001


class OutcomeSink:
    """Write side of the shared outcome stream, handed to each handler."""

    def __init__(self, stream: BoundedStream[OutcomeEvent]) -> None:
        self._stream = stream

    async def emit(self, event: OutcomeEvent) -> None:
        await self._stream.send(event)


class RequestHandler(Protocol):
    async def initialize(self, target: TargetConfig, sink: OutcomeSink) -> None:
        ...

    async def perform_one_request(self) -> None:
        ...

    async def release(self) -> None:
        ...


HandlerFactory = Callable[[], RequestHandler]


@dataclass(slots=True)
class CallOutcome:
    success: bool = True
    error_code: int = 0
    bytes_received: int = 0


@asynccontextmanager
async def timed(
    sink: OutcomeSink,
    message_type: int,
    method: str,
) -> AsyncIterator[CallOutcome]:
    """Time the wrapped call and emit exactly one outcome event for it.

    The body fills in the yielded ``CallOutcome``. If it raises, the event is
    marked failed and the exception propagates after the event is sent.
    """
    outcome = CallOutcome()
    started = time.perf_counter_ns()
    try:
        yield outcome
    except BaseException:
        outcome.success = False
        if outcome.error_code == 0:
            outcome.error_code = UNCLASSIFIED_ERROR
        raise
    finally:
        await sink.emit(
            OutcomeEvent(
                message_type=message_type,
                method=method,
                elapsed_ns=time.perf_counter_ns() - started,
                success=outcome.success,
                error_code=outcome.error_code,
                bytes_received=outcome.bytes_received,
            )
        )
