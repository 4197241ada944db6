from __future__ import annotations

from enum import IntEnum
from typing import Callable

import httpx

from loadstat.config import TargetConfig
from loadstat.loadgen.handler import CallOutcome, OutcomeSink, timed
from loadstat.metrics import MessageType

OutcomeFilter = Callable[
    [CallOutcome, httpx.Request, "httpx.Response | None", "httpx.HTTPError | None"],
    None,
]


class ErrorCode(IntEnum):
    OTHER = -1001
    TIMEOUT = -1002
    CONNECT = -1003
    READ = -1004


def error_code_for(exc: httpx.HTTPError) -> ErrorCode:
    if isinstance(exc, httpx.TimeoutException):
        return ErrorCode.TIMEOUT
    if isinstance(exc, httpx.ConnectError):
        return ErrorCode.CONNECT
    if isinstance(exc, httpx.ReadError):
        return ErrorCode.READ
    return ErrorCode.OTHER


class HttpRequestHandler:
    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        outcome_filter: OutcomeFilter | None = None,
    ) -> None:
        self._transport = transport
        self._outcome_filter = outcome_filter
        self._client: httpx.AsyncClient | None = None
        self._sink: OutcomeSink | None = None
        self._target: TargetConfig | None = None
        self._label = ""

    async def initialize(self, target: TargetConfig, sink: OutcomeSink) -> None:
        url = httpx.URL(target.url)
        if url.scheme not in ("http", "https"):
            msg = f"Unsupported target URL: {target.url!r}"
            raise ValueError(msg)
        self._target = target
        self._sink = sink
        self._label = f"[{target.method.upper()}]/{target.url}"
        self._client = httpx.AsyncClient(
            transport=self._transport,
            verify=target.verify_tls,
            timeout=target.timeout_sec,
            headers=dict(target.headers),
        )

    async def perform_one_request(self) -> None:
        if self._client is None or self._sink is None or self._target is None:
            raise RuntimeError("handler is not initialized")
        request = self._client.build_request(self._target.method, self._target.url)
        error: httpx.HTTPError | None = None
        async with timed(self._sink, MessageType.HTTP, self._label) as outcome:
            resp: httpx.Response | None = None
            try:
                resp = await self._client.send(request)
            except httpx.HTTPError as exc:
                error = exc
                outcome.success = False
                outcome.error_code = error_code_for(exc)
            else:
                outcome.success = resp.is_success
                outcome.error_code = resp.status_code
                outcome.bytes_received = len(resp.content or b"")
            if self._outcome_filter is not None:
                self._outcome_filter(outcome, request, resp, error)
        # raised only after the event for this call has been emitted
        if error is not None:
            raise error

    async def release(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()
