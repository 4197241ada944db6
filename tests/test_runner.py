from __future__ import annotations

import asyncio
from typing import Iterator

import pytest

from loadstat.config import RunConfig, TargetConfig
from loadstat.loadgen import OutcomeSink, Runner, run_load, timed
from loadstat.metrics import MessageType, OutcomeEvent
from loadstat.stream import BoundedStream

TARGET = TargetConfig(url="grpc://localhost:5051")


class ScriptedHandler:
    """Emits one event per call with latencies drawn from a shared script."""

    def __init__(
        self,
        latencies: Iterator[int],
        success: bool = True,
        code: int = 0,
        fail_init: bool = False,
        ledger: list[str] | None = None,
    ) -> None:
        self._latencies = latencies
        self._success = success
        self._code = code
        self._fail_init = fail_init
        self._ledger = ledger if ledger is not None else []
        self._sink: OutcomeSink | None = None

    async def initialize(self, target: TargetConfig, sink: OutcomeSink) -> None:
        self._ledger.append("init")
        if self._fail_init:
            raise ConnectionError(f"cannot reach {target.url}")
        self._sink = sink

    async def perform_one_request(self) -> None:
        assert self._sink is not None
        await asyncio.sleep(0)
        await self._sink.emit(
            OutcomeEvent(
                message_type=MessageType.GRPC,
                method="/helloworld.Greeter/SayHello",
                elapsed_ns=next(self._latencies) * 1_000_000,
                success=self._success,
                error_code=self._code,
                bytes_received=16,
            )
        )
        if not self._success:
            raise RuntimeError("request failed")

    async def release(self) -> None:
        self._ledger.append("release")


def test_two_workers_three_requests_each() -> None:
    latencies = iter([10, 20, 30, 40, 50, 60])
    config = RunConfig(concurrency=2, requests_per_worker=3)
    output: list[str] = []
    reports = asyncio.run(Runner(output=output.append).run(config, TARGET, lambda: ScriptedHandler(latencies)))
    assert len(reports) == 1
    report = reports[0]
    assert (report.success_count, report.failure_count) == (6, 0)
    assert (report.min_latency_ms, report.max_latency_ms, report.avg_latency_ms) == (10.0, 60.0, 35.0)
    assert report.qps == pytest.approx(6e9 / (report.total_sec * 1e9))
    assert report.concurrency == 2
    assert output[-1].startswith("[final]")


def test_all_failures_still_yield_complete_report() -> None:
    latencies = iter([5, 6, 7])
    config = RunConfig(concurrency=3, requests_per_worker=1)
    reports = asyncio.run(
        Runner(output=lambda text: None).run(
            config, TARGET, lambda: ScriptedHandler(latencies, success=False, code=500)
        )
    )
    report = reports[0]
    assert (report.success_count, report.failure_count) == (0, 3)
    assert dict(report.error_codes) == {500: 3}
    assert report.qps == 0.0
    assert report.latencies_ms == [5.0, 6.0, 7.0]


def test_failed_initialization_only_stops_that_worker() -> None:
    latencies = iter(range(1, 100))
    ledger: list[str] = []
    handlers = iter(
        [
            ScriptedHandler(latencies, ledger=ledger),
            ScriptedHandler(latencies, fail_init=True, ledger=ledger),
            ScriptedHandler(latencies, ledger=ledger),
        ]
    )
    config = RunConfig(concurrency=3, requests_per_worker=4)
    reports = asyncio.run(Runner(output=lambda text: None).run(config, TARGET, lambda: next(handlers)))
    assert reports[0].success_count == 8
    assert ledger.count("init") == 3
    assert ledger.count("release") == 3


def test_no_events_are_lost_under_backpressure() -> None:
    latencies = iter(range(1, 10_000))
    config = RunConfig(concurrency=16, requests_per_worker=25, results_buffer_size=0, report_buffer_size=0)
    reports = asyncio.run(Runner(output=lambda text: None).run(config, TARGET, lambda: ScriptedHandler(latencies)))
    assert sum(r.total_count for r in reports) == 16 * 25


def test_zero_concurrency_returns_empty_report_set() -> None:
    reports = asyncio.run(
        Runner(output=lambda text: None).run(RunConfig(concurrency=0), TARGET, lambda: ScriptedHandler(iter([])))
    )
    assert reports == []


def test_redirect_output_and_registry_frozen_during_run() -> None:
    runner = Runner()
    runner.registry.register(9, "custom")
    seen: list[str] = []
    frozen_states: list[bool] = []

    def capture(text: str) -> None:
        frozen_states.append(runner.registry.is_frozen)
        seen.append(text)

    runner.redirect_output(capture)
    runner.redirect_output(None)
    asyncio.run(runner.run(RunConfig(concurrency=1, requests_per_worker=2), TARGET, lambda: ScriptedHandler(iter([1, 2]))))
    assert len(seen) == 1
    assert "grpc" in seen[0]
    assert frozen_states == [True]
    assert not runner.registry.is_frozen


def test_run_simple_uses_defaults() -> None:
    output: list[str] = []
    reports = asyncio.run(
        Runner(output=output.append).run_simple("grpc://localhost:5051", 2, 2, lambda: ScriptedHandler(iter(range(1, 5))))
    )
    assert reports[0].total_count == 4
    assert len(output) == 1


def test_run_load_drives_its_own_event_loop() -> None:
    reports = run_load(
        RunConfig(concurrency=2, requests_per_worker=1),
        TARGET,
        lambda: ScriptedHandler(iter([1, 2])),
        output=lambda text: None,
    )
    assert reports[0].total_count == 2


def test_timed_marks_raising_calls_as_failed() -> None:
    async def scenario() -> OutcomeEvent:
        stream: BoundedStream[OutcomeEvent] = BoundedStream(2)
        sink = OutcomeSink(stream)
        with pytest.raises(TimeoutError):
            async with timed(sink, MessageType.MQ, "publish"):
                raise TimeoutError
        return await stream.receive()

    event = asyncio.run(scenario())
    assert event.success is False
    assert event.error_code == -1001
    assert event.method == "publish"
    assert event.elapsed_ns >= 0


def test_negative_config_values_are_rejected() -> None:
    with pytest.raises(ValueError):
        RunConfig(concurrency=-1)
    with pytest.raises(ValueError):
        RunConfig(stat_interval_sec=-0.5)


class BrokenReleaseHandler(ScriptedHandler):
    async def release(self) -> None:
        await super().release()
        raise OSError("close failed")


class SlowHandler(ScriptedHandler):
    async def perform_one_request(self) -> None:
        await asyncio.sleep(0.01)
        await super().perform_one_request()


def test_release_failure_stays_inside_its_worker() -> None:
    latencies = iter(range(1, 100))
    ledger: list[str] = []
    handlers = iter(
        [
            BrokenReleaseHandler(latencies, ledger=ledger),
            SlowHandler(latencies, ledger=ledger),
            SlowHandler(latencies, ledger=ledger),
        ]
    )
    config = RunConfig(concurrency=3, requests_per_worker=2)
    reports = asyncio.run(Runner(output=lambda text: None).run(config, TARGET, lambda: next(handlers)))
    assert reports[0].total_count == 6
    assert ledger.count("release") == 3


def test_factory_failure_only_skips_that_worker() -> None:
    latencies = iter(range(1, 100))
    calls = iter(range(3))

    def factory() -> ScriptedHandler:
        if next(calls) == 1:
            raise RuntimeError("no connection slots left")
        return SlowHandler(latencies)

    config = RunConfig(concurrency=3, requests_per_worker=2)
    reports = asyncio.run(Runner(output=lambda text: None).run(config, TARGET, factory))
    assert reports[0].total_count == 4
