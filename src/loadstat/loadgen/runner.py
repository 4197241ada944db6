from __future__ import annotations

import asyncio
import logging

from loadstat.config import RunConfig, TargetConfig
from loadstat.loadgen.handler import HandlerFactory, OutcomeSink
from loadstat.metrics import Aggregator, MessageTypeRegistry, OutcomeEvent, Report, ReportRenderer
from loadstat.metrics.report import OutputWriter
from loadstat.stream import BoundedStream

logger = logging.getLogger(__name__)


class Runner:
    """Drives ``concurrency`` workers against a handler and reports the results."""

    def __init__(
        self,
        registry: MessageTypeRegistry | None = None,
        output: OutputWriter | None = None,
    ) -> None:
        self._registry = registry or MessageTypeRegistry()
        self._output: OutputWriter = output or print

    @property
    def registry(self) -> MessageTypeRegistry:
        return self._registry

    def redirect_output(self, output: OutputWriter | None) -> None:
        if output is not None:
            self._output = output

    async def run(
        self,
        config: RunConfig,
        target: TargetConfig,
        handler_factory: HandlerFactory,
    ) -> list[Report]:
        logger.info("starting run against %s: %s", target.url, dict(config.to_metadata()))
        with self._registry.frozen():
            events: BoundedStream[OutcomeEvent] = BoundedStream(config.results_buffer_size)
            renderer = ReportRenderer(
                concurrency=config.concurrency,
                registry=self._registry,
                output=self._output,
                drop_zero_percentiles=config.drop_zero_percentiles,
                buffer_size=config.report_buffer_size,
            )
            aggregator = Aggregator(config, events, renderer)
            aggregating = asyncio.create_task(aggregator.run())
            sink = OutcomeSink(events)
            workers = [
                asyncio.create_task(_worker(worker_id, config, target, handler_factory, sink))
                for worker_id in range(config.concurrency)
            ]
            results = await asyncio.gather(*workers, return_exceptions=True)
            for worker_id, result in enumerate(results):
                if result is not None:
                    logger.error("worker %d exited abnormally: %r", worker_id, result)
            await events.close()
            reports = await aggregating
        logger.info("run finished with %d report(s)", len(reports))
        return reports

    async def run_simple(
        self,
        url: str,
        concurrency: int,
        requests_per_worker: int,
        handler_factory: HandlerFactory,
    ) -> list[Report]:
        config = RunConfig.simple(concurrency, requests_per_worker)
        return await self.run(config, TargetConfig(url=url), handler_factory)


async def _worker(
    worker_id: int,
    config: RunConfig,
    target: TargetConfig,
    handler_factory: HandlerFactory,
    sink: OutcomeSink,
) -> None:
    try:
        handler = handler_factory()
    except Exception:
        logger.warning("worker %d: handler construction failed", worker_id, exc_info=True)
        return
    try:
        try:
            await handler.initialize(target, sink)
        except Exception:
            logger.warning("worker %d: handler initialization failed", worker_id, exc_info=True)
            return
        for _ in range(config.requests_per_worker):
            try:
                await handler.perform_one_request()
            except Exception as exc:
                logger.debug("worker %d: request to %s failed: %r", worker_id, target.url, exc)
    finally:
        try:
            await handler.release()
        except Exception:
            logger.warning("worker %d: handler release failed", worker_id, exc_info=True)


def run_load(
    config: RunConfig,
    target: TargetConfig,
    handler_factory: HandlerFactory,
    output: OutputWriter | None = None,
) -> list[Report]:
    return asyncio.run(Runner(output=output).run(config, target, handler_factory))
