from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from loadstat.config import RunConfig
from loadstat.metrics.models import Key, OutcomeEvent, StatisticRecord
from loadstat.metrics.report import Report, ReportRenderer
from loadstat.stream import BoundedStream, StreamClosed

logger = logging.getLogger(__name__)

Clock = Callable[[], int]

FINAL_LABEL = "final"


class Aggregator:
    def __init__(
        self,
        config: RunConfig,
        events: BoundedStream[OutcomeEvent],
        renderer: ReportRenderer,
        clock: Clock = time.perf_counter_ns,
    ) -> None:
        self._config = config
        self._events = events
        self._renderer = renderer
        self._clock = clock
        self._records: dict[Key, StatisticRecord] = {}
        self._started_ns = 0
        self._tick_no = 0

    @property
    def records(self) -> dict[Key, StatisticRecord]:
        return self._records

    async def run(self) -> list[Report]:
        self._started_ns = self._clock()
        render_task = asyncio.create_task(self._renderer.run())
        interval = self._config.stat_interval_sec
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + interval if interval > 0 else None
        receiving: asyncio.Task[OutcomeEvent] | None = None
        try:
            while True:
                if receiving is None:
                    receiving = asyncio.create_task(self._events.receive())
                timeout = None if next_tick is None else max(0.0, next_tick - loop.time())
                done, _ = await asyncio.wait({receiving}, timeout=timeout)
                if not done:
                    await self._emit_tick()
                    next_tick += interval
                    if next_tick <= loop.time():
                        # missed ticks are dropped rather than replayed
                        next_tick = loop.time() + interval
                    continue
                task, receiving = receiving, None
                try:
                    event = task.result()
                except StreamClosed:
                    break
                self._absorb(event)
        finally:
            if receiving is not None:
                receiving.cancel()
        await self._emit_final()
        await self._renderer.inbox.close()
        reports = await render_task
        logger.info(
            "aggregation finished: %d key(s), %d tick(s)",
            len(self._records),
            self._tick_no,
        )
        return reports

    def _absorb(self, event: OutcomeEvent) -> None:
        record = self._records.get(event.key)
        if record is None:
            record = StatisticRecord(event.key)
            self._records[event.key] = record
        record.absorb(event)

    async def _emit_tick(self) -> None:
        self._tick_no += 1
        elapsed_ns = self._clock() - self._started_ns
        label = f"tick {self._tick_no}"
        logger.debug("%s: %d key(s) after %.3fs", label, len(self._records), elapsed_ns / 1e9)
        snapshots = [record.snapshot(label, elapsed_ns) for record in self._records.values()]
        for snapshot in snapshots:
            await self._renderer.inbox.send(snapshot)

    async def _emit_final(self) -> None:
        elapsed_ns = self._clock() - self._started_ns
        snapshots = [record.snapshot(FINAL_LABEL, elapsed_ns) for record in self._records.values()]
        for snapshot in snapshots:
            await self._renderer.inbox.send(snapshot)
