from __future__ import annotations

from typing import Sequence

import numpy as np

from loadstat.metrics.models import LatencyBucket, LatencyPercentile

BUCKET_COUNT = 10
PERCENTILES = (10, 25, 50, 75, 90, 95, 99)


def latency_histogram(
    latencies: Sequence[float],
    slowest: float,
    fastest: float,
) -> list[LatencyBucket]:
    """Split [fastest, slowest] into ten equal buckets plus a closing mark at slowest.

    Each latency lands on the first mark that is >= it; anything past the
    last mark is absorbed by it. ``latencies`` is expected in ascending order.
    """
    samples = np.asarray(latencies, dtype=float)
    if samples.size == 0:
        return []
    width = (slowest - fastest) / BUCKET_COUNT
    marks = np.append(fastest + width * np.arange(BUCKET_COUNT), slowest)
    slots = np.minimum(np.searchsorted(marks, samples, side="left"), BUCKET_COUNT)
    counts = np.bincount(slots, minlength=BUCKET_COUNT + 1)
    total = samples.size
    return [
        LatencyBucket(mark=float(mark), count=int(count), frequency=float(count) / total)
        for mark, count in zip(marks, counts)
    ]


def latency_distribution(
    latencies: Sequence[float],
    drop_zero: bool = True,
) -> list[LatencyPercentile]:
    size = len(latencies)
    if size == 0:
        return []
    result: list[LatencyPercentile] = []
    for pct in PERCENTILES:
        idx, remainder = divmod(pct * size, 100)
        if remainder == 0 or idx >= size:
            idx -= 1
        idx = max(idx, 0)
        value = float(latencies[idx])
        if drop_zero and value <= 0:
            continue
        result.append(LatencyPercentile(percentage=pct, latency=value))
    return result
