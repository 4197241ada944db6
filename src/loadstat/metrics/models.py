from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator


class MessageType(IntEnum):
    GRPC = 1
    MQ = 2
    HTTP = 3


class MessageTypeRegistry:
    def __init__(self) -> None:
        self._names: dict[int, str] = {int(mt): mt.name.lower() for mt in MessageType}
        self._frozen = False

    def register(self, tag: int, name: str) -> None:
        if self._frozen:
            msg = f"cannot register message type {tag} during a run"
            raise RuntimeError(msg)
        self._names[int(tag)] = name

    def name_of(self, tag: int) -> str:
        return self._names.get(int(tag), "unknown")

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @contextmanager
    def frozen(self) -> Iterator[MessageTypeRegistry]:
        previous = self._frozen
        self._frozen = True
        try:
            yield self
        finally:
            self._frozen = previous


@dataclass(frozen=True, slots=True)
class Key:
    message_type: int
    method: str


@dataclass(frozen=True, slots=True)
class OutcomeEvent:
    message_type: int
    method: str
    elapsed_ns: int
    success: bool
    error_code: int
    bytes_received: int

    @property
    def key(self) -> Key:
        return Key(self.message_type, self.method)


class ErrorTally(dict[int, int]):
    def __str__(self) -> str:
        return ";".join(sorted(f"{code}:{count}" for code, count in self.items()))


@dataclass(frozen=True, slots=True)
class Snapshot:
    key: Key
    label: str
    elapsed_ns: int
    success_count: int
    failure_count: int
    bytes_received: int
    latencies_ms: list[float]
    error_codes: ErrorTally


@dataclass(slots=True)
class StatisticRecord:
    key: Key
    success_count: int = 0
    failure_count: int = 0
    bytes_received: int = 0
    latencies_ms: list[float] = field(default_factory=list)
    error_codes: ErrorTally = field(default_factory=ErrorTally)

    def absorb(self, event: OutcomeEvent) -> None:
        self.latencies_ms.append(event.elapsed_ns / 1e6)
        if event.success:
            self.success_count += 1
        else:
            self.failure_count += 1
        self.error_codes[event.error_code] = self.error_codes.get(event.error_code, 0) + 1
        self.bytes_received += event.bytes_received

    def snapshot(self, label: str, elapsed_ns: int) -> Snapshot:
        return Snapshot(
            key=self.key,
            label=label,
            elapsed_ns=elapsed_ns,
            success_count=self.success_count,
            failure_count=self.failure_count,
            bytes_received=self.bytes_received,
            latencies_ms=list(self.latencies_ms),
            error_codes=ErrorTally(self.error_codes),
        )


@dataclass(frozen=True, slots=True)
class LatencyBucket:
    mark: float
    count: int
    frequency: float


@dataclass(frozen=True, slots=True)
class LatencyPercentile:
    percentage: int
    latency: float
