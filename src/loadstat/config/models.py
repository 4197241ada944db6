from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class TargetConfig:
    url: str
    method: str = "GET"
    timeout_sec: float = 5.0
    headers: Mapping[str, str] = field(default_factory=dict)
    verify_tls: bool = True


@dataclass(frozen=True, slots=True)
class RunConfig:
    concurrency: int = 20
    requests_per_worker: int = 50
    stat_interval_sec: float = 0.0  # 0 disables periodic reports
    results_buffer_size: int = 1024
    report_buffer_size: int = 256
    drop_zero_percentiles: bool = True

    def __post_init__(self) -> None:
        for name in (
            "concurrency",
            "requests_per_worker",
            "stat_interval_sec",
            "results_buffer_size",
            "report_buffer_size",
        ):
            value = getattr(self, name)
            if value < 0:
                msg = f"{name} must be >= 0, got {value}"
                raise ValueError(msg)

    @classmethod
    def simple(cls, concurrency: int, requests_per_worker: int) -> RunConfig:
        return cls(
            concurrency=concurrency,
            requests_per_worker=requests_per_worker,
            stat_interval_sec=0.0,
            results_buffer_size=1024,
        )

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "concurrency": self.concurrency,
            "requests_per_worker": self.requests_per_worker,
            "stat_interval_sec": self.stat_interval_sec,
            "results_buffer_size": self.results_buffer_size,
            "report_buffer_size": self.report_buffer_size,
            "drop_zero_percentiles": self.drop_zero_percentiles,
        }
