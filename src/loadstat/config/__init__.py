from __future__ import annotations

from loadstat.config.models import RunConfig, TargetConfig

__all__ = [
    "RunConfig",
    "TargetConfig",
]
