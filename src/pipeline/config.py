# src/pipeline/config.py — v1
"""Explicit, immutable pipeline configuration.

Built once from Settings and handed to the orchestrator at construction;
nothing in the pipeline reads environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StageConfig:
    """Timeout and retry budget for one named stage."""

    name: str
    timeout_s: float
    max_retries: int = 2
    base_delay_s: float = 0.5

    def __post_init__(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError(f"Stage '{self.name}': timeout_s must be > 0")
        if self.max_retries < 0:
            raise ValueError(f"Stage '{self.name}': max_retries must be >= 0")
        if self.base_delay_s < 0:
            raise ValueError(f"Stage '{self.name}': base_delay_s must be >= 0")


@dataclass(frozen=True)
class PipelineConfig:
    """Ordered stage plan plus run-wide policy."""

    stages: tuple[StageConfig, ...] = field(default_factory=tuple)
    retry_jitter: bool = False
    fusion_cost: int = 1

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self.stages]

    def stage(self, name: str) -> StageConfig | None:
        for s in self.stages:
            if s.name == name:
                return s
        return None

    @property
    def max_duration_s(self) -> float:
        """Upper bound on stage time for one run (timeouts include retries)."""
        return sum(s.timeout_s for s in self.stages)
