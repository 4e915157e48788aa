"""
fgbp/inference/diagnostics.py

Caller-owned diagnostics for inference runs.

A diagnostics object is passed into run_inference and lives as long as the
caller keeps it; nothing here is process-wide.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Mismatch:
    """A disagreement between the direct run on the original graph and the junction tree."""
    run: int
    direct_value: float
    tree_value: float
    gradient_gap: float


@dataclass
class InferenceDiagnostics:
    """
    Counters and traces accumulated across runs.

    Attributes:
        run_count: Number of completed runs
        total_time: Wall time of all runs, in seconds
        schedule_length: Length of the last schedule
        residuals: Max f2n change per iteration of the last run
        mismatches: Self-check disagreements, all runs
    """
    run_count: int = 0
    total_time: float = 0.0
    schedule_length: int = 0
    residuals: List[float] = field(default_factory=list)
    mismatches: List[Mismatch] = field(default_factory=list)

    @property
    def average_time(self) -> float:
        return self.total_time / self.run_count if self.run_count else 0.0

    def record_run(self, elapsed: float) -> None:
        self.run_count += 1
        self.total_time += elapsed
