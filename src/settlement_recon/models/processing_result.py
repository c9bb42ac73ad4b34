from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime

from .breakdown import AggregateResult

"""Processing result models: per-file statistics and the run-level result
consumed by the SUMMARY line.
"""

__all__ = [
    "FileStat",
    "ProcessingResult",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class FileStat:
    """Per-file processing statistics.

    Batch timings cover the upsert pages only; they stay 0 in mock mode.
    """
    file_name: str
    status: str  # success/failed
    rows: int
    elapsed_seconds: float
    duplicates_removed: int = 0
    warnings: int = 0
    unresolved_codes: int = 0
    coerced_cells: int = 0
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregated results of one CLI run.

    ``metrics`` is only set in settlement mode, where all reconciled rows of
    the run are folded into one AggregateResult.
    """
    success_files: int
    failed_files: int
    total_rows: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float
    duplicates_removed: int = 0
    warnings: int = 0
    unresolved_codes: int = 0
    coerced_cells: int = 0
    file_stats: list[FileStat] | None = None
    metrics: AggregateResult | None = None

    @property
    def total_files(self) -> int:
        return self.success_files + self.failed_files


class BatchStatsAccumulator:
    """Collects upsert page timings and reduces them to (count, avg, p95)."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)
        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 20 分位の 19 番目 = p95
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method="inclusive"
            )[18]
        return (total_batches, avg_batch_seconds, p95_batch_seconds)
