from __future__ import annotations

from ..models.processing_result import ProcessingResult

"""SUMMARY line rendering.

Format (one line, space separated key=value pairs):
SUMMARY files={total} success={success} failed={failed} rows={rows}
duplicates={dup} warnings={warn} unresolved={codes} coerced={cells}
elapsed_sec={elapsed} throughput_rps={throughput}
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(value: float) -> str:
    """Render a float without scientific notation; integral values drop the fraction."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: ProcessingResult) -> str:
    """Render the SUMMARY line for one run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = ProcessingResult(
        ...     success_files=1, failed_files=0, total_rows=1000,
        ...     start_time=start, end_time=end,
        ...     elapsed_seconds=2.0, throughput_rows_per_sec=500.0,
        ... )
        >>> render_summary_line(result)  # doctest: +ELLIPSIS
        'SUMMARY files=1 success=1 failed=0 rows=1000 duplicates=0 ...'
    """
    return (
        f"SUMMARY files={result.total_files} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"rows={result.total_rows} "
        f"duplicates={result.duplicates_removed} "
        f"warnings={result.warnings} "
        f"unresolved={result.unresolved_codes} "
        f"coerced={result.coerced_cells} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)} "
        f"throughput_rps={format_seconds(result.throughput_rows_per_sec)}"
    )
