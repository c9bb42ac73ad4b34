from __future__ import annotations

import dataclasses
import math
import logging
from collections.abc import Iterable

from ..models.classified_row import ClassifiedRow
from ..models.parse_result import ParseResult, ReconciledBatch

"""Batch reconciler: last-write-wins deduplication on the upsert key."""

__all__ = [
    "reconcile",
    "reconcile_result",
]

logger = logging.getLogger(__name__)


def reconcile(rows: Iterable[ClassifiedRow]) -> ReconciledBatch:
    """Deduplicate rows on ``ClassifiedRow.dedup_key``.

    A later row replaces an earlier one with the same key outright (no
    merge) and takes over the earlier row's position in the output.
    """
    by_key: dict[tuple[str, str, str, str], ClassifiedRow] = {}
    seen = 0
    for row in rows:
        seen += 1
        by_key[row.dedup_key] = row
    removed = seen - len(by_key)
    if removed:
        logger.debug("reconcile: %d duplicate rows removed", removed)
    return ReconciledBatch(rows=tuple(by_key.values()), duplicates_removed=removed)


def reconcile_result(result: ParseResult) -> tuple[ParseResult, int]:
    """Apply ``reconcile`` to a parse result.

    Returns:
        (result with deduplicated rows, number of rows removed). When rows
        were removed a warning is appended to ``summary.warnings``.
    """
    batch = reconcile(result.rows)
    if not batch.duplicates_removed:
        return result, 0
    warning = f"removed {batch.duplicates_removed} duplicate rows (last value wins)"
    rows = batch.rows
    # 合計値は重複除去後の行で取り直す
    summary = dataclasses.replace(
        result.summary,
        total_rows=len(rows),
        total_products=len({r.product_name for r in rows}),
        total_variants=len({r.product_code for r in rows}),
        total_qty=math.fsum(r.quantity_confirmed for r in rows),
        total_revenue=math.fsum(r.revenue_confirmed for r in rows),
        total_returned=math.fsum(r.quantity_returned for r in rows),
        warnings=result.summary.warnings + (warning,),
    )
    return dataclasses.replace(result, rows=batch.rows, summary=summary), batch.duplicates_removed
