from __future__ import annotations

from settlement_recon.models import ClassifiedRow, Disposition, ParseResult, ParseSummary, Platform
from settlement_recon.services.reconcile import reconcile, reconcile_result


def sale(order_id, sku, revenue, n, entry_type="sale"):
    return ClassifiedRow(
        platform=Platform.SHOPEE,
        product_code=sku,
        product_name=sku,
        quantity_confirmed=1,
        quantity_returned=0,
        revenue_confirmed=revenue,
        row_number=n,
        disposition=Disposition.CONFIRMED,
        order_id=order_id,
        entry_type=entry_type,
    )


def test_later_row_wins_and_keeps_first_position():
    first = sale("ORD1", "SKU1", 10, 2)
    other = sale("ORD2", "SKU1", 5, 3)
    later = sale("ORD1", "SKU1", 20, 4)

    batch = reconcile([first, other, later])

    assert batch.rows == (later, other)
    assert batch.duplicates_removed == 1


def test_entry_type_is_part_of_the_key():
    batch = reconcile([sale("ORD1", "SKU1", 10, 2), sale("ORD1", "SKU1", 0, 3, entry_type="return")])
    assert len(batch.rows) == 2
    assert batch.duplicates_removed == 0


def test_reconcile_result_reports_removed_rows_and_recomputes_totals():
    rows = (sale("ORD1", "SKU1", 10, 2), sale("ORD1", "SKU1", 20, 3))
    parsed = ParseResult(
        rows=rows,
        summary=ParseSummary(total_rows=2, total_qty=2, total_revenue=30, warnings=("row 9: x",)),
    )

    result, removed = reconcile_result(parsed)

    assert removed == 1
    assert result.rows == (rows[1],)
    assert result.summary.total_rows == 1
    assert result.summary.total_revenue == 20
    assert result.summary.total_qty == 1
    assert result.summary.warnings == ("row 9: x", "removed 1 duplicate rows (last value wins)")


def test_reconcile_result_without_duplicates_is_unchanged():
    parsed = ParseResult(rows=(sale("ORD1", "SKU1", 10, 2),), summary=ParseSummary(total_rows=1))
    result, removed = reconcile_result(parsed)
    assert removed == 0
    assert result is parsed
