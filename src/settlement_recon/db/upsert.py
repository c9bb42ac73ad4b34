from __future__ import annotations

import math
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from psycopg2.extras import Json, execute_values

from ..models.breakdown import AggregateResult
from ..models.classified_row import ClassifiedRow
from ..models.platform import Platform

"""Idempotent batch upserts into the storage tables.

All writes go through ``upsert_rows``: ``execute_values`` with
``INSERT ... ON CONFLICT (key) DO UPDATE SET col = EXCLUDED.col`` so that
re-submitting a batch replaces stored values instead of adding to them.
The key columns match ``ClassifiedRow.dedup_key``.
"""

__all__ = [
    "UpsertError",
    "BatchMetrics",
    "UpsertResult",
    "TRANSACTION_COLUMNS",
    "PRODUCT_SALES_COLUMNS",
    "json_safe",
    "upsert_rows",
    "upsert_transactions",
    "upsert_product_sales",
    "upsert_platform_metrics",
]


class UpsertError(Exception):
    """Storage failure while upserting a batch."""


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class UpsertResult:
    upserted_rows: int


TRANSACTION_COLUMNS = (
    "platform",
    "external_id",
    "sku",
    "type",
    "order_date",
    "payment_date",
    "revenue",
    "fees",
    "adjustments",
    "settlement",
    "raw_data",
)
TRANSACTION_KEY = ("platform", "external_id", "sku", "type")

PRODUCT_SALES_COLUMNS = (
    "platform",
    "order_id",
    "variant_code",
    "entry_type",
    "product_name",
    "quantity",
    "quantity_returned",
    "revenue",
    "order_date",
    "payment_date",
    "province_raw",
    "province",
    "raw_data",
)
PRODUCT_SALES_KEY = ("platform", "order_id", "variant_code", "entry_type")

PLATFORM_METRICS_COLUMNS = (
    "platform",
    "revenue",
    "fees",
    "adjustments",
    "settlement",
    "trend",
    "trend_dates",
    "per_day",
    "per_day_paid",
    "breakdown",
    "fee_groups",
    "revenue_groups",
    "total_transactions",
    "updated_at",
)


def json_safe(value: Any) -> Any:
    """Convert cell values (dates, Decimals, NaN) into JSON-serialisable values."""
    if isinstance(value, Mapping):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    # pandas.Timestamp は datetime のサブクラスなので上で処理済み
    return str(value)


def upsert_rows(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_columns: Sequence[str],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> UpsertResult:
    """Upsert ``rows`` into ``table`` with execute_values.

    Args:
        cursor: psycopg2 cursor (the caller owns the transaction)
        table: Target table (trusted identifier)
        columns: Column order of every row tuple
        rows: Row tuples
        conflict_columns: Unique key used for ON CONFLICT
        page_size: execute_values page size
        metrics_callback: Receives BatchMetrics for the call; not invoked for an empty batch

    Raises:
        UpsertError: wrapping any driver error
    """
    rows_list = list(rows)
    if not rows_list:
        return UpsertResult(upserted_rows=0)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    key_sql = ",".join(f'"{c}"' for c in conflict_columns)
    updates = [c for c in columns if c not in conflict_columns]
    if updates:
        set_sql = ",".join(f'"{c}" = EXCLUDED."{c}"' for c in updates)
        conflict_sql = f"ON CONFLICT ({key_sql}) DO UPDATE SET {set_sql}"
    else:
        conflict_sql = f"ON CONFLICT ({key_sql}) DO NOTHING"
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s {conflict_sql}"

    start_time = time.time()
    try:
        execute_values(cursor, sql, rows_list, page_size=page_size)
    except Exception as e:
        raise UpsertError(f"{table}: {e}") from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )
    return UpsertResult(upserted_rows=len(rows_list))


def _transaction_tuple(row: ClassifiedRow) -> tuple[Any, ...]:
    return (
        row.platform.value,
        row.order_id or "",
        row.product_code,
        row.entry_type,
        row.order_date,
        row.payment_date,
        row.revenue_confirmed,
        row.fees,
        row.adjustments,
        row.settlement,
        Json(json_safe(row.raw)),
    )


def _product_sale_tuple(row: ClassifiedRow) -> tuple[Any, ...]:
    return (
        row.platform.value,
        row.order_id or "",
        row.product_code,
        row.entry_type,
        row.product_name,
        row.quantity_confirmed,
        row.quantity_returned,
        row.revenue_confirmed,
        row.order_date,
        row.payment_date,
        row.province_raw,
        row.province_normalized,
        Json(json_safe(row.raw)),
    )


def upsert_transactions(
    cursor: Any,
    rows: Iterable[ClassifiedRow],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> UpsertResult:
    """Upsert settlement statement rows into ``transactions``."""
    return upsert_rows(
        cursor,
        "transactions",
        TRANSACTION_COLUMNS,
        [_transaction_tuple(r) for r in rows],
        TRANSACTION_KEY,
        page_size=page_size,
        metrics_callback=metrics_callback,
    )


def upsert_product_sales(
    cursor: Any,
    rows: Iterable[ClassifiedRow],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> UpsertResult:
    """Upsert classified product-sales rows into ``product_sales``."""
    return upsert_rows(
        cursor,
        "product_sales",
        PRODUCT_SALES_COLUMNS,
        [_product_sale_tuple(r) for r in rows],
        PRODUCT_SALES_KEY,
        page_size=page_size,
        metrics_callback=metrics_callback,
    )


def upsert_platform_metrics(
    cursor: Any, platform: Platform | str, metrics: AggregateResult
) -> UpsertResult:
    """Replace the single ``platform_metrics`` document of ``platform``."""
    platform = Platform.parse(platform)
    doc = json_safe(metrics.to_metrics_document())
    row = (
        platform.value,
        doc["revenue"],
        doc["fees"],
        doc["adjustments"],
        doc["settlement"],
        Json(doc["trend"]),
        Json(doc["trend_dates"]),
        Json(doc["per_day"]),
        Json(doc["per_day_paid"]),
        Json(doc["breakdown"]),
        Json(doc["fee_groups"]),
        Json(doc["revenue_groups"]),
        doc["total_transactions"],
        datetime.now(UTC).isoformat(),
    )
    return upsert_rows(cursor, "platform_metrics", PLATFORM_METRICS_COLUMNS, [row], ("platform",))
