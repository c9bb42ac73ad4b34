from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..excel.headers import ResolvedHeaders
from ..models.classified_row import ClassifiedRow, Disposition
from ..models.platform import Platform, PlatformSchema
from ..models.row_data import RowData
from .base import MISSING_PRODUCT_CODE, ParseContext, RowClassifier

"""Lazada product-sales classifier.

Lazada has no row-level revenue and reports each order item once per
settlement stage ("confirmed", "returned"). Raw rows are grouped by
``(orderItemId, sellerSku)`` before emission, so one ClassifiedRow stands
for one logical line item. Classifying raw rows one by one would double count.
"""

__all__ = [
    "LAZADA_SALES_SCHEMA",
    "LazadaClassifier",
]

LAZADA_SALES_SCHEMA = PlatformSchema(
    platform=Platform.LAZADA,
    fields={
        "status": ("status", "Status"),
        "unit_price": ("unitPrice", "Unit Price", "Unit price"),
        "order_item_id": ("orderItemId", "Order Item Id", "OrderItemId", "Order Item ID"),
        "seller_sku": ("sellerSku", "Seller SKU", "seller_sku", "SellerSku"),
        "order_date": ("createTime", "Created at", "Order Date"),
    },
    optional=frozenset({"order_date"}),
)

CONFIRMED = "confirmed"
RETURNED = "returned"
CANCELLED_STATUSES = frozenset({"canceled", "cancelled"})

MISSING_ORDER_ITEM_ID = "MISSING_ORDER_ITEM_ID"


@dataclass
class _LineItem:
    """Running totals for one (orderItemId, sellerSku) key."""
    sku: str
    name: str
    order_item_id: str
    row_number: int
    order_date: str | None
    raw: dict[str, Any]
    confirmed: int = 0
    returned: int = 0
    unit_prices: list[float] = field(default_factory=list)

    def add(self, status: str, unit_price: float, row_number: int) -> None:
        if status == CONFIRMED:
            self.confirmed += 1
            self.unit_prices.append(unit_price)
        else:
            self.returned += 1
        # 代表行番号は最小値
        self.row_number = min(self.row_number, row_number)


class LazadaClassifier(RowClassifier):
    platform = Platform.LAZADA
    schema = LAZADA_SALES_SCHEMA

    def disposition(self, row: RowData, headers: ResolvedHeaders) -> Disposition:
        status = self.text(row, headers, "status").lower()
        if status == CONFIRMED:
            return Disposition.CONFIRMED
        if status == RETURNED:
            return Disposition.RETURNED
        if status in CANCELLED_STATUSES:
            return Disposition.CANCELLED
        return Disposition.IGNORED

    def classify(
        self, row: RowData, headers: ResolvedHeaders, ctx: ParseContext
    ) -> ClassifiedRow | None:
        """Single-row view of a line item; ``classify_rows`` is the grouping entry point."""
        items = self._group([row], headers, ctx)
        return self._emit(items[0]) if items else None

    def classify_rows(
        self, rows: Iterable[RowData], headers: ResolvedHeaders, ctx: ParseContext
    ) -> list[ClassifiedRow]:
        return [self._emit(item) for item in self._group(rows, headers, ctx)]

    def _group(
        self, rows: Iterable[RowData], headers: ResolvedHeaders, ctx: ParseContext
    ) -> list[_LineItem]:
        groups: dict[str, _LineItem] = {}
        for row in rows:
            disposition = self.disposition(row, headers)
            ctx.count(disposition)
            if not disposition.emitted:
                continue

            n = row.row_number
            sku = self.text(row, headers, "seller_sku")
            order_item_id = self.text(row, headers, "order_item_id")
            unit_price = self.number(row, headers, "unit_price", ctx)
            if not sku:
                ctx.warn(n, MISSING_PRODUCT_CODE, "missing product code, skipped")
                continue
            if not order_item_id:
                ctx.warn(n, MISSING_ORDER_ITEM_ID, "missing orderItemId, skipped")
                continue
            name = ctx.product_name(sku, n)
            if name is None:
                continue

            key = f"{order_item_id}::{sku}"
            item = groups.get(key)
            if item is None:
                item = groups[key] = _LineItem(
                    sku=sku,
                    name=name,
                    order_item_id=order_item_id,
                    row_number=n,
                    order_date=self.date(row, headers, "order_date"),
                    raw=dict(row.values),
                )
            item.add(CONFIRMED if disposition is Disposition.CONFIRMED else RETURNED, unit_price, n)
        return list(groups.values())

    def _emit(self, item: _LineItem) -> ClassifiedRow:
        disposition = Disposition.CONFIRMED if item.confirmed > 0 else Disposition.RETURNED
        return ClassifiedRow(
            platform=self.platform,
            product_code=item.sku,
            product_name=item.name,
            quantity_confirmed=float(item.confirmed),
            quantity_returned=float(item.returned),
            revenue_confirmed=math.fsum(item.unit_prices),
            row_number=item.row_number,
            disposition=disposition,
            order_id=item.order_item_id,
            order_date=item.order_date,
            entry_type=disposition.entry_type,
            raw=item.raw,
        )
