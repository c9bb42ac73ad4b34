from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..excel.cells import cell_text, to_number
from ..models.breakdown import AggregateResult, BreakdownGroup, BreakdownNode, DailyBucket
from ..models.classified_row import ClassifiedRow
from ..models.platform import Platform
from .settlement import (
    LAZADA_AMOUNT_COLUMN,
    LAZADA_FEE_NAMES,
    LAZADA_NAME_COLUMN,
    LAZADA_REVENUE_NAMES,
    SHOPEE_DISCOUNT_COLUMNS,
    SHOPEE_FEE_COLUMNS,
    SHOPEE_SALES_COLUMNS,
    SHOPEE_SHIPPING_COLUMNS,
    SHOPEE_VAS_COLUMNS,
    TIKTOK_ADJUSTMENT_COLUMNS,
    TIKTOK_FEE_COLUMNS,
    TIKTOK_REVENUE_COLUMNS,
)

"""Aggregation engine: financial breakdown and daily time series.

Two passes over the same ClassifiedRow set:

- breakdown: each platform's LabelRegistry says which raw statement cells
  feed which label. Zero contributions are skipped, parents are replaced by
  the sum of their children, groups only list non-zero items.
- time series: revenue / fees / adjustments bucketed by order date and by
  payment date (falling back to order date); the last 7 order-date buckets
  form the trend window.

All sums go through ``math.fsum`` over the collected contributions so the
result does not depend on row order.
"""

__all__ = [
    "LabelRegistry",
    "REGISTRIES",
    "TREND_WINDOW",
    "aggregate",
]

TREND_WINDOW = 7


@dataclass(frozen=True)
class LabelRegistry:
    """Breakdown labels of one platform.

    Attributes:
        labels: Flat labels, each read from the raw cell of the same name
        children: Parent label -> child labels; parents carry their children's sum
        fee_groups: (title, labels) pairs for the fee groups
        revenue_groups: (title, labels) pairs for the revenue groups
        name_column: For one-component-per-row statements, the column naming the component
        amount_column: Column holding that component's amount
    """
    labels: tuple[str, ...]
    children: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    fee_groups: tuple[tuple[str, tuple[str, ...]], ...] = ()
    revenue_groups: tuple[tuple[str, tuple[str, ...]], ...] = ()
    name_column: str | None = None
    amount_column: str | None = None

    def contribution(self, raw: Mapping[str, Any], label: str) -> float:
        if self.name_column is None:
            return to_number(raw.get(label))
        if cell_text(raw.get(self.name_column)) != label:
            return 0.0
        return to_number(raw.get(self.amount_column))

    def ordered_labels(self) -> list[str]:
        return list(dict.fromkeys([*self.labels, *self.children]))


TIKTOK_REGISTRY = LabelRegistry(
    labels=TIKTOK_REVENUE_COLUMNS + TIKTOK_FEE_COLUMNS + TIKTOK_ADJUSTMENT_COLUMNS,
    children={
        "Seller shipping fee": (
            "Actual shipping fee",
            "Platform shipping fee discount",
            "Customer shipping fee",
            "Actual return shipping fee",
            "Refunded customer shipping fee",
            "Shipping subsidy",
        ),
        "Affiliate Commission": (
            "Affiliate commission before PIT (personal income tax)",
            "Personal income tax withheld from affiliate commission",
        ),
        "Affiliate Shop Ads commission": (
            "Affiliate Shop Ads commission before PIT",
            "Personal income tax withheld from affiliate Shop Ads commission",
        ),
        "Subtotal after seller discounts": (
            "Subtotal before discounts",
            "Seller discounts",
        ),
        "Refund subtotal after seller discounts": (
            "Refund subtotal before seller discounts",
            "Refund of seller discounts",
        ),
    },
    fee_groups=(("ค่าธรรมเนียม (TikTok)", TIKTOK_FEE_COLUMNS),),
    revenue_groups=(
        (
            "รายได้ (TikTok)",
            ("Subtotal after seller discounts", "Refund subtotal after seller discounts"),
        ),
    ),
)

SHOPEE_REGISTRY = LabelRegistry(
    labels=(
        SHOPEE_SALES_COLUMNS
        + SHOPEE_DISCOUNT_COLUMNS
        + SHOPEE_SHIPPING_COLUMNS
        + SHOPEE_FEE_COLUMNS
        + SHOPEE_VAS_COLUMNS
    ),
    children={
        "ค่าจัดส่งรวม (Shopee)": (
            "ค่าจัดส่งที่ชำระโดยผู้ซื้อ",
            "ส่วนลดค่าจัดส่งจากผู้ให้บริการขนส่ง",
            "ค่าจัดส่งสินค้าที่ออกโดย Shopee",
            "ค่าจัดส่งที่ Shopee ชำระโดยชื่อของคุณ",
            "ค่าจัดส่งสินค้าคืน",
            "โปรแกรมประหยัดค่าจัดส่งคืนสินค้า",
            "ค่าจัดส่งสินค้าคืนผู้ขาย",
        ),
        "ค่าธรรมเนียมรวม (Shopee)": SHOPEE_FEE_COLUMNS,
        "ยอดรวมบริการเสริมเพิ่มมูลค่าสำหรับผู้ซื้อ": SHOPEE_VAS_COLUMNS,
        "ยอดขายสินค้า (Shopee)": SHOPEE_SALES_COLUMNS,
        "ส่วนลดและโค้ดของผู้ขาย": SHOPEE_DISCOUNT_COLUMNS,
    },
    fee_groups=(
        (
            "ค่าธรรมเนียม (Shopee)",
            (
                "ค่าจัดส่งรวม (Shopee)",
                "ค่าธรรมเนียมรวม (Shopee)",
                "ยอดรวมบริการเสริมเพิ่มมูลค่าสำหรับผู้ซื้อ",
            ),
        ),
    ),
    revenue_groups=(
        ("รายได้ (Shopee)", ("ยอดขายสินค้า (Shopee)", "ส่วนลดและโค้ดของผู้ขาย")),
    ),
)

LAZADA_REGISTRY = LabelRegistry(
    labels=LAZADA_REVENUE_NAMES + LAZADA_FEE_NAMES,
    children={"ค่าธรรมเนียมรวม (Lazada)": LAZADA_FEE_NAMES},
    fee_groups=(("ค่าธรรมเนียม (Lazada)", ("ค่าธรรมเนียมรวม (Lazada)",)),),
    revenue_groups=(("รายได้ (Lazada)", LAZADA_REVENUE_NAMES),),
    name_column=LAZADA_NAME_COLUMN,
    amount_column=LAZADA_AMOUNT_COLUMN,
)

REGISTRIES: dict[Platform, LabelRegistry] = {
    Platform.TIKTOK: TIKTOK_REGISTRY,
    Platform.SHOPEE: SHOPEE_REGISTRY,
    Platform.LAZADA: LAZADA_REGISTRY,
}


class _BreakdownBuilder:
    """Collects non-zero contributions for one aggregation run."""

    def __init__(self, registry: LabelRegistry) -> None:
        self.registry = registry
        self._flat: dict[str, list[float]] = defaultdict(list)
        self._children: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))

    def add(self, raw: Mapping[str, Any]) -> None:
        registry = self.registry
        for label in registry.labels:
            value = registry.contribution(raw, label)
            if value != 0:
                self._flat[label].append(value)
        for parent, child_labels in registry.children.items():
            for child in child_labels:
                value = registry.contribution(raw, child)
                if value != 0:
                    self._children[parent][child].append(value)

    def child_values(self, parent: str) -> dict[str, float]:
        collected = self._children.get(parent, {})
        out: dict[str, float] = {}
        for child in self.registry.children.get(parent, ()):
            if child in collected:
                total = math.fsum(collected[child])
                if total != 0:
                    out[child] = total
        return out

    def breakdown(self) -> dict[str, float]:
        values: dict[str, float] = {}
        for label in self.registry.ordered_labels():
            if label in self._children:
                # 子が存在する親は子の合計で上書き
                total = math.fsum(self.child_values(label).values())
            elif label in self._flat:
                total = math.fsum(self._flat[label])
            else:
                continue
            if total != 0:
                values[label] = total
        return values

    def groups(
        self, definitions: Sequence[tuple[str, Sequence[str]]], breakdown: Mapping[str, float]
    ) -> tuple[BreakdownGroup, ...]:
        out: list[BreakdownGroup] = []
        for title, labels in definitions:
            items: list[BreakdownNode] = []
            for label in labels:
                value = breakdown.get(label, 0.0)
                if value == 0:
                    continue
                children = tuple(BreakdownNode(c, v) for c, v in self.child_values(label).items())
                items.append(BreakdownNode(label, value, children))
            out.append(BreakdownGroup(title, tuple(items)))
        return tuple(out)


class _DailySeries:
    """Date -> (revenue, fees, adjustments) contribution lists."""

    def __init__(self) -> None:
        self._buckets: dict[str, tuple[list[float], list[float], list[float]]] = {}

    def add(self, date: str | None, row: ClassifiedRow) -> None:
        if not date:
            return
        revenue, fees, adjustments = self._buckets.setdefault(date, ([], [], []))
        revenue.append(row.revenue_confirmed)
        fees.append(row.fees)
        adjustments.append(row.adjustments)

    def buckets(self) -> tuple[DailyBucket, ...]:
        return tuple(
            DailyBucket(
                date=date,
                revenue=math.fsum(rev),
                fees=math.fsum(fee),
                adjustments=math.fsum(adj),
            )
            for date, (rev, fee, adj) in sorted(self._buckets.items())
        )


def _resolve_platform(rows: Sequence[ClassifiedRow], platform: Platform | str | None) -> Platform | None:
    if platform is not None:
        return Platform.parse(platform)
    platforms = {row.platform for row in rows}
    if len(platforms) > 1:
        names = ", ".join(sorted(p.value for p in platforms))
        raise ValueError(f"cannot aggregate rows of several platforms together: {names}")
    return next(iter(platforms), None)


def aggregate(
    rows: Iterable[ClassifiedRow], platform: Platform | str | None = None
) -> AggregateResult:
    """Fold classified rows into breakdown groups and daily buckets.

    Args:
        rows: Reconciled rows of one platform
        platform: Registry to use; inferred from the rows when omitted

    Returns:
        AggregateResult (empty breakdown when no platform can be determined)

    Raises:
        ValueError: if ``platform`` is omitted and the rows span several platforms
    """
    rows = list(rows)
    resolved = _resolve_platform(rows, platform)
    builder = _BreakdownBuilder(REGISTRIES[resolved]) if resolved is not None else None
    by_order = _DailySeries()
    by_payment = _DailySeries()

    for row in rows:
        if builder is not None:
            builder.add(row.raw)
        by_order.add(row.order_date, row)
        by_payment.add(row.payment_date or row.order_date, row)

    breakdown = builder.breakdown() if builder is not None else {}
    per_day = by_order.buckets()
    window = per_day[-TREND_WINDOW:]
    return AggregateResult(
        breakdown=breakdown,
        fee_groups=builder.groups(builder.registry.fee_groups, breakdown) if builder else (),
        revenue_groups=builder.groups(builder.registry.revenue_groups, breakdown) if builder else (),
        per_day=per_day,
        per_day_alt=by_payment.buckets(),
        trend=tuple(b.total for b in window),
        trend_dates=tuple(b.date for b in window),
        revenue=math.fsum(r.revenue_confirmed for r in rows),
        fees=math.fsum(r.fees for r in rows),
        adjustments=math.fsum(r.adjustments for r in rows),
        total_transactions=len(rows),
    )
