from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .platform import Platform

"""ClassifiedRow: the canonical per-row fact produced by the row classifiers.

Both product-sales exports and settlement statements end up as ClassifiedRow
instances so that the aggregation engine and the batch reconciler work on a
single shape. Instances are never mutated after construction.
"""

__all__ = [
    "Disposition",
    "ClassifiedRow",
    "RowIssue",
]


class Disposition(Enum):
    """Settlement outcome of one row."""
    CONFIRMED = "confirmed"
    RETURNED = "returned"
    CANCELLED = "cancelled"
    IGNORED = "ignored"

    @property
    def emitted(self) -> bool:
        # CANCELLED / IGNORED は集計対象外 (件数のみ summary へ)
        return self in (Disposition.CONFIRMED, Disposition.RETURNED)

    @property
    def entry_type(self) -> str:
        return "return" if self is Disposition.RETURNED else "sale"


@dataclass(frozen=True)
class ClassifiedRow:
    """One classified spreadsheet row (or one grouped line item for Lazada).

    Attributes:
        platform: Source marketplace
        product_code: Platform-specific product/variant code as found in the file
        product_name: Canonical name from the code map, or the raw code on a miss
        quantity_confirmed: Units sold (0 for returns)
        quantity_returned: Units returned (0 for plain sales)
        revenue_confirmed: Revenue contribution (0 for returns)
        row_number: 1-based spreadsheet row (header is row 1)
        disposition: CONFIRMED or RETURNED for emitted rows
        order_id: Order identifier (external id for settlement rows)
        province_raw: Province text as found in the file
        province_normalized: Canonical province or None
        order_date: ISO calendar day of the order
        payment_date: ISO calendar day of payment/settlement, may be None
        fees: Fee total (settlement rows only, signed as in the statement)
        adjustments: Adjustment total (settlement rows only)
        entry_type: "sale"/"return" for product sales, statement type for settlement rows
        raw: Source cells, consumed by the breakdown label registry
    """
    platform: Platform
    product_code: str
    product_name: str
    quantity_confirmed: float
    quantity_returned: float
    revenue_confirmed: float
    row_number: int
    disposition: Disposition
    order_id: str | None = None
    province_raw: str | None = None
    province_normalized: str | None = None
    order_date: str | None = None
    payment_date: str | None = None
    fees: float = 0.0
    adjustments: float = 0.0
    entry_type: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def settlement(self) -> float:
        return self.revenue_confirmed + self.fees + self.adjustments

    @property
    def dedup_key(self) -> tuple[str, str, str, str]:
        return (self.platform.value, self.order_id or "", self.product_code, self.entry_type)


@dataclass(frozen=True)
class RowIssue:
    """Non-fatal, row-level problem collected during a parse run.

    ``kind`` is an UPPER_SNAKE classification reused as ErrorRecord.error_type.
    """
    row: int
    kind: str
    message: str
