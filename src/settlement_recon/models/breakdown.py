from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Aggregation output models: breakdown trees, daily buckets and the metrics document."""

__all__ = [
    "BreakdownNode",
    "BreakdownGroup",
    "DailyBucket",
    "AggregateResult",
]


@dataclass(frozen=True)
class BreakdownNode:
    """Label/value pair; a node with children carries the sum of its children."""
    label: str
    value: float
    children: tuple[BreakdownNode, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"label": self.label, "value": self.value}
        if self.children:
            out["children"] = [c.to_dict() for c in self.children]
        return out


@dataclass(frozen=True)
class BreakdownGroup:
    title: str
    items: tuple[BreakdownNode, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "items": [i.to_dict() for i in self.items]}


@dataclass(frozen=True)
class DailyBucket:
    date: str  # YYYY-MM-DD
    revenue: float = 0.0
    fees: float = 0.0
    adjustments: float = 0.0

    @property
    def total(self) -> float:
        return self.revenue + self.fees + self.adjustments

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "revenue": self.revenue,
            "fees": self.fees,
            "adjustments": self.adjustments,
        }


@dataclass(frozen=True)
class AggregateResult:
    """Output of one aggregation run.

    Attributes:
        breakdown: Label -> accumulated value (parents carry their children's sum)
        fee_groups: Fee breakdown groups, zero items removed
        revenue_groups: Revenue breakdown groups, zero items removed
        per_day: Buckets keyed by order date, ascending
        per_day_alt: Buckets keyed by payment date (falls back to order date), ascending
        trend: Last 7 ``per_day`` totals (revenue + fees + adjustments)
        trend_dates: Dates matching ``trend``
        revenue: Total revenue over all folded rows
        fees: Total fees
        adjustments: Total adjustments
        total_transactions: Number of folded rows
    """
    breakdown: dict[str, float] = field(default_factory=dict)
    fee_groups: tuple[BreakdownGroup, ...] = ()
    revenue_groups: tuple[BreakdownGroup, ...] = ()
    per_day: tuple[DailyBucket, ...] = ()
    per_day_alt: tuple[DailyBucket, ...] = ()
    trend: tuple[float, ...] = ()
    trend_dates: tuple[str, ...] = ()
    revenue: float = 0.0
    fees: float = 0.0
    adjustments: float = 0.0
    total_transactions: int = 0

    @property
    def settlement(self) -> float:
        return self.revenue + self.fees + self.adjustments

    def to_metrics_document(self) -> dict[str, Any]:
        """Document shape accepted by the platform metrics store (one per platform)."""
        return {
            "revenue": self.revenue,
            "fees": self.fees,
            "adjustments": self.adjustments,
            "settlement": self.settlement,
            "breakdown": dict(self.breakdown),
            "fee_groups": [g.to_dict() for g in self.fee_groups],
            "revenue_groups": [g.to_dict() for g in self.revenue_groups],
            "trend": list(self.trend),
            "trend_dates": list(self.trend_dates),
            "per_day": [b.to_dict() for b in self.per_day],
            "per_day_paid": [b.to_dict() for b in self.per_day_alt],
            "total_transactions": self.total_transactions,
        }
