from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .classified_row import ClassifiedRow, RowIssue

"""Parse options and results for product-sales and settlement parsing."""

__all__ = [
    "ParseOptions",
    "ParseSummary",
    "ParseResult",
    "SettlementResult",
    "ReconciledBatch",
]


@dataclass(frozen=True)
class ParseOptions:
    """Caller supplied inputs for one parse run.

    Attributes:
        code_map: External code -> canonical product name
        strict_mapping: Drop rows whose code has no mapping instead of using the raw code
        province_aliases: Override alias table (canonical province -> aliases)
        extra_header_aliases: Logical field -> additional header spellings
    """
    code_map: Mapping[str, str] = field(default_factory=dict)
    strict_mapping: bool = False
    province_aliases: Mapping[str, Sequence[str]] | None = None
    extra_header_aliases: Mapping[str, Sequence[str]] | None = None


@dataclass(frozen=True)
class ParseSummary:
    total_rows: int = 0
    total_products: int = 0
    total_variants: int = 0
    total_qty: float = 0.0
    total_revenue: float = 0.0
    total_returned: float = 0.0
    warnings: tuple[str, ...] = ()
    unmapped_provinces: tuple[str, ...] = ()
    coerced_cells: int = 0  # 数値変換できず 0 にしたセル数
    disposition_counts: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ParseResult:
    rows: tuple[ClassifiedRow, ...]
    summary: ParseSummary
    unresolved_codes: tuple[str, ...] = ()
    issues: tuple[RowIssue, ...] = ()


@dataclass(frozen=True)
class SettlementResult:
    """Settlement statement rows (one CONFIRMED ClassifiedRow per statement line)."""
    rows: tuple[ClassifiedRow, ...]
    warnings: tuple[str, ...] = ()
    coerced_cells: int = 0
    issues: tuple[RowIssue, ...] = ()


@dataclass(frozen=True)
class ReconciledBatch:
    rows: tuple[ClassifiedRow, ...]
    duplicates_removed: int = 0
