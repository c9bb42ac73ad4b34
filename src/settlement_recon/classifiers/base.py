from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable
from typing import Any, ClassVar

from ..excel.cells import NumberCoercer, cell_text, normalize_date
from ..excel.headers import ResolvedHeaders
from ..models.classified_row import ClassifiedRow, Disposition, RowIssue
from ..models.platform import Platform, PlatformSchema
from ..models.row_data import RowData
from ..services.code_resolver import CodeResolver
from ..services.province import ProvinceNormalizer

"""Row classifier base class and the per-run parse context.

Each platform gets one RowClassifier subclass holding its status state
machine. Everything a classifier mutates while walking a file lives in a
ParseContext owned by that single parse run.
"""

__all__ = [
    "ParseContext",
    "RowClassifier",
    "MISSING_PRODUCT_CODE",
    "UNMAPPED_CODE_STRICT",
]

logger = logging.getLogger(__name__)

MISSING_PRODUCT_CODE = "MISSING_PRODUCT_CODE"
UNMAPPED_CODE_STRICT = "UNMAPPED_CODE_STRICT"


class ParseContext:
    """Mutable state of one parse run.

    Mutation goes through the methods below only; a context is never shared
    between runs.
    """

    def __init__(
        self,
        resolver: CodeResolver,
        provinces: ProvinceNormalizer,
        strict_mapping: bool = False,
    ) -> None:
        self.resolver = resolver
        self.provinces = provinces
        self.strict_mapping = strict_mapping
        self.number = NumberCoercer()
        self.issues: list[RowIssue] = []
        self.disposition_counts: Counter[str] = Counter()
        self._unmapped_provinces: dict[str, None] = {}

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues]

    @property
    def unmapped_provinces(self) -> list[str]:
        return list(self._unmapped_provinces)

    @property
    def coerced_cells(self) -> int:
        return self.number.coerced

    def warn(self, row: int, kind: str, message: str) -> None:
        self.issues.append(RowIssue(row=row, kind=kind, message=f"row {row}: {message}"))
        logger.debug("row %s: %s", row, message)

    def count(self, disposition: Disposition) -> None:
        self.disposition_counts[disposition.value] += 1

    def product_name(self, code: str, row: int) -> str | None:
        """Canonical name for ``code``; None means the row must be dropped (strict mode)."""
        name = self.resolver.resolve(code)
        if name is not None:
            return name
        if self.strict_mapping:
            self.warn(row, UNMAPPED_CODE_STRICT, f"no mapping for code {code}, skipped")
            return None
        return code

    def province(self, raw: Any) -> tuple[str | None, str | None]:
        text = cell_text(raw)
        if not text:
            return None, None
        normalized = self.provinces.normalize(text)
        if normalized is None:
            self._unmapped_provinces.setdefault(text, None)
        return text, normalized


class RowClassifier(ABC):
    """Per-platform classification of raw rows into ClassifiedRow facts."""

    platform: ClassVar[Platform]
    schema: ClassVar[PlatformSchema]

    @abstractmethod
    def disposition(self, row: RowData, headers: ResolvedHeaders) -> Disposition:
        """Settlement disposition of a single raw row."""

    @abstractmethod
    def classify(
        self, row: RowData, headers: ResolvedHeaders, ctx: ParseContext
    ) -> ClassifiedRow | None:
        """Classify one row; None when the row is not emitted."""

    def classify_rows(
        self, rows: Iterable[RowData], headers: ResolvedHeaders, ctx: ParseContext
    ) -> list[ClassifiedRow]:
        out: list[ClassifiedRow] = []
        for row in rows:
            classified = self.classify(row, headers, ctx)
            if classified is not None:
                out.append(classified)
        return out

    # -- helpers shared by the subclasses --------------------------------------------

    @staticmethod
    def text(row: RowData, headers: ResolvedHeaders, field: str) -> str:
        return cell_text(row.get(headers.column(field)))

    @staticmethod
    def date(row: RowData, headers: ResolvedHeaders, field: str) -> str | None:
        return normalize_date(row.get(headers.column(field)))

    @staticmethod
    def number(row: RowData, headers: ResolvedHeaders, field: str, ctx: ParseContext) -> float:
        return ctx.number(row.get(headers.column(field)))
