from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from pathlib import Path

from ..classifiers.base import ParseContext
from ..classifiers.registry import get_classifier
from ..excel.headers import resolve_headers
from ..excel.reader import read_spreadsheet
from ..models.classified_row import ClassifiedRow
from ..models.parse_result import ParseOptions, ParseResult, ParseSummary
from ..models.platform import Platform
from ..models.row_data import RowData
from .code_resolver import CodeResolver
from .province import ProvinceNormalizer

"""Product-sales parse entry point.

Header resolution -> row classification (with code and province resolution)
-> summary. File-level structural problems raise MissingColumnsError; row
level problems end up in ``summary.warnings`` and the parse completes with
partial results.
"""

__all__ = [
    "parse",
    "parse_rows",
    "summarize",
]

logger = logging.getLogger(__name__)


def summarize(rows: Sequence[ClassifiedRow], ctx: ParseContext) -> ParseSummary:
    """Build the ParseSummary for the rows a run emitted."""
    unresolved = ctx.resolver.unresolved
    return ParseSummary(
        total_rows=len(rows),
        total_products=len({r.product_name for r in rows}),
        total_variants=len({r.product_code for r in rows}),
        total_qty=math.fsum(r.quantity_confirmed for r in rows),
        total_revenue=math.fsum(r.revenue_confirmed for r in rows),
        total_returned=math.fsum(r.quantity_returned for r in rows),
        warnings=tuple(ctx.warnings + [f"no mapping for code {c}" for c in unresolved]),
        unmapped_provinces=tuple(ctx.unmapped_provinces),
        coerced_cells=ctx.coerced_cells,
        disposition_counts=dict(ctx.disposition_counts),
    )


def parse_rows(
    platform: Platform | str,
    rows: Iterable[RowData],
    columns: Iterable[str],
    options: ParseOptions | None = None,
) -> ParseResult:
    """Classify already-read rows.

    Args:
        platform: Marketplace the export comes from
        rows: Raw rows in file order
        columns: Header row of the file
        options: Code map / strict mode / alias overrides

    Returns:
        ParseResult with emitted rows, summary and unresolved codes

    Raises:
        MissingColumnsError: if any required column cannot be resolved
    """
    options = options or ParseOptions()
    classifier = get_classifier(platform)
    schema = classifier.schema.with_extra_aliases(options.extra_header_aliases)
    headers = resolve_headers(columns, schema)

    ctx = ParseContext(
        resolver=CodeResolver(options.code_map),
        provinces=ProvinceNormalizer(options.province_aliases),
        strict_mapping=options.strict_mapping,
    )
    classified = classifier.classify_rows(rows, headers, ctx)
    summary = summarize(classified, ctx)
    logger.debug(
        "%s: classified=%d dispositions=%s coerced=%d",
        classifier.platform.value,
        len(classified),
        summary.disposition_counts,
        summary.coerced_cells,
    )
    return ParseResult(
        rows=tuple(classified),
        summary=summary,
        unresolved_codes=tuple(ctx.resolver.unresolved),
        issues=tuple(ctx.issues),
    )


def parse(
    platform: Platform | str, data: bytes | Path, options: ParseOptions | None = None
) -> ParseResult:
    """Parse a product-sales export (first sheet, header on row 1)."""
    sheet = read_spreadsheet(data)
    return parse_rows(platform, sheet.rows, sheet.columns, options)
