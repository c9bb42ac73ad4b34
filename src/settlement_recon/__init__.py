"""Marketplace settlement reconciliation engine.

Parses Shopee / TikTok Shop / Lazada exports into ClassifiedRow facts,
deduplicates them and aggregates settlement breakdowns and daily series.
"""

from .excel.headers import MissingColumnsError
from .models import (
    AggregateResult,
    ClassifiedRow,
    Disposition,
    ParseOptions,
    ParseResult,
    Platform,
    ReconciledBatch,
    SettlementResult,
    UnknownPlatformError,
)
from .services.aggregation import aggregate
from .services.code_resolver import normalize_code
from .services.product_sales import parse, parse_rows
from .services.province import normalize_province
from .services.reconcile import reconcile, reconcile_result
from .services.settlement import parse_settlement

__all__ = [
    "AggregateResult",
    "ClassifiedRow",
    "Disposition",
    "MissingColumnsError",
    "ParseOptions",
    "ParseResult",
    "Platform",
    "ReconciledBatch",
    "SettlementResult",
    "UnknownPlatformError",
    "aggregate",
    "normalize_code",
    "normalize_province",
    "parse",
    "parse_rows",
    "parse_settlement",
    "reconcile",
    "reconcile_result",
]

__version__ = "0.1.0"
