from __future__ import annotations

import math
import numbers
import re
from datetime import date, datetime
from typing import Any

import pandas as pd

"""Tolerant cell coercion shared by every parser.

Marketplace exports mix real numbers with text such as "฿1,234.50" or
"'120'". ``parse_number`` strips a fixed set of separators, currency glyphs
and quote characters before conversion and returns None when the text still
is not a finite number; ``to_number`` maps that to 0. Stored data depends on
this exact character set, so it must not be widened silently:

- removed: comma, any whitespace, ฿ $ € £ ¥
- removed: double and single quotes
"""

__all__ = [
    "NumberCoercer",
    "cell_text",
    "is_blank",
    "normalize_date",
    "parse_number",
    "to_number",
]

_STRIP_CHARS = re.compile(r"[,\s฿$€£¥]")
_STRIP_QUOTES = re.compile(r"[\"']")


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    return isinstance(value, str) and not value.strip()


def parse_number(value: Any) -> float | None:
    """Parse a cell into a float.

    Returns:
        The number, 0.0 for empty cells, or None when the cell is not numeric
    """
    if isinstance(value, bool):
        return None
    if is_blank(value):
        return 0.0
    if isinstance(value, numbers.Real):
        return float(value) if math.isfinite(value) else None
    text = _STRIP_CHARS.sub("", str(value).strip())
    text = _STRIP_QUOTES.sub("", text)
    if not text:
        return 0.0
    if "_" in text:  # float() は "1_000" を受け付けてしまう
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def to_number(value: Any) -> float:
    """Like ``parse_number`` but never fails: unparsable cells become 0."""
    number = parse_number(value)
    return 0.0 if number is None else number


class NumberCoercer:
    """``to_number`` that counts cells silently coerced to zero.

    One instance per parse run; ``coerced`` feeds the per-file summary.
    """

    def __init__(self) -> None:
        self.coerced = 0

    def __call__(self, value: Any) -> float:
        number = parse_number(value)
        if number is None:
            self.coerced += 1
            return 0.0
        return number


def cell_text(value: Any) -> str:
    """Render a cell as trimmed text.

    Whole floats lose their ".0" so numeric SKU / order ids read back as typed.
    """
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def normalize_date(value: Any) -> str | None:
    """Convert a date-like cell to an ISO calendar day (YYYY-MM-DD).

    The calendar day written in the spreadsheet is kept as-is; timezone-aware
    values are not shifted to UTC first.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):  # pd.Timestamp も datetime のサブクラス
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        parsed = pd.to_datetime(value.strip(), errors="coerce")
        if parsed is pd.NaT or pd.isna(parsed):
            return None
        return parsed.date().isoformat()
    return None
