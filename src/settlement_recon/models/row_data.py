from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""RowData: one raw spreadsheet row keyed by header name."""

__all__ = [
    "RowData",
]


@dataclass(frozen=True)
class RowData:
    """Raw row as read from an export file.

    ``row_number`` is the 1-based spreadsheet row (header = row 1, so the
    first data row is 2). Values keep the cell type pandas produced.
    """
    row_number: int
    values: dict[str, Any]  # ヘッダー名 -> セル値

    def get(self, column: str | None, default: Any = None) -> Any:
        """Cell value for ``column``; ``default`` if the column is unresolved or absent."""
        if column is None:
            return default
        return self.values.get(column, default)
