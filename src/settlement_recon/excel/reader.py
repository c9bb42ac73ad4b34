from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.row_data import RowData

"""Spreadsheet reader.

Marketplace exports carry their header on the first row; every following row
is data. The first sheet of the workbook is read (OOXML via openpyxl, legacy
.xls via xlrd; pandas picks the engine from the file signature). Cells are read
with ``dtype=object`` so long numeric ids are not widened to float.
"""

__all__ = [
    "SheetData",
    "SpreadsheetReadError",
    "read_spreadsheet",
    "read_table_file",
    "rows_from_frame",
]

CSV_ENCODINGS = ("utf-8-sig", "cp874")  # Thai Windows exports fall back to cp874


class SpreadsheetReadError(Exception):
    """Raised when a file cannot be read as a spreadsheet."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[RowData]


def _header_names(values: list[Any]) -> list[str]:
    columns: list[str] = []
    seen: dict[str, int] = {}
    for idx, value in enumerate(values):
        name = "" if pd.isna(value) else str(value).strip()
        if not name:
            name = f"Unnamed: {idx}"
        if name in seen:
            seen[name] += 1
            name = f"{name}.{seen[name]}"
        else:
            seen[name] = 0
        columns.append(name)
    return columns


def rows_from_frame(df: pd.DataFrame, first_row_number: int = 2) -> list[RowData]:
    """Convert a DataFrame (header already applied) to RowData.

    Rows whose cells are all empty are skipped; row numbers still follow the
    spreadsheet so warnings point at the right line.
    """
    rows: list[RowData] = []
    columns = [str(c) for c in df.columns]
    for offset, raw in enumerate(df.itertuples(index=False, name=None)):
        values: dict[str, Any] = {}
        empty = True
        for col, val in zip(columns, raw, strict=False):
            if val is None or (not isinstance(val, str) and pd.isna(val)):
                values[col] = None
                continue
            if isinstance(val, str) and not val.strip():
                values[col] = None
                continue
            values[col] = val
            empty = False
        if empty:
            continue
        rows.append(RowData(row_number=first_row_number + offset, values=values))
    return rows


def read_spreadsheet(source: bytes | Path, sheet: str | int = 0) -> SheetData:
    """Read one sheet of an xlsx/xls export.

    Args:
        source: Raw file bytes (upload blob) or a path
        sheet: Sheet name or index (default: first sheet)

    Returns:
        SheetData with trimmed column names and RowData rows

    Raises:
        SpreadsheetReadError: if the workbook cannot be opened or the sheet is missing
    """
    handle: Any = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
    try:
        xls = pd.ExcelFile(handle)
        names = [str(n) for n in xls.sheet_names]
        sheet_name = names[sheet] if isinstance(sheet, int) else str(sheet)
        if sheet_name not in names:
            raise SpreadsheetReadError(f"sheet '{sheet_name}' not found (available: {names})")
        # ヘッダなしで生読みし 1 行目をヘッダとして適用
        df = xls.parse(sheet_name, header=None, dtype=object, keep_default_na=False, na_values=[""])
    except SpreadsheetReadError:
        raise
    except Exception as e:
        raise SpreadsheetReadError(f"cannot read spreadsheet: {e}") from e

    if df.shape[0] == 0:
        return SheetData(sheet_name=sheet_name, columns=[], rows=[])

    columns = _header_names(df.iloc[0].tolist())
    body = df.iloc[1:].copy()
    body.columns = columns
    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows_from_frame(body))


def read_table_file(path: Path) -> SheetData:
    """Read a master-data table (code map, alias list) from xlsx/xls/csv."""
    if path.suffix.lower() != ".csv":
        return read_spreadsheet(path)

    last_error: Exception | None = None
    for encoding in CSV_ENCODINGS:
        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding=encoding)
            break
        except UnicodeDecodeError as e:
            last_error = e
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise SpreadsheetReadError(f"cannot read csv {path}: {e}") from e
    else:
        raise SpreadsheetReadError(f"cannot decode csv {path}: {last_error}")

    df.columns = _header_names(list(df.columns))
    return SheetData(sheet_name=path.stem, columns=list(df.columns), rows=rows_from_frame(df))
