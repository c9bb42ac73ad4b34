from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..excel.cells import cell_text
from ..excel.headers import MissingColumnsError
from ..excel.reader import read_table_file
from ..models.platform import Platform
from ..models.row_data import RowData

"""Master-data providers: product code maps and province aliases.

Code maps come either from a spreadsheet/CSV (``load_code_map_file``) or
from the ``product_code_map`` table; province aliases come from the
``province_aliases`` table. Both are read once before parsing starts.
"""

__all__ = [
    "PLATFORM_KEYS",
    "CODE_KEYS",
    "NAME_KEYS",
    "load_code_map_file",
    "fetch_code_map",
    "fetch_province_aliases",
]

logger = logging.getLogger(__name__)

PLATFORM_KEYS = ("platform", "Platform", "แพลตฟอร์ม")
CODE_KEYS = ("code", "external_code", "product_id", "รหัสตัวเลือกสินค้า", "sku")
NAME_KEYS = ("name", "title", "product_name", "ชื่อสินค้า")


def _pick(row: RowData, keys: tuple[str, ...]) -> str:
    # 行ごとに最初の非空キーを採用
    for key in keys:
        text = cell_text(row.get(key))
        if text:
            return text
    return ""


def load_code_map_file(path: Path, platform: Platform | str | None = None) -> dict[str, str]:
    """Read an external code -> product name table.

    Args:
        path: xlsx/xls/csv file
        platform: When given and the file has a platform column, keep only that platform's rows

    Returns:
        Code -> canonical product name (later rows override earlier ones)

    Raises:
        MissingColumnsError: if the file has no code column or no name column
        SpreadsheetReadError: if the file cannot be read
    """
    sheet = read_table_file(path)
    columns = set(sheet.columns)
    missing = [keys[0] for keys in (CODE_KEYS, NAME_KEYS) if not columns.intersection(keys)]
    if missing:
        raise MissingColumnsError(missing, platform=f"code map {path.name}")

    wanted = Platform.parse(platform) if platform is not None else None
    has_platform = bool(columns.intersection(PLATFORM_KEYS))

    mapping: dict[str, str] = {}
    skipped = 0
    for row in sheet.rows:
        if wanted is not None and has_platform:
            row_platform = _pick(row, PLATFORM_KEYS)
            if row_platform.lower() != wanted.value.lower():
                continue
        code = _pick(row, CODE_KEYS)
        name = _pick(row, NAME_KEYS)
        if not code or not name:
            skipped += 1
            continue
        mapping[code] = name
    if skipped:
        logger.warning("code map %s: %d rows without code or name skipped", path.name, skipped)
    logger.debug("code map %s: %d entries", path.name, len(mapping))
    return mapping


def fetch_code_map(cursor: Any, platform: Platform | str) -> dict[str, str]:
    """Active ``product_code_map`` entries of ``platform``."""
    platform = Platform.parse(platform)
    cursor.execute(
        "SELECT external_code, name FROM product_code_map "
        "WHERE platform = %s AND COALESCE(is_active, TRUE)",
        (platform.value,),
    )
    mapping: dict[str, str] = {}
    for code, name in cursor.fetchall():
        code_text = cell_text(code)
        if code_text and name:
            mapping[code_text] = str(name)
    return mapping


def fetch_province_aliases(cursor: Any) -> dict[str, list[str]]:
    """Canonical province -> lower-cased aliases from ``province_aliases``."""
    cursor.execute("SELECT standard_th, alias FROM province_aliases")
    aliases: dict[str, list[str]] = {}
    for standard, alias in cursor.fetchall():
        if not standard or alias is None:
            continue
        aliases.setdefault(str(standard), []).append(str(alias).lower())
    return aliases
