# Shared pytest fixtures
from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from settlement_recon.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    # StreamHandler は生成時の sys.stdout を掴むので毎テスト作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "data").mkdir()
    (tmp_path / "logs").mkdir()
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    return tmp_path


@pytest.fixture()
def sample_config_yaml() -> str:
    return """strict_mapping: false
page_size: 500
logs_directory: ./logs
code_maps:
  Shopee: codes.csv
header_aliases:
  Shopee:
    sku_code: ["รหัส SKU"]
province_aliases:
  เชียงใหม่: ["cnx"]
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "recon.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    (temp_workdir / "config" / "codes.csv").write_text(
        "code,name\nKL0-4010,Kelp Serum\nA1,Alpha Cream\n", encoding="utf-8"
    )
    return cfg


@pytest.fixture()
def write_xlsx() -> Callable[[Path, Sequence[str], Sequence[Sequence[Any]]], Path]:
    """Write a single-sheet xlsx with the header on row 1."""

    def _write(path: Path, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> Path:
        df = pd.DataFrame([list(r) for r in rows], columns=list(columns))
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Sheet1", index=False)
        return path

    return _write


SHOPEE_COLUMNS = [
    "หมายเลขคำสั่งซื้อ",
    "สถานะการสั่งซื้อ",
    "เลขอ้างอิง SKU (SKU Reference No.)",
    "จำนวน",
    "ราคาขายสุทธิ",
    "โค้ดส่วนลดชำระโดยผู้ขาย",
    "สถานะการคืนเงินหรือคืนสินค้า",
    "จำนวนที่ส่งคืน",
    "จังหวัด",
]


@pytest.fixture()
def shopee_sales_file(temp_workdir: Path, write_xlsx) -> Path:
    rows = [
        ["O1", "สำเร็จแล้ว", "A1", 2, 200, 20, "", 0, "จังหวัดเชียงใหม่"],
        ["O2", "ยกเลิกแล้ว", "A1", 1, 100, 0, "", 0, "กรุงเทพ"],
        ["O3", "สำเร็จแล้ว", "KL0-4010", 1, "฿1,000", 0, "คำขอได้รับการยอมรับแล้ว", 1, "Atlantis"],
        ["O4", "สำเร็จแล้ว", None, 1, 50, 0, "", 0, None],
    ]
    return write_xlsx(temp_workdir / "data" / "shopee.xlsx", SHOPEE_COLUMNS, rows)
