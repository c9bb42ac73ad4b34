from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from settlement_recon.cli import main as cli_main

"""Integration: settlement statements -> transactions + platform metrics."""

LAZADA_COLUMNS = ["หมายเลขคำสั่งซื้อ", "ชื่อรายการธุรกรรม", "จำนวนเงิน(รวมภาษี)", "วันที่สร้างคำสั่งซื้อ", "SKU ร้านค้า"]


class Cursor:
    def __init__(self) -> None:
        self.statements: list[str] = []

    def execute(self, sql, params=None):
        self.statements.append(sql)


class Ctx:
    def __init__(self, cursor):
        self.cursor = cursor

    def __enter__(self):
        return self.cursor

    def __exit__(self, *exc):
        return False


@pytest.fixture()
def captured(monkeypatch) -> dict[str, list[Any]]:
    import settlement_recon.db.upsert as up

    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
    tables: dict[str, list[Any]] = {}

    def fake_execute_values(cursor, sql, rows, page_size=1000):
        tables.setdefault(sql.split()[2], []).extend(rows)

    monkeypatch.setattr(up, "execute_values", fake_execute_values)
    with patch("settlement_recon.cli.__main__._db_connection", side_effect=lambda cfg: Ctx(Cursor())):
        yield tables


@pytest.fixture()
def lazada_statements(temp_workdir: Path, write_xlsx) -> list[Path]:
    march = write_xlsx(
        temp_workdir / "data" / "lazada_march.xlsx",
        LAZADA_COLUMNS,
        [
            ["L1", "ยอดรวมค่าสินค้า", "1,000.00", "2024-03-01", "SKU1"],
            ["L1", "หักค่าธรรมเนียมการขายสินค้า", -50, "2024-03-01", "SKU1"],
            [None, "ส่วนต่างค่าจัดส่ง", -7, "2024-03-02", None],
        ],
    )
    april = write_xlsx(
        temp_workdir / "data" / "lazada_april.xlsx",
        LAZADA_COLUMNS,
        [["L2", "ยอดรวมค่าสินค้า", 300, "2024-04-01", "SKU2"], ["L2", "ค่าธรรมเนียมการชำระเงิน", "n/a", "2024-04-01", "SKU2"]],
    )
    return [march, april]


def test_settlement_run_writes_transactions_and_metrics(temp_workdir, lazada_statements, captured, capsys):
    code = cli_main(["--platform", "Lazada", "--mode", "settlement", *map(str, lazada_statements)])
    out = capsys.readouterr().out

    assert code == 0
    assert "SUMMARY files=2 success=2 failed=0 rows=5 " in out
    assert "coerced=1" in out
    assert "warnings=1" in out  # synthetic order id

    transactions = captured["transactions"]
    assert len(transactions) == 5
    synthetic = [t for t in transactions if t[1].startswith("LAZADA-")]
    assert len(synthetic) == 1 and synthetic[0][1].endswith("-ROW4")

    (metrics,) = captured["platform_metrics"]
    assert metrics[0] == "Lazada"
    revenue, fees, adjustments, settlement = metrics[1:5]
    assert (revenue, fees, adjustments) == (1300.0, -57.0, 0.0)
    assert settlement == 1243.0
    assert metrics[6].adapted == ["2024-03-01", "2024-03-02", "2024-04-01"]
    fee_group = metrics[10].adapted[0]
    assert fee_group["items"][0]["label"] == "ค่าธรรมเนียมรวม (Lazada)"
    assert fee_group["items"][0]["value"] == -57.0
    assert metrics[12] == 5
    assert "metrics Lazada: revenue=1300.00 fees=-57.00" in out


def test_settlement_run_in_mock_mode_writes_nothing(temp_workdir, lazada_statements, monkeypatch, capsys):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    code = cli_main(["--platform", "Lazada", "--mode", "settlement", *map(str, lazada_statements)])
    assert code == 0
    assert "mode=mock" in capsys.readouterr().out
