from __future__ import annotations

import json
from pathlib import Path

import pytest

from settlement_recon.config.loader import load_config
from settlement_recon.models import EngineConfig, Platform
from settlement_recon.services.orchestrator import (
    ProcessingError,
    process_files,
    resolve_code_map,
    resolve_province_aliases,
)

CODE_MAP = {"KL0-4010": "Kelp Serum", "A1": "Alpha Cream"}


class FakeCursor:
    def __init__(self, fail_on: str | None = None, rows=()):
        self.statements: list[str] = []
        self.fail_on = fail_on
        self.rows = list(rows)

    def execute(self, sql, params=None):
        self.statements.append(sql)
        if self.fail_on and sql.startswith(self.fail_on):
            raise RuntimeError(f"{self.fail_on} failed")

    def fetchall(self):
        return self.rows

    def transaction_log(self) -> list[str]:
        return [s for s in self.statements if s in ("BEGIN", "COMMIT", "ROLLBACK")]


@pytest.fixture()
def upserts(monkeypatch):
    import settlement_recon.db.upsert as up

    calls: list[tuple[str, list]] = []

    def fake_execute_values(cursor, sql, rows, page_size=1000):
        if getattr(cursor, "fail_on", None) == "INSERT":
            raise RuntimeError("unique violation")
        calls.append((sql, list(rows)))

    monkeypatch.setattr(up, "execute_values", fake_execute_values)
    return calls


@pytest.fixture()
def config(temp_workdir: Path) -> EngineConfig:
    return EngineConfig(logs_directory=str(temp_workdir / "logs"), page_size=100)


def error_records(temp_workdir: Path) -> list[dict]:
    records = []
    for path in sorted((temp_workdir / "logs").glob("errors-*.log")):
        records += [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    return records


def test_mock_mode_parses_and_logs_row_issues(config, shopee_sales_file, temp_workdir):
    result = process_files(config, "Shopee", [shopee_sales_file], code_map=CODE_MAP)

    assert (result.success_files, result.failed_files) == (1, 0)
    assert result.total_rows == 2
    assert result.warnings == 1
    assert result.unresolved_codes == 0
    assert result.metrics is None
    stat = result.file_stats[0]
    assert (stat.file_name, stat.status, stat.rows, stat.total_batches) == ("shopee.xlsx", "success", 2, 0)

    (record,) = error_records(temp_workdir)
    assert record["error_type"] == "MISSING_PRODUCT_CODE"
    assert record["row"] == 5
    assert record["platform"] == "Shopee"


def test_live_mode_wraps_each_file_in_a_transaction(config, shopee_sales_file, upserts):
    cursor = FakeCursor()
    result = process_files(config, Platform.SHOPEE, [shopee_sales_file], cursor=cursor, code_map=CODE_MAP)

    assert cursor.transaction_log() == ["BEGIN", "COMMIT"]
    (sql, rows), = upserts
    assert sql.startswith("INSERT INTO product_sales")
    assert [r[1] for r in rows] == ["O1", "O3"]
    assert result.file_stats[0].total_batches == 1


def test_storage_error_rolls_back_and_continues(config, shopee_sales_file, upserts, temp_workdir):
    cursor = FakeCursor(fail_on="INSERT")
    result = process_files(config, "Shopee", [shopee_sales_file, shopee_sales_file], cursor=cursor, code_map=CODE_MAP)

    assert (result.success_files, result.failed_files) == (0, 2)
    assert result.total_rows == 0
    assert cursor.transaction_log() == ["BEGIN", "ROLLBACK", "BEGIN", "ROLLBACK"]
    storage = [r for r in error_records(temp_workdir) if r["error_type"] == "STORAGE_ERROR"]
    assert len(storage) == 2
    assert storage[0]["row"] == -1
    assert "unique violation" in storage[0]["message"]


def test_commit_failure_is_recorded(config, shopee_sales_file, upserts, temp_workdir):
    cursor = FakeCursor(fail_on="COMMIT")
    result = process_files(config, "Shopee", [shopee_sales_file], cursor=cursor, code_map=CODE_MAP)
    assert result.failed_files == 1
    assert cursor.statements[-1] == "ROLLBACK"
    assert "TRANSACTION_COMMIT_ERROR" in {r["error_type"] for r in error_records(temp_workdir)}


def test_partial_failure_keeps_good_files(config, shopee_sales_file, temp_workdir, write_xlsx):
    broken = write_xlsx(temp_workdir / "data" / "broken.xlsx", ["foo", "bar"], [[1, 2]])
    missing = temp_workdir / "data" / "absent.xlsx"

    result = process_files(config, "Shopee", [broken, shopee_sales_file, missing], code_map=CODE_MAP)

    assert (result.success_files, result.failed_files) == (1, 2)
    assert [s.status for s in result.file_stats] == ["failed", "success", "failed"]
    types = {(r["file"], r["error_type"]) for r in error_records(temp_workdir)}
    assert ("broken.xlsx", "MISSING_COLUMNS") in types
    assert ("absent.xlsx", "READ_ERROR") in types


def test_strict_override(config, shopee_sales_file):
    result = process_files(config, "Shopee", [shopee_sales_file], code_map={"A1": "Alpha"}, strict_mapping=True)
    assert result.total_rows == 1
    assert result.unresolved_codes == 1


TIKTOK_STATEMENT_COLS = [
    "Order/adjustment ID",
    "Type",
    "Order created time",
    "Order settled time",
    "Subtotal before discounts",
    "Seller discounts",
    "Transaction fee",
    "Ajustment amount",
]


@pytest.fixture()
def tiktok_statement(temp_workdir: Path, write_xlsx) -> Path:
    rows = [
        ["577", "Order", "2024-03-01", "2024-03-08", 100, -10, -5, 0],
        ["578", "Order", "2024-03-02", "2024-03-08", 200, 0, -8, 1],
        [None, "Order", "2024-03-02", None, 1, 0, 0, 0],
    ]
    return write_xlsx(temp_workdir / "data" / "income.xlsx", TIKTOK_STATEMENT_COLS, rows)


def test_settlement_mode_aggregates_metrics(config, tiktok_statement, upserts):
    cursor = FakeCursor()
    result = process_files(config, "TikTok", [tiktok_statement], mode="settlement", cursor=cursor)

    assert result.success_files == 1
    assert result.total_rows == 2
    assert result.warnings == 1
    metrics = result.metrics
    assert metrics.revenue == 290
    assert metrics.fees == -13
    assert metrics.adjustments == 1
    assert metrics.total_transactions == 2
    assert [sql.split(" (")[0] for sql, _ in upserts] == ["INSERT INTO transactions", "INSERT INTO platform_metrics"]
    assert cursor.statements == ["BEGIN", "COMMIT", "BEGIN", "COMMIT"]


def test_metrics_failure_does_not_fail_the_run(config, tiktok_statement, monkeypatch, temp_workdir):
    import settlement_recon.db.upsert as up

    def fake_execute_values(cursor, sql, rows, page_size=1000):
        if "platform_metrics" in sql:
            raise RuntimeError("metrics table locked")

    monkeypatch.setattr(up, "execute_values", fake_execute_values)
    cursor = FakeCursor()
    result = process_files(config, "TikTok", [tiktok_statement], mode="settlement", cursor=cursor)

    assert (result.success_files, result.failed_files) == (1, 0)
    assert result.metrics is not None
    (record,) = [r for r in error_records(temp_workdir) if r["error_type"] == "STORAGE_ERROR"]
    assert record["file"] == "platform_metrics"
    assert cursor.statements[-1] == "ROLLBACK"


def test_settlement_mode_in_mock_mode_still_returns_metrics(config, tiktok_statement):
    result = process_files(config, "TikTok", [tiktok_statement], mode="settlement")
    assert result.metrics.settlement == 290 - 13 + 1


def test_unknown_mode(config):
    with pytest.raises(ProcessingError, match="unknown mode"):
        process_files(config, "Shopee", [], mode="refunds")


def test_no_files(config, temp_workdir):
    result = process_files(config, "Lazada", [])
    assert result.total_files == 0
    assert list((temp_workdir / "logs").iterdir()) == []


def test_resolve_code_map_priority(config, temp_workdir, write_config):
    explicit = temp_workdir / "explicit.csv"
    explicit.write_text("code,name\nX,Explicit\n", encoding="utf-8")
    cfg = load_config(write_config)
    assert resolve_code_map(cfg, Platform.SHOPEE, code_map_path=explicit) == {"X": "Explicit"}
    assert resolve_code_map(cfg, Platform.SHOPEE)["A1"] == "Alpha Cream"

    cursor = FakeCursor(rows=[("T1", "From DB")])
    assert resolve_code_map(cfg, Platform.TIKTOK, cursor) == {"T1": "From DB"}
    assert resolve_code_map(cfg, Platform.TIKTOK) == {}


def test_resolve_code_map_bad_file(config, temp_workdir):
    with pytest.raises(ProcessingError, match="code map"):
        resolve_code_map(config, Platform.SHOPEE, code_map_path=temp_workdir / "nope.csv")


def test_province_aliases_merge_config_over_db(config):
    cfg = EngineConfig(province_aliases={"เชียงใหม่": ["CNX"], "ตาก": ["tk"]})
    cursor = FakeCursor(rows=[("เชียงใหม่", "nopping")])
    assert resolve_province_aliases(cfg, cursor) == {"เชียงใหม่": ["nopping", "cnx"], "ตาก": ["tk"]}
    assert resolve_province_aliases(EngineConfig()) == {}
