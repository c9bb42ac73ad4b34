from __future__ import annotations

import json
import re
from pathlib import Path

from settlement_recon.logging.error_log import ErrorLogBuffer
from settlement_recon.models import ErrorRecord


def record(row=2, error_type="MISSING_PRODUCT_CODE", message="row 2: missing product code, skipped"):
    return ErrorRecord.create(file="shopee.xlsx", platform="Shopee", row=row, error_type=error_type, message=message)


def test_flush_writes_json_lines(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(record())
    buf.append(record(row=-1, error_type="READ_ERROR", message="ไฟล์เสีย"))
    assert len(buf) == 2

    path = buf.flush()

    assert path is not None and path.parent == tmp_path / "logs"
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["row"] for line in lines] == [2, -1]
    # non-ASCII text is written as-is
    assert "ไฟล์เสีย" in lines[1]
    assert len(buf) == 0


def test_flush_appends_to_the_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(record())
    first = buf.flush()
    buf.append(record(row=3))
    second = buf.flush()
    assert first == second
    assert len(first.read_text(encoding="utf-8").splitlines()) == 2


def test_empty_flush_creates_no_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_default_directory_is_relative_logs(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(record())
    assert buf.flush().parent.resolve() == (temp_workdir / "logs").resolve()


def test_record_timestamp_is_utc_z():
    rec = record()
    assert rec.timestamp.endswith("Z")
    assert set(json.loads(rec.to_json_line())) == {"timestamp", "file", "platform", "row", "error_type", "message"}
