from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime
from pathlib import Path

import pytest

from settlement_recon.models import (
    BatchStatsAccumulator,
    FileStat,
    FileStatus,
    Platform,
    ProcessingResult,
    RowData,
    UploadFile,
)


def test_total_files_sums_success_and_failed():
    now = datetime.now(UTC)
    result = ProcessingResult(
        success_files=2,
        failed_files=3,
        total_rows=0,
        start_time=now,
        end_time=now,
        elapsed_seconds=0.0,
        throughput_rows_per_sec=0.0,
    )
    assert result.total_files == 5
    assert result.metrics is None
    assert result.file_stats is None


def test_batch_stats_empty_and_single():
    acc = BatchStatsAccumulator()
    assert acc.get_stats() == (0, 0.0, 0.0)
    acc.add_batch_time(0.5)
    assert acc.get_stats() == (1, 0.5, 0.5)


def test_batch_stats_p95():
    acc = BatchStatsAccumulator()
    for value in range(1, 21):
        acc.add_batch_time(float(value))
    count, avg, p95 = acc.get_stats()
    assert count == 20
    assert avg == 10.5
    assert p95 == pytest.approx(19.05)


def test_upload_file_defaults_and_immutability():
    upload = UploadFile(path=Path("a.xlsx"), name="a.xlsx", platform=Platform.LAZADA)
    assert upload.status is FileStatus.PENDING
    assert upload.total_rows == 0
    with pytest.raises(FrozenInstanceError):
        upload.status = FileStatus.SUCCESS  # type: ignore[misc]


def test_file_stat_batch_fields_default_to_zero():
    stat = FileStat(file_name="a.xlsx", status="success", rows=3, elapsed_seconds=0.1)
    assert (stat.total_batches, stat.avg_batch_seconds, stat.p95_batch_seconds) == (0, 0.0, 0.0)


def test_row_data_get_handles_unresolved_columns():
    row = RowData(row_number=2, values={"A": 1})
    assert row.get("A") == 1
    assert row.get("B", "x") == "x"
    assert row.get(None, 0) == 0
