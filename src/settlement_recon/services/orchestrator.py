from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import psycopg2

from ..db.providers import fetch_code_map, fetch_province_aliases, load_code_map_file
from ..db.upsert import (
    BatchMetrics,
    UpsertError,
    upsert_platform_metrics,
    upsert_product_sales,
    upsert_transactions,
)
from ..excel.headers import MissingColumnsError
from ..excel.reader import SpreadsheetReadError, read_spreadsheet
from ..logging.error_log import ErrorLogBuffer
from ..models.breakdown import AggregateResult
from ..models.classified_row import ClassifiedRow, RowIssue
from ..models.config_models import EngineConfig
from ..models.error_record import ErrorRecord
from ..models.parse_result import ParseOptions
from ..models.platform import Platform
from ..models.processing_result import BatchStatsAccumulator, FileStat, ProcessingResult
from ..models.upload_file import FileStatus, UploadFile
from .aggregation import aggregate
from .product_sales import parse_rows
from .progress import ProgressTracker
from .reconcile import reconcile, reconcile_result
from .settlement import parse_settlement_rows

"""Service orchestration: export files -> parse -> reconcile -> upsert.

Each file is processed on its own: read, parse (product sales or settlement
statement), reconcile, then upsert inside a per-file transaction when a
cursor is available (``cursor=None`` is mock mode). A failing file is
rolled back and recorded; the remaining files continue.

In settlement mode the reconciled rows of all successful files are folded
into one AggregateResult and stored as the platform's metrics document.
"""

__all__ = [
    "MODE_SALES",
    "MODE_SETTLEMENT",
    "MODES",
    "ProcessingError",
    "process_files",
    "resolve_code_map",
    "resolve_province_aliases",
]

logger = logging.getLogger(__name__)

MODE_SALES = "sales"
MODE_SETTLEMENT = "settlement"
MODES = (MODE_SALES, MODE_SETTLEMENT)

FILE_LEVEL_ROW = -1


class ProcessingError(Exception):
    """Fatal error that prevents processing any file."""


@dataclass
class _FileOutcome:
    upload: UploadFile
    rows: tuple[ClassifiedRow, ...] = ()
    batch_stats: BatchStatsAccumulator = field(default_factory=BatchStatsAccumulator)


def resolve_code_map(
    config: EngineConfig,
    platform: Platform,
    cursor: Any = None,
    code_map_path: Path | None = None,
) -> dict[str, str]:
    """Code map for a run: explicit file > config ``code_maps`` file > database table.

    Raises:
        ProcessingError: if a configured code map file or the code map table cannot be read
    """
    path = code_map_path
    if path is None:
        configured = config.code_map_for(platform.value)
        path = Path(configured) if configured else None
    if path is not None:
        try:
            return load_code_map_file(path, platform)
        except (OSError, SpreadsheetReadError, MissingColumnsError) as e:
            raise ProcessingError(f"code map {path}: {e}") from e
    if cursor is not None:
        try:
            return fetch_code_map(cursor, platform)
        except psycopg2.Error as e:
            raise ProcessingError(f"product_code_map: {e}") from e
    logger.debug("no code map configured for %s; raw codes are used as names", platform.value)
    return {}


def resolve_province_aliases(config: EngineConfig, cursor: Any = None) -> dict[str, list[str]]:
    """Database alias table with the config ``province_aliases`` merged on top.

    Raises:
        ProcessingError: if the alias table cannot be read
    """
    aliases: dict[str, list[str]] = {}
    if cursor is not None:
        try:
            aliases.update(fetch_province_aliases(cursor))
        except psycopg2.Error as e:
            raise ProcessingError(f"province_aliases: {e}") from e
    for canonical, extra in config.province_aliases.items():
        aliases[canonical] = [*aliases.get(canonical, []), *(a.lower() for a in extra)]
    return aliases


def process_files(
    config: EngineConfig,
    platform: Platform | str,
    paths: Sequence[Path],
    mode: str = MODE_SALES,
    cursor: Any = None,
    code_map: Mapping[str, str] | None = None,
    strict_mapping: bool | None = None,
) -> ProcessingResult:
    """Process export files of one platform.

    Args:
        config: Engine configuration
        platform: Marketplace of every file in ``paths``
        paths: Export files, processed in order
        mode: ``sales`` (product-sales exports) or ``settlement`` (statements)
        cursor: Database cursor (None = mock mode, nothing is written)
        code_map: Pre-loaded code map; resolved via ``resolve_code_map`` when None
        strict_mapping: Overrides ``config.strict_mapping`` when not None

    Returns:
        ProcessingResult with per-file stats (and metrics in settlement mode)

    Raises:
        UnknownPlatformError: for an unsupported platform name
        ProcessingError: for an unknown mode, an unreadable code map or alias table
    """
    platform = Platform.parse(platform)
    if mode not in MODES:
        raise ProcessingError(f"unknown mode '{mode}' (expected one of: {', '.join(MODES)})")

    start_time = datetime.now(UTC)
    error_log = ErrorLogBuffer(config.logs_directory)

    options: ParseOptions | None = None
    if mode == MODE_SALES:
        if code_map is None:
            code_map = resolve_code_map(config, platform, cursor)
        options = ParseOptions(
            code_map=dict(code_map),
            strict_mapping=config.strict_mapping if strict_mapping is None else strict_mapping,
            province_aliases=resolve_province_aliases(config, cursor) or None,
            extra_header_aliases=config.header_aliases_for(platform.value) or None,
        )

    file_stats: list[FileStat] = []
    outcomes: list[_FileOutcome] = []
    with ProgressTracker(len(paths)) as progress:
        for path in paths:
            progress.start_file(path)
            outcome = _process_single_file(
                path, platform, mode, options, cursor, error_log, config.page_size
            )
            outcomes.append(outcome)
            upload = outcome.upload
            progress.finish_file(rows=upload.total_rows)

            elapsed = (
                (upload.end_time - upload.start_time).total_seconds()
                if upload.start_time and upload.end_time
                else 0.0
            )
            total_batches, avg_batch, p95_batch = outcome.batch_stats.get_stats()
            file_stats.append(
                FileStat(
                    file_name=upload.name,
                    status=upload.status.value,
                    rows=upload.total_rows,
                    elapsed_seconds=elapsed,
                    duplicates_removed=upload.duplicates_removed,
                    warnings=upload.warnings,
                    unresolved_codes=upload.unresolved_codes,
                    coerced_cells=upload.coerced_cells,
                    total_batches=total_batches,
                    avg_batch_seconds=avg_batch,
                    p95_batch_seconds=p95_batch,
                )
            )

    succeeded = [o for o in outcomes if o.upload.status == FileStatus.SUCCESS]
    metrics: AggregateResult | None = None
    if mode == MODE_SETTLEMENT and succeeded:
        metrics = _store_metrics(platform, succeeded, cursor, error_log)

    log_path = error_log.flush()
    if log_path is not None:
        logger.info("error log written: %s", log_path)

    end_time = datetime.now(UTC)
    elapsed_seconds = (end_time - start_time).total_seconds()
    total_rows = sum(o.upload.total_rows for o in succeeded)
    throughput = total_rows / elapsed_seconds if elapsed_seconds > 0 else 0.0

    return ProcessingResult(
        success_files=len(succeeded),
        failed_files=len(outcomes) - len(succeeded),
        total_rows=total_rows,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed_seconds,
        throughput_rows_per_sec=throughput,
        duplicates_removed=sum(o.upload.duplicates_removed for o in succeeded),
        warnings=sum(o.upload.warnings for o in outcomes),
        unresolved_codes=sum(o.upload.unresolved_codes for o in succeeded),
        coerced_cells=sum(o.upload.coerced_cells for o in succeeded),
        file_stats=file_stats,
        metrics=metrics,
    )


def _file_error(
    error_log: ErrorLogBuffer, path: Path, platform: Platform, error_type: str, message: str
) -> None:
    error_log.append(
        ErrorRecord.create(
            file=path.name,
            platform=platform.value,
            row=FILE_LEVEL_ROW,
            error_type=error_type,
            message=message,
        )
    )


def _row_issues(
    error_log: ErrorLogBuffer, path: Path, platform: Platform, issues: Sequence[RowIssue]
) -> None:
    for issue in issues:
        error_log.append(
            ErrorRecord.create(
                file=path.name,
                platform=platform.value,
                row=issue.row,
                error_type=issue.kind,
                message=issue.message,
            )
        )


def _rollback(cursor: Any, error_log: ErrorLogBuffer, path: Path, platform: Platform) -> None:
    try:
        cursor.execute("ROLLBACK")
    except Exception as e:
        # 元のエラーは上書きしない
        _file_error(error_log, path, platform, "TRANSACTION_ROLLBACK_ERROR", str(e))


def _failed(
    path: Path, platform: Platform, start_time: datetime, error: str, **counts: int
) -> _FileOutcome:
    logger.error("file failed: %s: %s", path.name, error)
    return _FileOutcome(
        upload=UploadFile(
            path=path,
            name=path.name,
            platform=platform,
            start_time=start_time,
            end_time=datetime.now(UTC),
            status=FileStatus.FAILED,
            error=error,
            **counts,
        )
    )


def _process_single_file(
    path: Path,
    platform: Platform,
    mode: str,
    options: ParseOptions | None,
    cursor: Any,
    error_log: ErrorLogBuffer,
    page_size: int,
) -> _FileOutcome:
    """Read, parse, reconcile and (with a cursor) upsert one export file."""
    start_time = datetime.now(UTC)

    try:
        sheet = read_spreadsheet(path)
    except (OSError, SpreadsheetReadError) as e:
        _file_error(error_log, path, platform, "READ_ERROR", str(e))
        return _failed(path, platform, start_time, f"read error: {e}")

    try:
        if mode == MODE_SALES:
            parsed, removed = reconcile_result(
                parse_rows(platform, sheet.rows, sheet.columns, options)
            )
            rows = parsed.rows
            issues = parsed.issues
            warnings = len(parsed.summary.warnings)
            unresolved = len(parsed.unresolved_codes)
            coerced = parsed.summary.coerced_cells
            for province in parsed.summary.unmapped_provinces:
                logger.debug("%s: unmapped province %r", path.name, province)
        else:
            statement = parse_settlement_rows(platform, sheet.rows, sheet.columns)
            batch = reconcile(statement.rows)
            rows = batch.rows
            removed = batch.duplicates_removed
            issues = statement.issues
            warnings = len(statement.warnings) + (1 if removed else 0)
            unresolved = 0
            coerced = statement.coerced_cells
    except MissingColumnsError as e:
        _file_error(error_log, path, platform, "MISSING_COLUMNS", str(e))
        return _failed(path, platform, start_time, str(e))
    except Exception as e:
        logger.debug("processing error in %s", path.name, exc_info=True)
        _file_error(error_log, path, platform, "PROCESSING_ERROR", str(e))
        return _failed(path, platform, start_time, f"processing error: {e}")

    _row_issues(error_log, path, platform, issues)
    counts = {
        "duplicates_removed": removed,
        "warnings": warnings,
        "unresolved_codes": unresolved,
        "coerced_cells": coerced,
    }

    stats = BatchStatsAccumulator()
    if cursor is not None:
        try:
            cursor.execute("BEGIN")
        except Exception as e:
            _file_error(error_log, path, platform, "TRANSACTION_BEGIN_ERROR", str(e))
            return _failed(path, platform, start_time, f"failed to begin transaction: {e}", **counts)

        def on_batch(metrics: BatchMetrics) -> None:
            stats.add_batch_time(metrics.elapsed_seconds)

        upsert = upsert_product_sales if mode == MODE_SALES else upsert_transactions
        try:
            upsert(cursor, rows, page_size=page_size, metrics_callback=on_batch)
        except UpsertError as e:
            _rollback(cursor, error_log, path, platform)
            _file_error(error_log, path, platform, "STORAGE_ERROR", str(e))
            return _failed(path, platform, start_time, f"storage error: {e}", **counts)

        try:
            cursor.execute("COMMIT")
        except Exception as e:
            _rollback(cursor, error_log, path, platform)
            _file_error(error_log, path, platform, "TRANSACTION_COMMIT_ERROR", str(e))
            return _failed(path, platform, start_time, f"commit failed: {e}", **counts)

    if warnings:
        logger.warning("%s: %d warnings (see error log / --debug)", path.name, warnings)
    logger.info(
        "file=%s rows=%d duplicates=%d unresolved=%d coerced=%d",
        path.name,
        len(rows),
        removed,
        unresolved,
        coerced,
    )
    return _FileOutcome(
        upload=UploadFile(
            path=path,
            name=path.name,
            platform=platform,
            start_time=start_time,
            end_time=datetime.now(UTC),
            status=FileStatus.SUCCESS,
            total_rows=len(rows),
            **counts,
        ),
        rows=tuple(rows),
        batch_stats=stats,
    )


def _store_metrics(
    platform: Platform,
    succeeded: Sequence[_FileOutcome],
    cursor: Any,
    error_log: ErrorLogBuffer,
) -> AggregateResult:
    """Aggregate all successful statement rows and upsert the metrics document."""
    # ファイル間の重複も後勝ちで除去してから集計
    union = reconcile(row for outcome in succeeded for row in outcome.rows)
    metrics = aggregate(union.rows, platform)
    logger.info(
        "metrics %s: revenue=%.2f fees=%.2f adjustments=%.2f settlement=%.2f transactions=%d",
        platform.value,
        metrics.revenue,
        metrics.fees,
        metrics.adjustments,
        metrics.settlement,
        metrics.total_transactions,
    )
    if cursor is None:
        return metrics

    target = Path("platform_metrics")
    try:
        cursor.execute("BEGIN")
        upsert_platform_metrics(cursor, platform, metrics)
        cursor.execute("COMMIT")
    except Exception as e:
        _rollback(cursor, error_log, target, platform)
        _file_error(error_log, target, platform, "STORAGE_ERROR", str(e))
        logger.error("failed to update platform_metrics for %s: %s", platform.value, e)
    return metrics
