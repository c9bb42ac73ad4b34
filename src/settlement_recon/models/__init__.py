"""Domain models for the marketplace settlement reconciliation engine."""

from .breakdown import AggregateResult, BreakdownGroup, BreakdownNode, DailyBucket
from .classified_row import ClassifiedRow, Disposition, RowIssue
from .config_models import DatabaseConfig, EngineConfig
from .error_record import ErrorRecord
from .parse_result import (
    ParseOptions,
    ParseResult,
    ParseSummary,
    ReconciledBatch,
    SettlementResult,
)
from .platform import Platform, PlatformSchema, UnknownPlatformError
from .processing_result import BatchStatsAccumulator, FileStat, ProcessingResult
from .row_data import RowData
from .upload_file import FileStatus, UploadFile

__all__ = [
    # Platform / schema
    "Platform",
    "PlatformSchema",
    "UnknownPlatformError",
    # Row models
    "RowData",
    "ClassifiedRow",
    "Disposition",
    "RowIssue",
    # Parse / aggregate results
    "ParseOptions",
    "ParseResult",
    "ParseSummary",
    "SettlementResult",
    "ReconciledBatch",
    "AggregateResult",
    "BreakdownGroup",
    "BreakdownNode",
    "DailyBucket",
    # Configuration models
    "DatabaseConfig",
    "EngineConfig",
    # Processing models
    "ErrorRecord",
    "FileStat",
    "ProcessingResult",
    "BatchStatsAccumulator",
    "FileStatus",
    "UploadFile",
]
