from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from .platform import Platform

"""UploadFile domain model and FileStatus enum.

An UploadFile is the processing context for one marketplace export,
moving pending -> processing -> (success | failed).
"""

__all__ = [
    "FileStatus",
    "UploadFile",
]


class FileStatus(Enum):
    """Status of one export file in the processing lifecycle."""
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadFile:
    """Processing context for a single export file."""
    path: Path
    name: str
    platform: Platform
    start_time: datetime | None = None  # UTC
    end_time: datetime | None = None
    status: FileStatus = FileStatus.PENDING
    total_rows: int = 0  # reconcile 後の行数
    duplicates_removed: int = 0
    warnings: int = 0
    unresolved_codes: int = 0
    coerced_cells: int = 0
    error: str | None = None
