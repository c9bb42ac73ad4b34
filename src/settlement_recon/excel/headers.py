from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping

from ..models.platform import PlatformSchema

"""Header resolver: bind a platform's logical fields to actual column names.

Headers and aliases are compared after case-folding and collapsing internal
whitespace. Required fields that cannot be bound are collected and reported
together in a single MissingColumnsError.
"""

__all__ = [
    "MissingColumnsError",
    "ResolvedHeaders",
    "normalize_header",
    "resolve_headers",
]

_WS = re.compile(r"\s+")


class MissingColumnsError(ValueError):
    """Raised when required logical fields have no matching column.

    Attributes:
        missing: Primary alias of every missing field, in schema order
    """

    def __init__(self, missing: list[str], platform: str | None = None) -> None:
        self.missing = list(missing)
        self.platform = platform
        prefix = f"{platform}: " if platform else ""
        super().__init__(f"{prefix}missing required columns: {', '.join(self.missing)}")


def normalize_header(text: str) -> str:
    return _WS.sub(" ", str(text).lower()).strip()


class ResolvedHeaders(Mapping[str, str]):
    """Read-only logical field -> actual column name mapping for one file."""

    def __init__(self, resolved: Mapping[str, str]) -> None:
        self._resolved = dict(resolved)

    def __getitem__(self, key: str) -> str:
        return self._resolved[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._resolved)

    def __len__(self) -> int:
        return len(self._resolved)

    def __repr__(self) -> str:  # pragma: no cover
        return f"ResolvedHeaders({self._resolved!r})"

    def column(self, field: str) -> str | None:
        """Actual column for ``field`` or None when an optional field is absent."""
        return self._resolved.get(field)


def resolve_headers(columns: Iterable[str], schema: PlatformSchema) -> ResolvedHeaders:
    """Resolve logical fields against the header row of one file.

    Args:
        columns: Header names as read from the file
        schema: Platform schema (possibly extended with operator aliases)

    Returns:
        ResolvedHeaders for every field that matched

    Raises:
        MissingColumnsError: naming every required field without a match
    """
    by_normalized: dict[str, str] = {}
    for col in columns:
        # 同じ正規化名が複数ある場合は先頭列を採用
        by_normalized.setdefault(normalize_header(col), col)

    resolved: dict[str, str] = {}
    missing: list[str] = []
    for name, aliases in schema.fields.items():
        found = next(
            (by_normalized[normalize_header(a)] for a in aliases if normalize_header(a) in by_normalized),
            None,
        )
        if found is not None:
            resolved[name] = found
        elif not schema.is_optional(name):
            missing.append(schema.primary_alias(name))

    if missing:
        raise MissingColumnsError(missing, platform=schema.platform.value)
    return ResolvedHeaders(resolved)
