from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

"""Platform identifiers and per-platform column schemas.

A PlatformSchema binds logical field names to the header spellings a
marketplace export has used over time. Schemas are immutable; operator
supplied aliases produce a new schema via ``with_extra_aliases``.
"""

__all__ = [
    "Platform",
    "PlatformSchema",
    "UnknownPlatformError",
]


class UnknownPlatformError(ValueError):
    pass


class Platform(str, Enum):
    SHOPEE = "Shopee"
    TIKTOK = "TikTok"
    LAZADA = "Lazada"

    @classmethod
    def parse(cls, value: str | Platform) -> Platform:
        """Resolve a user supplied platform name (case-insensitive).

        Raises:
            UnknownPlatformError: if the name is not one of the supported platforms
        """
        if isinstance(value, Platform):
            return value
        key = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        allowed = ", ".join(m.value for m in cls)
        raise UnknownPlatformError(f"unknown platform '{value}' (expected one of: {allowed})")


@dataclass(frozen=True)
class PlatformSchema:
    """Logical field -> accepted header aliases, in priority order.

    Attributes:
        platform: Marketplace the schema describes
        fields: Logical field name -> tuple of header aliases (first alias is the canonical spelling)
        optional: Logical fields that may be absent without failing resolution
    """
    platform: Platform
    fields: Mapping[str, tuple[str, ...]]
    optional: frozenset[str] = field(default_factory=frozenset)

    def is_optional(self, name: str) -> bool:
        return name in self.optional

    def primary_alias(self, name: str) -> str:
        return self.fields[name][0]

    def with_extra_aliases(self, extra: Mapping[str, Sequence[str]] | None) -> PlatformSchema:
        """Return a copy with additional aliases appended after the built-in ones.

        Unknown logical field names are ignored.
        """
        if not extra:
            return self
        merged: dict[str, tuple[str, ...]] = {}
        for name, aliases in self.fields.items():
            added = tuple(a for a in extra.get(name, ()) if a not in aliases)
            merged[name] = aliases + added
        return replace(self, fields=merged)
