from __future__ import annotations

import re
from collections.abc import Mapping

"""Product/variant code resolution against the external code map.

Sellers type bundle codes inconsistently ("KL0-4010, 4008", "4008,KL0-4010",
"KL0-4008,KL0-4010"). The resolver indexes the code map three ways in one pass:

1. exact      - key verbatim
2. normalized - key passed through ``normalize_code``
3. individual - each component of a multi-component key (first writer wins)

and looks codes up in that order.
"""

__all__ = [
    "CodeResolver",
    "normalize_code",
    "split_code",
]

_SPLIT = re.compile(r"[,\n\r]+")
_PREFIX = re.compile(r"^([A-Z]+[0-9]*-)")


def split_code(code: str) -> list[str]:
    return [p.strip() for p in _SPLIT.split(code or "") if p.strip()]


def normalize_code(code: str) -> str:
    """Canonical form of a (possibly multi-component) variant code.

    The prefix of the first prefixed component (letters, optional digits, dash) is
    prepended to sibling components that are bare numbers, then components are
    sorted and joined with commas. Single components are returned trimmed.

    >>> normalize_code("KL0-4010, 4008")
    'KL0-4008,KL0-4010'
    """
    parts = split_code(code)
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0]

    prefix = next((m.group(1) for m in map(_PREFIX.match, parts) if m), "")
    if prefix:
        parts = [prefix + p if "0" <= p[0] <= "9" and "-" not in p else p for p in parts]
    return ",".join(sorted(parts))


class CodeResolver:
    """Resolve incoming codes to canonical product names.

    One instance per parse run; ``unresolved`` lists missed codes in first-seen
    order (deduplicated) for operators to extend the code map.
    """

    def __init__(self, code_map: Mapping[str, str] | None = None) -> None:
        self.exact: dict[str, str] = {}
        self.normalized: dict[str, str] = {}
        self.individual: dict[str, str] = {}
        self._unresolved: dict[str, None] = {}
        for code, name in (code_map or {}).items():
            self.exact[code] = name
            key = normalize_code(code)
            if key:
                self.normalized[key] = name
            parts = split_code(code)
            if len(parts) > 1:
                for part in parts:
                    self.individual.setdefault(part, name)

    def __len__(self) -> int:
        return len(self.exact)

    @property
    def unresolved(self) -> list[str]:
        return list(self._unresolved)

    def lookup(self, code: str) -> str | None:
        """Exact -> normalized -> individual; first hit wins. No side effects."""
        if code in self.exact:
            return self.exact[code]
        key = normalize_code(code)
        if key and key in self.normalized:
            return self.normalized[key]
        return self.individual.get(code)

    def resolve(self, code: str) -> str | None:
        """Like ``lookup`` but records misses in ``unresolved``."""
        name = self.lookup(code)
        if name is None:
            self._unresolved.setdefault(code, None)
        return name
