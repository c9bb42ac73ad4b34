from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the settlement reconciliation engine.

These are produced by ``settlement_recon.config.loader`` and passed explicitly
into the orchestrator; no module keeps configuration in global state.
"""

__all__ = [
    "DatabaseConfig",
    "EngineConfig",
]


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class EngineConfig:
    """Root configuration object.

    Attributes:
        strict_mapping: Default strict-mapping mode (CLI --strict overrides to True)
        page_size: execute_values page size for upserts
        logs_directory: Directory for JSON Lines error logs
        code_maps: Platform name -> code map file (xlsx/xls/csv)
        header_aliases: Platform name -> logical field -> extra header spellings
        province_aliases: Canonical province -> extra aliases (merged over the DB table)
        database: Connection fallback configuration
    """
    strict_mapping: bool = False
    page_size: int = 1000
    logs_directory: str = "./logs"
    code_maps: dict[str, str] = field(default_factory=dict)
    header_aliases: dict[str, dict[str, list[str]]] = field(default_factory=dict)
    province_aliases: dict[str, list[str]] = field(default_factory=dict)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def header_aliases_for(self, platform: str) -> dict[str, list[str]]:
        # キーは大文字小文字を区別しない
        for name, aliases in self.header_aliases.items():
            if name.lower() == platform.lower():
                return aliases
        return {}

    def code_map_for(self, platform: str) -> str | None:
        for name, path in self.code_maps.items():
            if name.lower() == platform.lower():
                return path
        return None
