from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, EngineConfig

"""Config loader.

- Load YAML (``yaml.safe_load``)
- Validate against ``config_schema.json`` shipped next to this module
- Apply defaults for every omitted key

A missing file is an error for an explicit ``--config``; the CLI falls back
to ``default_config()`` only when the default path does not exist.
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "default_config",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/recon.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / not JSON, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        suffix = f" (at {where})" if where else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def default_config() -> EngineConfig:
    return EngineConfig()


def load_config(path: Path) -> EngineConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    defaults = default_config()
    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    # code_maps の相対パスは設定ファイルの場所から解決
    code_maps = {
        name: str((path.parent / p) if not Path(p).is_absolute() else Path(p))
        for name, p in data.get("code_maps", {}).items()
    }
    return EngineConfig(
        strict_mapping=data.get("strict_mapping", defaults.strict_mapping),
        page_size=data.get("page_size", defaults.page_size),
        logs_directory=data.get("logs_directory", defaults.logs_directory),
        code_maps=code_maps,
        header_aliases=data.get("header_aliases", {}),
        province_aliases=data.get("province_aliases", {}),
        database=db,
    )
