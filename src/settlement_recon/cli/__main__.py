from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, default_config, load_config
from ..excel.cells import cell_text
from ..excel.reader import SpreadsheetReadError, read_spreadsheet
from ..logging.init import log_summary, setup_logging
from ..models.config_models import EngineConfig
from ..models.platform import Platform, UnknownPlatformError
from ..services.orchestrator import (
    MODE_SALES,
    MODES,
    ProcessingError,
    process_files,
    resolve_code_map,
)
from ..services.summary import render_summary_line

"""CLI entrypoint.

settlement-recon --platform {Shopee,TikTok,Lazada} [--mode {sales,settlement}]
    [--config PATH] [--code-map PATH] [--strict] [--debug] [--inspect-data] FILES...

Exit codes: 0 all files succeeded (or none given), 2 any file failed,
1 fatal (config error, unknown platform, unreadable code map or lookup table).
"""

__all__ = [
    "EXIT_SUCCESS_ALL",
    "EXIT_PARTIAL_FAILURE",
    "EXIT_FATAL",
    "main",
]

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _resolve_dsn(cfg: EngineConfig) -> str:
    """Connection string, highest priority first.

    1. DATABASE_URL / PGDSN (``.env`` is loaded with override before this)
    2. config ``database.dsn``
    3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, falling back per
       field to the config ``database`` section
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: EngineConfig) -> Iterator[Any]:  # pragma: no cover (needs a live server)
    """psycopg2 connection + cursor; the orchestrator owns BEGIN/COMMIT."""
    conn = psycopg2.connect(_resolve_dsn(cfg))
    conn.autocommit = True  # 明示 BEGIN/COMMIT はファイル単位で orchestrator が発行
    cur = conn.cursor()
    try:
        yield cur
    finally:
        cur.close()
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load ``.env`` with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="settlement-recon",
        description="Marketplace sales / settlement export reconciler",
    )
    p.add_argument("--platform", required=True, help="Shopee, TikTok or Lazada")
    p.add_argument("--mode", choices=MODES, default=MODE_SALES, help="Export kind (default: sales)")
    p.add_argument("--config", type=Path, default=None, help=f"YAML config (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--code-map", type=Path, default=None, help="Code map file (xlsx/xls/csv)")
    p.add_argument("--strict", action="store_true", help="Drop rows whose code has no mapping")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first rows then exit")
    p.add_argument("files", nargs="*", type=Path, help="Export files")
    return p.parse_args(argv)


def _load_engine_config(path: Path | None) -> EngineConfig:
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return default_config()


def _inspect_data(files: list[Path]) -> int:
    if not files:
        print("inspect: no files")
        return EXIT_SUCCESS_ALL
    for f in files:
        print(f"FILE: {f.name}")
        try:
            sheet = read_spreadsheet(f)
        except (OSError, SpreadsheetReadError) as e:
            print(f"  read_error: {e}")
            continue
        print(f"  SHEET: {sheet.sheet_name} cols={sheet.columns}")
        # datetime を含むので文字列化して表示
        sample = [{k: cell_text(v) for k, v in r.values.items()} for r in sheet.rows[:3]]
        print("    sample_rows=", sample)
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # [] を渡されたときに sys.argv を読まないよう None のときだけ参照
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)

    try:
        cfg = _load_engine_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        platform = Platform.parse(args.platform)
    except UnknownPlatformError as e:
        logger.error(str(e))
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(args.files)

    missing = [f for f in args.files if not f.exists()]
    for f in missing:
        logger.warning(f"file not found: {f}")

    logger.info(f"platform={platform.value} mode={args.mode} files={len(args.files)}")

    strict = True if args.strict else None
    run_kwargs: dict[str, Any] = {"mode": args.mode, "strict_mapping": strict}
    disable_db = os.getenv("DISABLE_DB_CONNECT") == "1"
    db_mode = "mock"
    try:
        if disable_db:
            logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
            code_map = _explicit_code_map(cfg, platform, args.code_map, None)
            result = process_files(cfg, platform, args.files, code_map=code_map, **run_kwargs)
        else:
            try:
                with _db_connection(cfg) as cur:
                    db_mode = "live"
                    code_map = _explicit_code_map(cfg, platform, args.code_map, cur)
                    result = process_files(
                        cfg, platform, args.files, cursor=cur, code_map=code_map, **run_kwargs
                    )
            except psycopg2.OperationalError as db_e:
                logger.info(f"DB connection failed -> fallback to mock mode: {db_e}")
                db_mode = "mock"
                code_map = _explicit_code_map(cfg, platform, args.code_map, None)
                result = process_files(cfg, platform, args.files, code_map=code_map, **run_kwargs)
    except ProcessingError as e:
        logger.error(f"processing({db_mode}): {e}")
        return EXIT_FATAL

    logger.info(f"mode={db_mode} total_rows={result.total_rows}")
    # log_summary が "SUMMARY " を付けるので本文だけ渡す
    log_summary(render_summary_line(result)[len("SUMMARY "):])

    if result.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _explicit_code_map(
    cfg: EngineConfig, platform: Platform, path: Path | None, cursor: Any
) -> dict[str, str] | None:
    """Code map from ``--code-map`` when given; otherwise let the orchestrator resolve it."""
    if path is None:
        return None
    return resolve_code_map(cfg, platform, cursor, code_map_path=path)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
