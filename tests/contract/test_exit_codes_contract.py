from __future__ import annotations

from pathlib import Path

from settlement_recon.cli import main as cli_main
from settlement_recon.cli.__main__ import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL

"""Exit code contract: 0 all files succeeded, 2 any file failed, 1 fatal."""


def test_exit_code_values():
    assert (EXIT_SUCCESS_ALL, EXIT_FATAL, EXIT_PARTIAL_FAILURE) == (0, 1, 2)


def test_exit_success_all(write_config: Path, shopee_sales_file: Path):
    assert cli_main(["--platform", "Shopee", str(shopee_sales_file)]) == EXIT_SUCCESS_ALL


def test_exit_success_with_no_files(temp_workdir: Path):
    assert cli_main(["--platform", "TikTok"]) == EXIT_SUCCESS_ALL


def test_exit_partial_failure(write_config: Path, shopee_sales_file: Path, temp_workdir: Path, write_xlsx):
    broken = write_xlsx(temp_workdir / "data" / "broken.xlsx", ["x"], [[1]])
    assert cli_main(["--platform", "Shopee", str(shopee_sales_file), str(broken)]) == EXIT_PARTIAL_FAILURE


def test_exit_fatal_on_invalid_config(temp_workdir: Path):
    cfg = temp_workdir / "config" / "recon.yml"
    cfg.write_text("page_size: 0\n", encoding="utf-8")
    assert cli_main(["--platform", "Shopee"]) == EXIT_FATAL


def test_exit_fatal_on_missing_explicit_config(temp_workdir: Path):
    assert cli_main(["--platform", "Shopee", "--config", "config/none.yml"]) == EXIT_FATAL
