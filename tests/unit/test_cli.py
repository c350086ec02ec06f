from __future__ import annotations

from pathlib import Path
from typing import Optional

import psycopg
import pytest
from rich.console import Console
from typer.testing import CliRunner

from price_ingest import main as cli
from price_ingest.infrastructure.gateway import TableCounts
from price_ingest.orchestrator import FileResult, RunSummary
from price_ingest.reporter import print_summary

runner = CliRunner()


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda **_: None)


def _summary(error: Optional[str] = None) -> RunSummary:
    return RunSummary(
        files=[FileResult(path="prices.json", lines=2, records=2, committed=2, error=error)],
        counts=TableCounts(services=2, rates=3),
    )


def test_ingest_requires_a_target() -> None:
    result = runner.invoke(cli.app, ["ingest"])

    assert result.exit_code == 2


def test_ingest_passes_options_to_the_coordinator(monkeypatch, tmp_path: Path) -> None:
    captured = {}

    def _fake_run(config):
        captured["config"] = config
        return _summary()

    monkeypatch.setattr(cli, "run_ingestion", _fake_run)
    target = tmp_path / "prices.json"

    result = runner.invoke(cli.app, ["ingest", "--file", str(target), "--workers", "4"])

    assert result.exit_code == 0, result.output
    assert captured["config"].file == target
    assert captured["config"].workers == 4
    assert "Ingestion Results" in result.output


def test_failed_single_file_exits_non_zero(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "run_ingestion", lambda config: _summary(error="line 3 too long"))

    result = runner.invoke(cli.app, ["ingest", "-f", str(tmp_path / "prices.json")])

    assert result.exit_code == 1


def test_failed_file_in_directory_mode_still_exits_zero(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "run_ingestion", lambda config: _summary(error="bad gzip"))

    result = runner.invoke(cli.app, ["ingest", "--dir", str(tmp_path)])

    assert result.exit_code == 0


def test_unreachable_database_exits_one(monkeypatch, tmp_path: Path) -> None:
    def _fail(config):
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(cli, "run_ingestion", _fail)

    result = runner.invoke(cli.app, ["ingest", "--dir", str(tmp_path)])

    assert result.exit_code == 1


def test_missing_directory_exits_two(monkeypatch, tmp_path: Path) -> None:
    def _fail(config):
        raise ValueError("Not a directory")

    monkeypatch.setattr(cli, "run_ingestion", _fail)

    result = runner.invoke(cli.app, ["ingest", "--dir", str(tmp_path / "absent")])

    assert result.exit_code == 2


def test_missing_password_is_a_configuration_error(monkeypatch) -> None:
    monkeypatch.delenv("DB_PASSWORD", raising=False)
    monkeypatch.setattr(cli, "get_settings", lambda: cli.Settings(_env_file=None))

    result = runner.invoke(cli.app, ["info"])

    assert result.exit_code == 1


def test_info_shows_configuration() -> None:
    result = runner.invoke(cli.app, ["info"])

    assert result.exit_code == 0
    assert "workers=" in result.output


def test_summary_table_lists_files_and_counts() -> None:
    console = Console(record=True, width=200)

    print_summary(_summary(), console=console)

    text = console.export_text()
    assert "prices.json" in text
    assert "insurance_services" in text
    assert "Database Statistics" in text


def test_summary_without_counts_says_so() -> None:
    console = Console(record=True, width=200)

    print_summary(RunSummary(files=[]), console=console)

    text = console.export_text()
    assert "No files were ingested" in text
    assert "statistics unavailable" in text
