from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import psycopg
import typer
from psycopg_pool import PoolTimeout
from pydantic import ValidationError

from price_ingest.config import Settings, get_settings
from price_ingest.infrastructure.db_factory import create_database, server_info
from price_ingest.orchestrator import DEFAULT_PATTERN, IngestConfig, run_ingestion
from price_ingest.reporter import print_summary
from price_ingest.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Healthcare price file ingestion CLI.")
log = get_logger("price_ingest")


def _load_settings() -> Settings:
    """Load settings, exiting with status 1 when configuration is invalid."""
    try:
        settings = get_settings()
    except ValidationError as exc:
        messages = "; ".join(error["msg"] for error in exc.errors())
        typer.echo(f"Configuration error: {messages}", err=True)
        raise typer.Exit(code=1) from exc
    return settings


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = _load_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} "
        f"ssl={settings.db_ssl} | pool=({settings.db_pool_min_size},{settings.db_pool_max_size}) "
        f"lifetime={settings.db_pool_max_lifetime:.0f}s | workers={settings.ingest_workers} "
        f"max_line_bytes={settings.ingest_max_line_bytes}"
    )


@app.command()
def ingest(
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        "-f",
        help="File to process (.json or .json.gz).",
    ),
    directory: Optional[Path] = typer.Option(
        None,
        "--dir",
        "-d",
        help="Directory to process (every file matching --pattern).",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Number of persistence workers (default from settings).",
    ),
    pattern: str = typer.Option(
        DEFAULT_PATTERN,
        "--pattern",
        help="Glob used to select files in --dir.",
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON."),
    save_report: bool = typer.Option(
        False,
        "--save-report",
        help="Write the run summary to the results directory.",
    ),
    results_dir: Path = typer.Option(Path("results"), "--results-dir"),
) -> None:
    """
    Stream NDJSON price files into the database.
    """
    if file is None and directory is None:
        raise typer.BadParameter("Please specify either --file or --dir.")

    settings = _load_settings()
    configure_logging(level=settings.log_level, json_logs=json_logs or settings.log_json)

    config = IngestConfig(
        file=file,
        directory=directory,
        workers=workers,
        pattern=pattern,
        persist=save_report,
        results_dir=results_dir,
    )
    try:
        summary = run_ingestion(config)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    except (psycopg.Error, PoolTimeout) as exc:
        log.error(f"Ingestion aborted: {exc}")
        raise typer.Exit(code=1) from exc

    print_summary(summary)
    if file is not None and summary.failed_files:
        raise typer.Exit(code=1)
    log.info("Data ingestion completed")


@app.command("check-connection")
def check_connection() -> None:
    """
    Verify the database is reachable and report its version.
    """
    settings = _load_settings()
    configure_logging(level=settings.log_level)
    typer.echo(f"Testing connection to {settings.db_host}:{settings.db_port} as {settings.db_user}")
    try:
        details = server_info()
    except psycopg.Error as exc:
        typer.echo(f"Connection failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps({"version": details.version, "database": details.database}, indent=2))


@app.command("create-database")
def create_database_command(
    name: Optional[str] = typer.Option(None, "--name", help="Database name (default DB_NAME)."),
) -> None:
    """
    Create the target database if it does not exist yet.
    """
    settings = _load_settings()
    configure_logging(level=settings.log_level)
    try:
        created = create_database(name, settings=settings)
    except psycopg.Error as exc:
        typer.echo(f"Failed to create database: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    target = name or settings.db_name
    typer.echo(f"Database '{target}' {'created' if created else 'already exists'}.")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
