"""CLI principal (Typer).

Por qué un módulo fino:
- Toda la lógica vive en `core.services.report_pipeline`; aquí solo se
  traducen flags a `ReportConfig`, se pinta el progreso y se mapean errores a
  códigos de salida.
- El CSV va a stdout (o a `--output`); progreso, logs y resumen van a stderr.
"""

from __future__ import annotations

import asyncio
import logging
from enum import IntEnum
from pathlib import Path
from typing import NoReturn

import typer
from pydantic import ValidationError as SettingsValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from adapters.sonarqube_client import SonarQubeClient
from cli import doctor
from cli.ui_components import build_summary_table, print_banner
from core.config import AppSettings
from core.domain.filtering import FilterConfig, FilterType
from core.domain.models import CategorizedProject, ClassificationConfig
from core.domain.report import CsvConfig, NumberFormat, ReportConfig
from core.errors import (
    AuthenticationError,
    ConfigurationError,
    DataSourceError,
    PersistenceError,
    ReportError,
)
from core.services.report_pipeline import ReportHooks, ReportOrchestrator

app = typer.Typer(
    no_args_is_help=True,
    help="Fetch coverage from SonarQube and export a categorized CSV report.",
)
app.add_typer(doctor.app, name="doctor")

_console = Console(stderr=True)


class ExitCode(IntEnum):
    OK = 0
    FATAL = 1
    CONFIG = 2
    AUTH = 3
    DATA_SOURCE = 4
    PERSISTENCE = 5


def exit_code_for(exc: BaseException) -> ExitCode:
    if isinstance(exc, ReportError):
        exc = exc.root_cause()
    if isinstance(exc, ConfigurationError):
        return ExitCode.CONFIG
    if isinstance(exc, AuthenticationError):
        return ExitCode.AUTH
    if isinstance(exc, DataSourceError):
        return ExitCode.DATA_SOURCE
    if isinstance(exc, PersistenceError):
        return ExitCode.PERSISTENCE
    return ExitCode.FATAL


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    level = logging.ERROR if quiet else (logging.DEBUG if verbose else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_console, show_path=False)],
        force=True,
    )
    # httpx loguea cada request en INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _fail(message: str, code: ExitCode) -> NoReturn:
    _console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(code=int(code))


def build_filter_configs(
    *,
    min_coverage: float | None = None,
    max_coverage: float | None = None,
    name_pattern: str | None = None,
    ignore_case: bool = False,
    languages: list[str] | None = None,
    analyzed_after: str | None = None,
    analyzed_before: str | None = None,
    project_keys: list[str] | None = None,
    query: str | None = None,
) -> list[FilterConfig]:
    """Traduce los flags de filtrado a descriptores declarativos."""

    configs: list[FilterConfig] = []
    if project_keys:
        configs.append(FilterConfig(type=FilterType.KEYS, params={"keys": project_keys}, apply_at_query=True))
    if query:
        configs.append(FilterConfig(type=FilterType.NAME, params={"query": query}, apply_at_query=True))
    if min_coverage is not None or max_coverage is not None:
        configs.append(
            FilterConfig(
                type=FilterType.COVERAGE,
                params={"min_coverage": min_coverage, "max_coverage": max_coverage},
            )
        )
    if name_pattern:
        configs.append(
            FilterConfig(
                type=FilterType.NAME,
                params={"pattern": name_pattern, "case_sensitive": not ignore_case},
            )
        )
    if languages:
        configs.append(FilterConfig(type=FilterType.LANGUAGE, params={"languages": languages}))
    if analyzed_after or analyzed_before:
        configs.append(
            FilterConfig(
                type=FilterType.DATE,
                params={"start_date": analyzed_after, "end_date": analyzed_before},
            )
        )
    return configs


def _progress_hooks(console: Console) -> ReportHooks:
    def on_project_processed(_: CategorizedProject, index: int, total: int) -> None:
        if index % 10 == 0 or index == total:
            console.print(f"[dim]Processing projects: {index}/{total}[/dim]")

    return ReportHooks(
        on_fetching_projects=lambda: console.print("[cyan]Fetching projects from SonarQube...[/cyan]"),
        on_filtering=lambda before, after: console.print(f"Applied filters: {before} → {after} projects"),
        on_project_processed=on_project_processed,
        on_generating_csv=lambda: console.print("[cyan]Generating CSV report...[/cyan]"),
    )


@app.command()
def report(
    sonar_url: str | None = typer.Option(None, "--sonar-url", "-u", help="SonarQube server URL (env: SONAR_URL)."),
    sonar_token: str | None = typer.Option(
        None,
        "--sonar-token",
        "-t",
        help="SonarQube token (env: SONAR_TOKEN).",
        show_default=False,
    ),
    threshold: float | None = typer.Option(
        None,
        "--threshold",
        "-T",
        min=0,
        max=100,
        help="Minimum expected coverage percentage (default: 50, env: SONAR_THRESHOLD).",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        dir_okay=False,
        help="Output CSV path. Prints to stdout when omitted.",
    ),
    min_coverage: float | None = typer.Option(None, "--min-coverage", min=0, max=100, help="Keep projects with coverage >= value."),
    max_coverage: float | None = typer.Option(None, "--max-coverage", min=0, max=100, help="Keep projects with coverage <= value."),
    name_pattern: str | None = typer.Option(None, "--name-pattern", help="Keep projects whose name matches this regex."),
    ignore_case: bool = typer.Option(False, "--ignore-case", help="Case-insensitive --name-pattern."),
    language: list[str] | None = typer.Option(None, "--language", "-l", help="Keep projects using this language (repeatable)."),
    analyzed_after: str | None = typer.Option(None, "--analyzed-after", help="Keep projects analyzed on/after this ISO date."),
    analyzed_before: str | None = typer.Option(None, "--analyzed-before", help="Keep projects analyzed on/before this ISO date."),
    project_key: list[str] | None = typer.Option(None, "--project-key", "-k", help="Only fetch these project keys (repeatable)."),
    query: str | None = typer.Option(None, "--query", "-q", help="Server-side name/key search (SonarQube 'q')."),
    delimiter: str = typer.Option(",", "--delimiter", help="CSV delimiter (single character)."),
    decimals: int = typer.Option(2, "--decimals", min=0, max=10, help="Decimal places for coverage."),
    percent_sign: bool = typer.Option(False, "--percent-sign", help="Append '%' to coverage values."),
    no_headers: bool = typer.Option(False, "--no-headers", help="Omit the header row."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    quiet: bool = typer.Option(False, "--quiet", help="Only errors on stderr."),
) -> None:
    """Generate the categorized coverage CSV."""

    _configure_logging(verbose=verbose, quiet=quiet)

    try:
        settings = AppSettings()
    except SettingsValidationError as exc:
        _fail(f"Invalid settings: {exc.error_count()} error(s) in SONAR_* environment", ExitCode.CONFIG)

    try:
        sonar = settings.to_sonarqube_config(url=sonar_url, token=sonar_token)
        config = ReportConfig(
            sonarqube=sonar,
            classification=ClassificationConfig(threshold=settings.threshold if threshold is None else threshold),
            csv=CsvConfig(
                delimiter=delimiter,
                include_headers=not no_headers,
                number_format=NumberFormat(decimal_places=decimals, include_percent_sign=percent_sign),
            ),
            filters=build_filter_configs(
                min_coverage=min_coverage,
                max_coverage=max_coverage,
                name_pattern=name_pattern,
                ignore_case=ignore_case,
                languages=language,
                analyzed_after=analyzed_after,
                analyzed_before=analyzed_before,
                project_keys=project_key,
                query=query,
            ),
            output_path=output,
        )
    except ConfigurationError as exc:
        _fail(str(exc), ExitCode.CONFIG)

    if not quiet:
        print_banner(_console)

    client = SonarQubeClient(config.sonarqube, settings)
    orchestrator = ReportOrchestrator(client)
    hooks = ReportHooks() if quiet else _progress_hooks(_console)

    try:
        result = asyncio.run(orchestrator.generate_report(config, hooks))
    except ReportError as exc:
        if exc.result is not None:
            # El CSV ya existe en memoria: no se pierde aunque falle la escritura.
            typer.echo(exc.result.csv_content, nl=False)
        _fail(str(exc), exit_code_for(exc))

    if result.output_path is not None:
        if not quiet:
            _console.print(f"[green]Report saved to:[/green] {result.output_path}")
    else:
        typer.echo(result.csv_content, nl=False)

    if not quiet:
        _console.print(build_summary_table(result))


def run() -> None:
    app()
