"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from pydantic import ValidationError as SettingsValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from adapters.sonarqube_client import SonarQubeClient
from core.config import AppSettings, write_user_env_vars
from core.errors import ReporterError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console(stderr=True)


async def _check_server(client: SonarQubeClient) -> tuple[tuple[bool, str], tuple[bool, str]]:
    try:
        status = await client.server_status()
        server = (status == "UP", f"status {status}")
    except ReporterError as exc:
        return (False, str(exc)), (False, "skipped")

    try:
        await client.authenticate()
        auth = (True, "Token accepted")
    except ReporterError as exc:
        auth = (False, str(exc))
    return server, auth


@app.command()
def run(
    sonar_url: str | None = typer.Option(None, "--sonar-url", "-u", help="SonarQube server URL (env: SONAR_URL)."),
    sonar_token: str | None = typer.Option(None, "--sonar-token", "-t", help="SonarQube token (env: SONAR_TOKEN)."),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    try:
        settings = AppSettings()
    except SettingsValidationError as exc:
        problems = "; ".join(f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors())
        _console.print(f"[red]Error:[/red] Invalid settings in SONAR_* environment: {escape(problems)}")
        # Mismo código que `report` para errores de configuración.
        raise typer.Exit(code=2) from exc

    table = Table(title="Sonar Coverage Reporter Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    url = sonar_url or settings.url
    has_token = bool(sonar_token or settings.token)
    table.add_row("SonarQube URL", "OK" if url else "MISSING", url or "Set SONAR_URL or --sonar-url")
    # Solo se informa si hay token; el valor nunca se imprime.
    table.add_row("Token", "OK" if has_token else "MISSING", "set" if has_token else "Set SONAR_TOKEN or --sonar-token")
    table.add_row("Threshold", "OK", f"{settings.threshold:g}%")

    healthy = bool(url) and has_token
    if healthy:
        client = SonarQubeClient(settings.to_sonarqube_config(url=sonar_url, token=sonar_token), settings)
        (ok_server, detail_server), (ok_auth, detail_auth) = asyncio.run(_check_server(client))
        table.add_row("Server", "OK" if ok_server else "FAIL", detail_server)
        table.add_row("Authentication", "OK" if ok_auth else "FAIL", detail_auth)
        healthy = ok_server and ok_auth

    _console.print(table)
    if not healthy:
        raise typer.Exit(code=1)


@app.command()
def setup() -> None:
    """Interactive setup (stores URL and token in the user config .env)."""

    url = typer.prompt("SonarQube URL").strip()
    token = typer.prompt("SonarQube token", hide_input=True, confirmation_prompt=False).strip()

    if not url or not token:
        raise typer.BadParameter("url and token are required")

    env_path = write_user_env_vars({"SONAR_URL": url, "SONAR_TOKEN": token})
    _console.print(f"[green]Saved SonarQube config to:[/green] {env_path}")
