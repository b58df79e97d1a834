"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
from typing import Callable

import typer
from rich.console import Console
from rich.table import Table

from adapters.client import IndexClient
from core.config import AppSettings, write_user_env_vars
from core.domain.errors import IndexServiceError
from core.interfaces.transport import HttpMethod

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_hosts(settings: AppSettings) -> tuple[bool, str]:
    async with IndexClient(settings) as client:
        try:
            await client.transport.perform_query("1/isalive", HttpMethod.GET, None, client.read_hosts)
        except IndexServiceError as exc:
            return False, exc.message
    return True, "OK"


def _hosts_row(resolve: Callable[[], list[str]]) -> tuple[str, str]:
    try:
        return "OK", ", ".join(resolve())
    except ValueError as exc:
        return "MISSING", str(exc)


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="indexflow Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row("App ID", "OK" if settings.app_id else "MISSING", settings.app_id or "Run `doctor setup`")
    table.add_row("API key", "OK" if settings.api_key else "MISSING", "" if settings.api_key else "Run `doctor setup`")
    table.add_row("Read hosts", *_hosts_row(settings.resolved_read_hosts))
    table.add_row("Write hosts", *_hosts_row(settings.resolved_write_hosts))

    if settings.app_id:
        ok_http, detail_http = asyncio.run(_check_hosts(settings))
        table.add_row("Connectivity", "OK" if ok_http else "FAIL", detail_http)
    else:
        table.add_row("Connectivity", "SKIPPED", "No app ID configured")

    _console.print(table)


@app.command(name="setup")
def setup() -> None:
    """Interactive setup (stores credentials in the user config .env)."""

    app_id = typer.prompt("Application ID").strip()
    api_key = typer.prompt("API key", hide_input=True, confirmation_prompt=False).strip()

    if not app_id or not api_key:
        raise typer.BadParameter("app ID and API key are required")

    env_path = write_user_env_vars(
        {
            "INDEXFLOW_APP_ID": app_id,
            "INDEXFLOW_API_KEY": api_key,
        }
    )

    _console.print(f"[green]Saved config to:[/green] {env_path}")
