"""CLI de indexflow (Typer + Rich).

Por qué una CLI fina:
- Toda la lógica vive en `core`/`adapters`; aquí solo se parsean argumentos,
  se ejecuta la operación en un event loop y se pinta el resultado.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

from adapters.client import IndexClient
from adapters.index import Index
from adapters.json_exporter import export_result_json
from cli import doctor
from cli.ui_components import build_facets_table, build_hits_table, build_task_panel, print_banner
from core.config import AppSettings
from core.domain.errors import IndexServiceError
from core.domain.models import Query, Refinements

T = TypeVar("T")

app = typer.Typer(no_args_is_help=True, help="Search, facet and maintain a remote index.")
app.add_typer(doctor.app, name="doctor")

_console = Console()


def _configure_logging(settings: AppSettings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def parse_refinements(values: List[str]) -> Refinements:
    """Convierte `facet=value` repetidos en un mapa facet -> valores."""

    refinements: Refinements = {}
    for raw in values:
        facet, sep, value = raw.partition("=")
        if not sep or not facet.strip() or not value.strip():
            raise typer.BadParameter(f"Expected facet=value, got {raw!r}")
        refinements.setdefault(facet.strip(), []).append(value.strip())
    return refinements


def _run_on_index(index_name: str, call: Callable[[Index], Awaitable[T]]) -> T:
    settings = AppSettings()
    _configure_logging(settings)
    try:
        index_client = IndexClient(settings)
    except ValueError as exc:
        _console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    async def runner() -> T:
        async with index_client as client:
            return await call(client.get_index(index_name))

    try:
        return asyncio.run(runner())
    except IndexServiceError as exc:
        _console.print(f"[red]Error ({exc.kind.value}):[/red] {exc.message}")
        raise typer.Exit(code=1) from exc


def _export(result: Any, output: Optional[Path]) -> None:
    if output is None:
        return
    path = export_result_json(result=result, output_path=output)
    _console.print(f"[green]Saved JSON to:[/green] {path}")


@app.command()
def search(
    index_name: str = typer.Argument(..., help="Index to query."),
    text: str = typer.Argument("", help="Full-text query."),
    filters: Optional[str] = typer.Option(None, "--filters", help="Filter expression."),
    hits_per_page: int = typer.Option(20, "--hits-per-page", min=0),
    page: int = typer.Option(0, "--page", min=0),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the raw response as JSON."),
) -> None:
    """Run a single search."""

    query = Query(query=text, filters=filters, hits_per_page=hits_per_page, page=page)
    content = _run_on_index(index_name, lambda index: index.search(query).wait())
    print_banner(_console)
    _console.print(build_hits_table(content.get("hits", [])))
    _export(content, output)


@app.command()
def facets(
    index_name: str = typer.Argument(..., help="Index to query."),
    text: str = typer.Argument("", help="Full-text query."),
    facet: List[str] = typer.Option([], "--facet", "-f", help="Conjunctive facet (repeatable)."),
    disjunctive: List[str] = typer.Option([], "--disjunctive", "-d", help="Disjunctive facet (repeatable)."),
    refine: List[str] = typer.Option([], "--refine", "-r", help="Selected value as facet=value (repeatable)."),
    hits_per_page: int = typer.Option(20, "--hits-per-page", min=0),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the aggregated result as JSON."),
) -> None:
    """Search with disjunctive faceting and show the merged facet counts."""

    refinements = parse_refinements(refine)
    query = Query(query=text, facets=[*facet, *disjunctive] or None, hits_per_page=hits_per_page)
    result = _run_on_index(
        index_name,
        lambda index: index.search_disjunctive_faceting(query, disjunctive, refinements).wait(),
    )
    _console.print(build_hits_table(result.hits))
    _console.print(build_facets_table(result))
    _export(result, output)


@app.command(name="wait-task")
def wait_task(
    index_name: str = typer.Argument(..., help="Index owning the task."),
    task_id: int = typer.Argument(..., help="Task identifier returned by a write."),
) -> None:
    """Block until a server task is published."""

    with _console.status(f"Waiting for task {task_id}..."):
        status = _run_on_index(index_name, lambda index: index.wait_task(task_id).wait())
    _console.print(build_task_panel(task_id, status))


@app.command(name="delete-by-query")
def delete_by_query(
    index_name: str = typer.Argument(..., help="Index to clean."),
    text: str = typer.Argument("", help="Full-text query the objects must match."),
    filters: Optional[str] = typer.Option(None, "--filters", help="Filter expression."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete every object matching a query."""

    if not yes:
        typer.confirm(
            f"Delete every object of {index_name!r} matching {text!r} (filters={filters!r})?",
            abort=True,
        )
    query = Query(query=text, filters=filters)
    with _console.status("Deleting..."):
        _run_on_index(index_name, lambda index: index.delete_by_query(query).wait())
    _console.print("[green]Done.[/green]")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
