"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import AggregatedResult, TaskStatus

_MAX_CELL = 80


def _cell(value: object) -> str:
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    if len(text) > _MAX_CELL:
        return text[: _MAX_CELL - 1] + "…"
    return text


def print_banner(console: Console) -> None:
    title = Text("indexflow", style="bold cyan")
    subtitle = Text("Search • Facets • Tasks", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_hits_table(hits: Sequence[dict[str, Any]], *, title: str = "Hits") -> Table:
    """Tabla de hits: `objectID` primero y luego las claves del primer hit."""

    table = Table(title=title)
    table.add_column("objectID", style="cyan", no_wrap=True)
    columns: list[str] = []
    if hits:
        columns = [key for key in hits[0] if key != "objectID" and not key.startswith("_")]
    for column in columns:
        table.add_column(column, style="white")
    for hit in hits:
        table.add_row(_cell(hit.get("objectID", "")), *(_cell(hit.get(c, "")) for c in columns))
    return table


def build_facets_table(result: AggregatedResult) -> Table:
    """Conteos por faceta; las disyuntivas se marcan como tales."""

    table = Table(title=f"Facets ({result.nb_hits if result.nb_hits is not None else '?'} hits)")
    table.add_column("Facet", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_column("Count", style="green", justify="right")
    table.add_column("Kind", style="dim")

    for facet, counts in result.disjunctive_facets.items():
        for value, count in sorted(counts.items(), key=lambda item: -item[1]):
            table.add_row(facet, value, str(count), "disjunctive")
    for facet, counts in result.facets.items():
        if facet in result.disjunctive_facets:
            continue
        for value, count in sorted(counts.items(), key=lambda item: -item[1]):
            table.add_row(facet, value, str(count), "conjunctive")

    if result.exhaustive_facets_count is False:
        table.caption = "Counts are approximate (non-exhaustive)."
    return table


def build_task_panel(task_id: int, status: TaskStatus) -> Panel:
    body = Text()
    body.append(f"Task {task_id}: ", style="bold")
    body.append(status.status, style="green" if status.is_published else "yellow")
    return Panel(body, title="Task", border_style="green")
