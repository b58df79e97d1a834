"""Contrato mínimo de un índice para workflows de varias fases.

Por qué Protocol:
- El workflow de borrado por consulta solo necesita navegar, borrar y esperar
  tareas; no conoce rutas, hosts ni HTTP.
- Permite probar cada fase con un índice falso en memoria.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, Sequence, runtime_checkable

from core.domain.models import Query, TaskStatus


@runtime_checkable
class IndexGateway(Protocol):
    async def browse_page(self, query: Query, cursor: str | None = None) -> dict[str, Any]:
        """Página de navegación: desde el inicio (`cursor=None`) o desde un cursor."""

        ...

    async def delete_object_ids(self, object_ids: Sequence[str]) -> dict[str, Any]:
        """Borrado en lote; la respuesta trae el `taskID`."""

        ...

    async def wait_for_task(
        self,
        task_id: int,
        *,
        is_cancelled: Callable[[], bool],
    ) -> TaskStatus | None:
        """Espera la publicación de la tarea; None si se canceló."""

        ...
