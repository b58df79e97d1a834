"""Contrato del transporte hacia el servicio de índices.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- Los workflows dependen de esta abstracción; el transporte httpx real y los
  fakes de tests son intercambiables.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, Sequence, runtime_checkable


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


@runtime_checkable
class SearchTransport(Protocol):
    """Primitiva única de acceso al servicio.

    Reglas de diseño:
    - `perform_query` es asíncrono y resuelve exactamente una vez.
    - El failover entre `hosts` es responsabilidad del transporte.
    - Los fallos se lanzan como `TransportError`; nunca se reintentan arriba.
    """

    async def perform_query(
        self,
        path: str,
        method: HttpMethod,
        body: dict[str, Any] | None,
        hosts: Sequence[str],
        *,
        is_search_query: bool = False,
    ) -> dict[str, Any]:
        """Ejecuta la petición y devuelve el JSON decodificado."""

        ...
