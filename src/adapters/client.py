"""Cliente del servicio de índices.

Responsabilidad:
- Resolver hosts de lectura/escritura desde `AppSettings`.
- Poseer el transporte compartido por todos los `Index`.
- Ejecutar lotes de consultas (multi-queries) como una sola petición.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from adapters.http_client import HttpTransport
from adapters.index import Index
from core.config import AppSettings
from core.domain.errors import InvalidResponseError
from core.domain.models import IndexQuery, MultipleQueriesStrategy
from core.interfaces.transport import HttpMethod, SearchTransport
from core.services.operation import CompletionHandler, Operation, start_operation

logger = logging.getLogger(__name__)


class IndexClient:
    """Punto de entrada: crea proxies `Index` sobre un transporte común."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        transport: SearchTransport | None = None,
    ) -> None:
        self.settings = settings or AppSettings()
        self.read_hosts = self.settings.resolved_read_hosts()
        self.write_hosts = self.settings.resolved_write_hosts()
        self._owned_transport: HttpTransport | None = None
        if transport is None:
            self._owned_transport = HttpTransport(self.settings)
            transport = self._owned_transport
        self.transport: SearchTransport = transport

    async def __aenter__(self) -> "IndexClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owned_transport is not None:
            await self._owned_transport.aclose()

    def get_index(self, index_name: str) -> Index:
        return Index(self, index_name)

    async def run_multiple_queries(
        self,
        requests: Sequence[IndexQuery],
        strategy: MultipleQueriesStrategy | str | None = None,
    ) -> list[dict[str, Any]]:
        body: dict[str, Any] = {
            "requests": [
                {"indexName": request.index_name, "params": request.query.build()}
                for request in requests
            ]
        }
        if strategy is not None:
            body["strategy"] = MultipleQueriesStrategy(strategy).value
        logger.debug("Sending %d queries in one batch", len(requests))
        content = await self.transport.perform_query(
            "1/indexes/*/queries",
            HttpMethod.POST,
            body,
            self.read_hosts,
            is_search_query=True,
        )
        results = content.get("results")
        if not isinstance(results, list):
            raise InvalidResponseError("No results in response", field="results")
        return results

    def multiple_queries(
        self,
        requests: Sequence[IndexQuery],
        strategy: MultipleQueriesStrategy | str | None = None,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[list[dict[str, Any]]]:
        """Ejecuta varias consultas (posiblemente sobre índices distintos)."""

        requests = list(requests)

        async def work(operation: Operation[list[dict[str, Any]]]) -> list[dict[str, Any]]:
            return await self.run_multiple_queries(requests, strategy)

        return start_operation(work, completion_handler, name="multiple-queries")
