"""Proxy de un índice remoto.

Responsabilidad:
- Traducir cada operación del índice a una petición (`path`, método, cuerpo,
  hosts de lectura o escritura) sobre el transporte del cliente.
- Exponer cada llamada como un `Operation` cancelable.
- Alojar la caché de búsquedas y los workflows compuestos (esperar tareas,
  borrar por consulta, facetas disyuntivas).

Nota:
- Las operaciones deben invocarse con un event loop en marcha.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Callable, Sequence
from urllib.parse import quote

from core.domain.models import (
    AggregatedResult,
    IndexQuery,
    MultipleQueriesStrategy,
    Query,
    Refinements,
    TaskStatus,
)
from core.interfaces.transport import HttpMethod
from core.services.delete_by_query import DeleteByQueryWorkflow
from core.services.disjunctive_faceting import aggregate_results, build_disjunctive_queries
from core.services.expiring_cache import ExpiringCache
from core.services.operation import CompletionHandler, Operation, start_operation
from core.services.task_poller import poll_task

if TYPE_CHECKING:
    from adapters.client import IndexClient

logger = logging.getLogger(__name__)

JSONObject = dict[str, Any]


def _encode(value: str) -> str:
    return quote(value, safe="")


def _require_object_id(obj: JSONObject) -> str:
    object_id = obj.get("objectID")
    if not isinstance(object_id, str) or not object_id:
        raise ValueError("object must contain a string 'objectID'")
    return object_id


class Index:
    """Un índice concreto; se obtiene con `IndexClient.get_index(name)`."""

    def __init__(self, client: "IndexClient", index_name: str) -> None:
        self.client = client
        self.index_name = index_name
        self._encoded_name = _encode(index_name)
        self._search_cache: ExpiringCache | None = None

    def __repr__(self) -> str:
        return f"Index({self.index_name!r})"

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _path(self, *parts: str) -> str:
        return "/".join(["1/indexes", self._encoded_name, *parts])

    def _request(
        self,
        path: str,
        method: HttpMethod,
        body: JSONObject | None,
        hosts: Sequence[str],
        completion_handler: CompletionHandler | None,
        *,
        name: str,
    ) -> Operation[JSONObject]:
        async def work(operation: Operation[JSONObject]) -> JSONObject:
            return await self.client.transport.perform_query(path, method, body, hosts)

        return start_operation(work, completion_handler, name=f"{name}:{self.index_name}")

    def _read(
        self,
        path: str,
        method: HttpMethod,
        body: JSONObject | None,
        completion_handler: CompletionHandler | None,
        *,
        name: str,
    ) -> Operation[JSONObject]:
        return self._request(path, method, body, self.client.read_hosts, completion_handler, name=name)

    def _write(
        self,
        path: str,
        method: HttpMethod,
        body: JSONObject | None,
        completion_handler: CompletionHandler | None,
        *,
        name: str,
    ) -> Operation[JSONObject]:
        return self._request(path, method, body, self.client.write_hosts, completion_handler, name=name)

    # ------------------------------------------------------------------
    # single-request operations
    # ------------------------------------------------------------------
    def add_object(
        self,
        obj: JSONObject,
        object_id: str | None = None,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        """Añade un objeto; con `object_id` lo crea o sobrescribe con ese ID."""

        if object_id is None:
            return self._write(self._path(), HttpMethod.POST, obj, completion_handler, name="add-object")
        path = self._path(_encode(object_id))
        return self._write(path, HttpMethod.PUT, obj, completion_handler, name="add-object")

    def add_objects(
        self,
        objects: Sequence[JSONObject],
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        requests = [{"action": "addObject", "body": obj} for obj in objects]
        return self.batch(requests, completion_handler)

    def delete_object(
        self,
        object_id: str,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        path = self._path(_encode(object_id))
        return self._write(path, HttpMethod.DELETE, None, completion_handler, name="delete-object")

    def delete_objects(
        self,
        object_ids: Sequence[str],
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        object_ids = list(object_ids)

        async def work(operation: Operation[JSONObject]) -> JSONObject:
            return await self.delete_object_ids(object_ids)

        return start_operation(work, completion_handler, name=f"delete-objects:{self.index_name}")

    def get_object(
        self,
        object_id: str,
        attributes_to_retrieve: Sequence[str] | None = None,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        path = self._path(_encode(object_id))
        if attributes_to_retrieve is not None:
            query = Query(attributes_to_retrieve=list(attributes_to_retrieve))
            path = f"{path}?{query.build()}"
        return self._read(path, HttpMethod.GET, None, completion_handler, name="get-object")

    def get_objects(
        self,
        object_ids: Sequence[str],
        attributes_to_retrieve: Sequence[str] | None = None,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        requests: list[JSONObject] = []
        for object_id in object_ids:
            request: JSONObject = {"indexName": self.index_name, "objectID": object_id}
            if attributes_to_retrieve is not None:
                request["attributesToRetrieve"] = ",".join(attributes_to_retrieve)
            requests.append(request)
        return self._read(
            "1/indexes/*/objects",
            HttpMethod.POST,
            {"requests": requests},
            completion_handler,
            name="get-objects",
        )

    def partial_update_object(
        self,
        partial_object: JSONObject,
        object_id: str,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        path = self._path(_encode(object_id), "partial")
        return self._write(path, HttpMethod.POST, partial_object, completion_handler, name="partial-update")

    def partial_update_objects(
        self,
        objects: Sequence[JSONObject],
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        requests = [
            {"action": "partialUpdateObject", "objectID": _require_object_id(obj), "body": obj}
            for obj in objects
        ]
        return self.batch(requests, completion_handler)

    def save_object(
        self,
        obj: JSONObject,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        path = self._path(_encode(_require_object_id(obj)))
        return self._write(path, HttpMethod.PUT, obj, completion_handler, name="save-object")

    def save_objects(
        self,
        objects: Sequence[JSONObject],
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        requests = [
            {"action": "updateObject", "objectID": _require_object_id(obj), "body": obj}
            for obj in objects
        ]
        return self.batch(requests, completion_handler)

    def get_settings(self, completion_handler: CompletionHandler | None = None) -> Operation[JSONObject]:
        return self._read(self._path("settings"), HttpMethod.GET, None, completion_handler, name="get-settings")

    def set_settings(
        self,
        settings: JSONObject,
        forward_to_replicas: bool | None = None,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        path = self._path("settings")
        if forward_to_replicas is not None:
            path = f"{path}?forwardToReplicas={'true' if forward_to_replicas else 'false'}"
        return self._write(path, HttpMethod.PUT, settings, completion_handler, name="set-settings")

    def clear_index(self, completion_handler: CompletionHandler | None = None) -> Operation[JSONObject]:
        """Vacía el índice sin tocar settings ni API keys."""

        return self._write(self._path("clear"), HttpMethod.POST, None, completion_handler, name="clear-index")

    def batch(
        self,
        operations: Sequence[JSONObject],
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        body = {"requests": list(operations)}
        return self._write(self._path("batch"), HttpMethod.POST, body, completion_handler, name="batch")

    def browse(
        self,
        query: Query,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        """Primera página de navegación; las siguientes con `browse_from`."""

        async def work(operation: Operation[JSONObject]) -> JSONObject:
            return await self.browse_page(query)

        return start_operation(work, completion_handler, name=f"browse:{self.index_name}")

    def browse_from(
        self,
        cursor: str,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        async def work(operation: Operation[JSONObject]) -> JSONObject:
            return await self.browse_page(Query(), cursor)

        return start_operation(work, completion_handler, name=f"browse-from:{self.index_name}")

    # ------------------------------------------------------------------
    # search + cache
    # ------------------------------------------------------------------
    def search(
        self,
        query: Query,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[JSONObject]:
        """Busca en el índice, pasando primero por la caché si está activa.

        Un acierto de caché también se entrega en una iteración posterior del
        loop, igual que una respuesta remota.
        """

        path = self._path("query")
        body = {"params": query.build()}
        cache_key = f"{path}_body_{json.dumps(body, sort_keys=True)}"
        name = f"search:{self.index_name}"

        cache = self._search_cache
        if cache is not None:
            cached = cache.lookup(cache_key)
            if cached is not None:
                logger.debug("Search cache hit for %s", cache_key)

                async def cached_work(operation: Operation[JSONObject]) -> JSONObject:
                    return cached

                return start_operation(cached_work, completion_handler, name=name)

        async def work(operation: Operation[JSONObject]) -> JSONObject:
            content = await self.client.transport.perform_query(
                path,
                HttpMethod.POST,
                body,
                self.client.read_hosts,
                is_search_query=True,
            )
            current_cache = self._search_cache
            if current_cache is not None:
                current_cache.insert(cache_key, content)
            return content

        return start_operation(work, completion_handler, name=name)

    def enable_search_cache(self, ttl: float | None = None) -> None:
        """Activa la caché; cada búsqueda cacheada vale `ttl` segundos."""

        ttl = ttl if ttl is not None else self.client.settings.search_cache_ttl_seconds
        self._search_cache = ExpiringCache(ttl)

    def disable_search_cache(self) -> None:
        if self._search_cache is not None:
            self._search_cache.clear()
        self._search_cache = None

    def clear_search_cache(self) -> None:
        if self._search_cache is not None:
            self._search_cache.clear()

    @property
    def search_cache(self) -> ExpiringCache | None:
        return self._search_cache

    # ------------------------------------------------------------------
    # IndexGateway (coroutines shared by the composed workflows)
    # ------------------------------------------------------------------
    async def browse_page(self, query: Query, cursor: str | None = None) -> JSONObject:
        if cursor is None:
            return await self.client.transport.perform_query(
                self._path("browse"),
                HttpMethod.POST,
                {"params": query.build()},
                self.client.read_hosts,
            )
        path = f"{self._path('browse')}?cursor={_encode(cursor)}"
        return await self.client.transport.perform_query(path, HttpMethod.GET, None, self.client.read_hosts)

    async def delete_object_ids(self, object_ids: Sequence[str]) -> JSONObject:
        body = {"requests": [{"action": "deleteObject", "objectID": oid} for oid in object_ids]}
        return await self.client.transport.perform_query(
            self._path("batch"),
            HttpMethod.POST,
            body,
            self.client.write_hosts,
        )

    async def wait_for_task(
        self,
        task_id: int,
        *,
        is_cancelled: Callable[[], bool],
    ) -> TaskStatus | None:
        settings = self.client.settings
        return await poll_task(
            self.client.transport,
            self._path("task", str(task_id)),
            self.client.write_hosts,
            is_cancelled=is_cancelled,
            base_delay=settings.wait_task_base_delay,
            max_delay=settings.wait_task_max_delay,
        )

    # ------------------------------------------------------------------
    # composed workflows
    # ------------------------------------------------------------------
    def wait_task(
        self,
        task_id: int,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[TaskStatus]:
        """Espera a que una tarea del servidor quede publicada."""

        async def work(operation: Operation[TaskStatus]) -> TaskStatus | None:
            return await self.wait_for_task(task_id, is_cancelled=lambda: operation.is_cancelled)

        return start_operation(work, completion_handler, name=f"wait-task:{self.index_name}:{task_id}")

    def delete_by_query(
        self,
        query: Query,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[None]:
        """Borra todos los objetos que cumplen `query` (varias rondas si hace falta)."""

        workflow = DeleteByQueryWorkflow(self, query)

        async def work(operation: Operation[None]) -> None:
            await workflow.run(is_cancelled=lambda: operation.is_cancelled)

        return start_operation(work, completion_handler, name=f"delete-by-query:{self.index_name}")

    def multiple_queries(
        self,
        queries: Sequence[Query],
        strategy: MultipleQueriesStrategy | str | None = None,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[list[JSONObject]]:
        """Variante de `IndexClient.multiple_queries` con este índice como destino."""

        requests = [IndexQuery(index_name=self.index_name, query=query) for query in queries]
        return self.client.multiple_queries(requests, strategy, completion_handler)

    def search_disjunctive_faceting(
        self,
        query: Query,
        disjunctive_facets: Sequence[str],
        refinements: Refinements,
        completion_handler: CompletionHandler | None = None,
    ) -> Operation[AggregatedResult]:
        """Búsqueda con facetas disyuntivas: una consulta global + una por faceta."""

        disjunctive_facets = list(disjunctive_facets)
        queries = build_disjunctive_queries(query, disjunctive_facets, refinements)
        requests = [IndexQuery(index_name=self.index_name, query=q) for q in queries]

        async def work(operation: Operation[AggregatedResult]) -> AggregatedResult | None:
            results = await self.client.run_multiple_queries(requests)
            if operation.is_cancelled:
                return None
            return aggregate_results(disjunctive_facets, refinements, results)

        return start_operation(work, completion_handler, name=f"disjunctive-faceting:{self.index_name}")
