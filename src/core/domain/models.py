"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta y documentación autocontenida (Field) sin acoplar
  el Core a librerías de I/O.
- Las consultas son inmutables: los workflows que necesitan variantes clonan
  y modifican (`Query.copy_with`) en lugar de compartir.

Nota:
- Estos modelos describen *qué* se pide y *qué* se recibe, no *cómo* viaja.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Union
from urllib.parse import urlencode

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

FacetFilter = Union[str, list[str]]
Refinements = dict[str, list[str]]


class Query(BaseModel):
    """Parámetros de búsqueda con nombre.

    Los nombres en Python son snake_case; en el wire viajan en camelCase.
    `extra_params` admite parámetros que no modelamos explícitamente.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    query: str | None = Field(
        default=None,
        description="Texto de búsqueda.",
    )
    filters: str | None = Field(
        default=None,
        description="Expresión de filtrado (sintaxis del servicio).",
    )
    facets: list[str] | None = Field(
        default=None,
        description="Facetas cuyos conteos se deben calcular.",
    )
    facet_filters: list[FacetFilter] | None = Field(
        default=None,
        description="Filtros de faceta: strings AND, sub-listas OR.",
    )
    page: int | None = Field(default=None, ge=0)
    hits_per_page: int | None = Field(default=None, ge=0)
    attributes_to_retrieve: list[str] | None = None
    attributes_to_highlight: list[str] | None = None
    attributes_to_snippet: list[str] | None = None
    analytics: bool | None = Field(
        default=None,
        description="Si es False la consulta no cuenta en analytics.",
    )
    extra_params: dict[str, Any] = Field(
        default_factory=dict,
        description="Parámetros adicionales enviados tal cual.",
    )

    def copy_with(self, **changes: Any) -> "Query":
        """Clona la consulta aplicando `changes` (nombres snake_case)."""

        return self.model_copy(update=changes, deep=True)

    def to_params(self) -> dict[str, str]:
        data = self.model_dump(by_alias=True, exclude_none=True, exclude={"extra_params"})
        data.update(self.extra_params)
        params: dict[str, str] = {}
        for key, value in data.items():
            if isinstance(value, bool):
                params[key] = "true" if value else "false"
            elif isinstance(value, (list, dict)):
                params[key] = json.dumps(value, separators=(",", ":"))
            else:
                params[key] = str(value)
        return params

    def build(self) -> str:
        """Serializa a query-string estable (claves ordenadas)."""

        return urlencode(sorted(self.to_params().items()))


class IndexQuery(BaseModel):
    """Una consulta dirigida a un índice concreto (para multi-queries)."""

    index_name: str = Field(..., min_length=1)
    query: Query = Field(default_factory=Query)


class MultipleQueriesStrategy(str, Enum):
    """Estrategia de ejecución de un lote de consultas."""

    NONE = "none"
    STOP_IF_ENOUGH_MATCHES = "stopIfEnoughMatches"


class TaskStatus(BaseModel):
    """Estado de una tarea asíncrona del servidor.

    Solo `status` se interpreta; el resto se conserva como extras.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)

    status: str = Field(..., description="'published' cuando la tarea es visible.")
    pending_task: bool | None = None

    @property
    def is_published(self) -> bool:
        return self.status == "published"


class AggregatedResult(BaseModel):
    """Resultado de una búsqueda con facetas disyuntivas.

    Por qué existe:
    - La primera respuesta aporta hits y paginación; el resto solo conteos.
    - `raw` conserva el payload fusionado completo para quien lo necesite.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    hits: list[dict[str, Any]] = Field(default_factory=list)
    nb_hits: int | None = None
    page: int | None = None
    nb_pages: int | None = None
    hits_per_page: int | None = None
    exhaustive_facets_count: bool | None = Field(
        default=None,
        description="False si algún conteo de facetas es aproximado.",
    )
    facets: dict[str, dict[str, int]] = Field(default_factory=dict)
    disjunctive_facets: dict[str, dict[str, int]] = Field(
        default_factory=dict,
        description="Conteos por faceta disyuntiva (incluye ceros reinstaurados).",
    )
    raw: dict[str, Any] = Field(default_factory=dict)
