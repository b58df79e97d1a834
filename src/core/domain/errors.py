"""Errores del dominio.

Por qué un enum cerrado:
- Los workflows distinguen solo dos familias de fallo: transporte (red/HTTP)
  y respuestas inválidas (falta un campo requerido).
- La cancelación no es un error: simplemente no se entrega nada.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Familias de error que una operación puede entregar."""

    TRANSPORT = "transport"
    INVALID_RESPONSE = "invalid_response"


class IndexServiceError(Exception):
    """Base de los errores entregados por operaciones del índice."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportError(IndexServiceError):
    """Fallo de red o HTTP reportado por el transporte (se propaga sin cambios)."""

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        host: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.host = host


class InvalidResponseError(IndexServiceError):
    """La respuesta no trae un campo requerido o está malformada."""

    kind = ErrorKind.INVALID_RESPONSE

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
