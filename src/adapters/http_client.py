"""Wrapper de httpx.

Por qué un wrapper:
- Estandariza timeouts, headers de autenticación y logging.
- Implementa `SearchTransport`: recorre la lista de hosts en orden y hace
  failover ante errores de red o 5xx.
- Facilita testeo: se puede sustituir por `httpx.MockTransport`.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from core.config import AppSettings
from core.domain.errors import InvalidResponseError, TransportError
from core.interfaces.transport import HttpMethod

logger = logging.getLogger(__name__)


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` con defaults seguros.

    Por qué un builder:
    - Centraliza timeouts/headers para que todas las peticiones se comporten igual.
    - `transport` permite inyectar un `httpx.MockTransport` en tests.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
        "X-Algolia-Application-Id": settings.app_id,
    }
    if settings.api_key:
        headers["X-Algolia-API-Key"] = settings.api_key
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        headers=headers,
        transport=transport,
    )


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return f"HTTP {response.status_code}"


class HttpTransport:
    """Transporte HTTP con failover secuencial entre hosts."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        scheme: str = "https",
    ) -> None:
        self._settings = settings or AppSettings()
        self._client = client or build_async_client(self._settings)
        self._owns_client = client is None
        self._scheme = scheme

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def perform_query(
        self,
        path: str,
        method: HttpMethod,
        body: dict[str, Any] | None,
        hosts: Sequence[str],
        *,
        is_search_query: bool = False,
    ) -> dict[str, Any]:
        if not hosts:
            raise TransportError("No hosts configured")

        timeout = (
            self._settings.search_timeout_seconds
            if is_search_query
            else self._settings.http_timeout_seconds
        )
        last_error: TransportError | None = None
        for host in hosts:
            url = f"{self._scheme}://{host}/{path}"
            try:
                response = await self._client.request(
                    method.value,
                    url,
                    json=body,
                    timeout=timeout,
                )
            except httpx.HTTPError as exc:
                logger.warning("%s %s failed on %s: %s", method.value, path, host, exc)
                last_error = TransportError(str(exc) or exc.__class__.__name__, host=host)
                continue

            if response.status_code >= 500:
                logger.warning(
                    "%s %s answered HTTP %d on %s",
                    method.value,
                    path,
                    response.status_code,
                    host,
                )
                last_error = TransportError(
                    _error_message(response),
                    status_code=response.status_code,
                    host=host,
                )
                continue

            if response.status_code >= 400:
                # Errores de cliente: otro host respondería lo mismo.
                raise TransportError(
                    _error_message(response),
                    status_code=response.status_code,
                    host=host,
                )

            try:
                payload = response.json()
            except ValueError as exc:
                raise InvalidResponseError(f"Non-JSON response from {host}") from exc
            if not isinstance(payload, dict):
                raise InvalidResponseError(f"Unexpected JSON payload from {host}")
            return payload

        assert last_error is not None
        raise last_error
