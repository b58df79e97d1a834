"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (transporte HTTP, proxies de índice) lean config de
  forma consistente.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "indexflow"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "indexflow"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "indexflow"
    return Path.home() / ".config" / "indexflow"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str]) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# indexflow user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="INDEXFLOW_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    app_id: str = Field(
        default="",
        description="Identificador de la aplicación en el servicio de índices.",
    )
    api_key: str | None = Field(
        default=None,
        description="API key enviada en cada petición.",
    )
    host_domain: str = Field(
        default="algolia.net",
        min_length=1,
        description="Dominio base a partir del cual se derivan los hosts.",
    )
    read_hosts: list[str] | None = Field(
        default=None,
        description="Hosts de lectura explícitos (orden = prioridad de failover).",
    )
    write_hosts: list[str] | None = Field(
        default=None,
        description="Hosts de escritura explícitos (orden = prioridad de failover).",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout por request de escritura/lectura genérica (segundos).",
    )
    search_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout para consultas de búsqueda (segundos).",
    )
    user_agent: str = Field(
        default="indexflow/0.1",
        min_length=1,
        description="User-Agent de las peticiones HTTP.",
    )

    wait_task_base_delay: float = Field(
        default=0.1,
        gt=0,
        description="Espera mínima entre sondeos del estado de una tarea (segundos).",
    )
    wait_task_max_delay: float = Field(
        default=5.0,
        gt=0,
        description="Espera máxima entre sondeos del estado de una tarea (segundos).",
    )
    search_cache_ttl_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Vida de cada búsqueda cacheada cuando se activa la caché.",
    )

    log_level: str = Field(
        default="WARNING",
        description="Nivel de logging para la CLI (DEBUG, INFO, WARNING...).",
    )

    def resolved_read_hosts(self) -> list[str]:
        if self.read_hosts:
            return list(self.read_hosts)
        return [f"{self.app_id}-dsn.{self.host_domain}", *self._fallback_hosts()]

    def resolved_write_hosts(self) -> list[str]:
        if self.write_hosts:
            return list(self.write_hosts)
        return [f"{self.app_id}.{self.host_domain}", *self._fallback_hosts()]

    def _fallback_hosts(self) -> list[str]:
        if not self.app_id:
            raise ValueError(
                "app_id is required to derive hosts; set INDEXFLOW_APP_ID or explicit read/write hosts"
            )
        return [f"{self.app_id}-{i}.{self.host_domain}" for i in (1, 2, 3)]
