from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field
from typing import Any, Sequence

import pytest

from adapters.client import IndexClient
from core.config import AppSettings
from core.interfaces.transport import HttpMethod


@dataclass
class Call:
    path: str
    method: HttpMethod
    body: dict[str, Any] | None
    hosts: list[str]
    is_search_query: bool


@dataclass
class FakeTransport:
    """In-memory transport: scripted answers per (method, path), calls recorded."""

    calls: list[Call] = field(default_factory=list)
    routes: dict[tuple[HttpMethod, str], list[Any]] = field(default_factory=dict)

    def add(self, method: HttpMethod, path: str, *answers: Any) -> "FakeTransport":
        self.routes.setdefault((method, path), []).extend(answers)
        return self

    def calls_to(self, method: HttpMethod, path: str) -> list[Call]:
        return [c for c in self.calls if c.method is method and c.path.split("?", 1)[0] == path]

    async def perform_query(
        self,
        path: str,
        method: HttpMethod,
        body: dict[str, Any] | None,
        hosts: Sequence[str],
        *,
        is_search_query: bool = False,
    ) -> dict[str, Any]:
        self.calls.append(Call(path, method, copy.deepcopy(body), list(hosts), is_search_query))
        await asyncio.sleep(0)
        answers = self.routes.get((method, path.split("?", 1)[0]))
        assert answers, f"unexpected request {method.value} {path}"
        answer = answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return copy.deepcopy(answer)


def make_settings(**overrides: Any) -> AppSettings:
    values: dict[str, Any] = {
        "app_id": "APPID",
        "api_key": "KEY",
        "wait_task_base_delay": 0.001,
        "wait_task_max_delay": 0.002,
    }
    values.update(overrides)
    return AppSettings(_env_file=None, **values)


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def client(transport: FakeTransport) -> IndexClient:
    return IndexClient(make_settings(), transport=transport)
