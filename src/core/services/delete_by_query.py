"""Delete-by-query workflow.

The index service has no "delete by filter" primitive, so deletion is done in
rounds: browse the matching objects (identifiers only), delete that page in a
batch, wait for the deletion task to be published, then decide whether
another round is needed. A deletion invalidates browse cursors, so every new
round browses the original query from the start again; already-deleted
objects simply no longer match.

The workflow is an explicit state machine. `DeleteByQueryWorkflow.step`
advances exactly one phase, which keeps each phase testable on its own, and
`run` drives it while checking cancellation before every phase.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from core.domain.errors import InvalidResponseError
from core.domain.models import Query
from core.interfaces.index_gateway import IndexGateway

logger = logging.getLogger(__name__)


class DeletePhase(str, Enum):
    BROWSING = "browsing"
    COLLECTING = "collecting"
    DELETING = "deleting"
    WAITING = "waiting"
    DECIDING = "deciding"
    DONE = "done"


@dataclass
class DeleteByQueryState:
    phase: DeletePhase = DeletePhase.BROWSING
    cursor: str | None = None
    page: dict[str, Any] | None = None
    object_ids: list[str] = field(default_factory=list)
    has_more: bool = False
    task_id: int | None = None
    deleted_count: int = 0
    rounds: int = 0


def collect_object_ids(page: object) -> list[str]:
    """Identifiers of a browse page; every hit must carry a string `objectID`."""

    if not isinstance(page, dict) or not isinstance(page.get("hits"), list):
        raise InvalidResponseError("No hits returned when browsing", field="hits")
    object_ids: list[str] = []
    for hit in page["hits"]:
        object_id = hit.get("objectID") if isinstance(hit, dict) else None
        if not isinstance(object_id, str):
            raise InvalidResponseError("Browse hit without objectID", field="objectID")
        object_ids.append(object_id)
    return object_ids


def extract_cursor(page: dict[str, Any]) -> str | None:
    cursor = page.get("cursor")
    if cursor is not None and not isinstance(cursor, str):
        raise InvalidResponseError("Invalid cursor returned when browsing", field="cursor")
    return cursor


def extract_task_id(content: object) -> int:
    task_id = content.get("taskID") if isinstance(content, dict) else None
    # bool is an int subclass; a boolean task ID is still malformed.
    if not isinstance(task_id, int) or isinstance(task_id, bool):
        raise InvalidResponseError("No task ID returned when deleting", field="taskID")
    return task_id


class DeleteByQueryWorkflow:
    def __init__(self, gateway: IndexGateway, query: Query) -> None:
        self._gateway = gateway
        # Save bandwidth by retrieving only the identifiers.
        self.browse_query = query.copy_with(attributes_to_retrieve=["objectID"])
        self.state = DeleteByQueryState()

    async def run(self, *, is_cancelled: Callable[[], bool]) -> None:
        while self.state.phase is not DeletePhase.DONE:
            if is_cancelled():
                logger.debug("Delete-by-query cancelled before %s", self.state.phase.value)
                return None
            await self.step(is_cancelled=is_cancelled)
        logger.info(
            "Delete-by-query deleted %d object(s) in %d round(s)",
            self.state.deleted_count,
            self.state.rounds,
        )
        return None

    async def step(self, *, is_cancelled: Callable[[], bool]) -> DeletePhase:
        """Run the current phase and return the next one."""

        state = self.state
        phase = state.phase
        logger.debug("Delete-by-query phase: %s", phase.value)

        if phase is DeletePhase.BROWSING:
            state.page = await self._gateway.browse_page(self.browse_query, state.cursor)
            state.phase = DeletePhase.COLLECTING

        elif phase is DeletePhase.COLLECTING:
            page = state.page
            state.object_ids = collect_object_ids(page)
            assert page is not None
            cursor = extract_cursor(page)
            state.has_more = cursor is not None
            if state.object_ids:
                state.phase = DeletePhase.DELETING
            elif state.has_more:
                # Nothing was deleted, so the cursor is still valid.
                state.cursor = cursor
                state.phase = DeletePhase.BROWSING
            else:
                state.phase = DeletePhase.DONE

        elif phase is DeletePhase.DELETING:
            content = await self._gateway.delete_object_ids(state.object_ids)
            state.task_id = extract_task_id(content)
            state.phase = DeletePhase.WAITING

        elif phase is DeletePhase.WAITING:
            assert state.task_id is not None
            status = await self._gateway.wait_for_task(state.task_id, is_cancelled=is_cancelled)
            if status is None:
                # Polling observed the cancellation; the run loop stops next.
                return state.phase
            state.deleted_count += len(state.object_ids)
            state.rounds += 1
            state.phase = DeletePhase.DECIDING

        elif phase is DeletePhase.DECIDING:
            if state.has_more:
                state.cursor = None
                state.phase = DeletePhase.BROWSING
            else:
                state.phase = DeletePhase.DONE

        return state.phase
