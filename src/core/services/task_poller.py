"""Task-completion polling.

The index service applies mutations asynchronously and answers with a task
identifier. Callers that need read-after-write consistency poll the task
status until it reports `published`. The delay between polls grows
quadratically from `base_delay` and is capped at `max_delay`; the wait is an
`asyncio.sleep`, so other operations keep running meanwhile.

Transport errors end the polling immediately: retrying/failover is the
transport's own job, polling only waits for eventual consistency.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from pydantic import ValidationError

from core.domain.errors import InvalidResponseError
from core.domain.models import TaskStatus
from core.interfaces.transport import HttpMethod, SearchTransport

logger = logging.getLogger(__name__)

BASE_DELAY = 0.1
MAX_DELAY = 5.0

Sleep = Callable[[float], Awaitable[Any]]


def backoff_delay(iteration: int, *, base_delay: float = BASE_DELAY, max_delay: float = MAX_DELAY) -> float:
    """Delay before poll number `iteration + 1` (iterations start at 1)."""

    return min(base_delay * iteration * iteration, max_delay)


def parse_task_status(content: object) -> TaskStatus:
    if not isinstance(content, dict):
        raise InvalidResponseError("Task status response is not an object", field="status")
    try:
        return TaskStatus.model_validate(content)
    except ValidationError as exc:
        raise InvalidResponseError(f"Invalid task status: {exc}", field="status") from exc


async def poll_task(
    transport: SearchTransport,
    path: str,
    hosts: Sequence[str],
    *,
    is_cancelled: Callable[[], bool],
    base_delay: float = BASE_DELAY,
    max_delay: float = MAX_DELAY,
    sleep: Sleep = asyncio.sleep,
) -> TaskStatus | None:
    """Poll `path` until the task is published.

    Returns None as soon as `is_cancelled()` is observed, before a poll or
    after a backoff wait.
    """

    iteration = 1
    while True:
        if is_cancelled():
            logger.debug("Polling %s cancelled at iteration %d", path, iteration)
            return None

        content = await transport.perform_query(path, HttpMethod.GET, None, hosts)
        status = parse_task_status(content)
        if status.is_published:
            logger.debug("Task %s published after %d poll(s)", path, iteration)
            return status

        delay = backoff_delay(iteration, base_delay=base_delay, max_delay=max_delay)
        logger.debug("Task %s is %r; next poll in %.2fs", path, status.status, delay)
        await sleep(delay)
        iteration += 1
