"""Cancellable asynchronous operations.

Every public call (search, wait-task, delete-by-query, ...) returns one
`Operation`. The operation wraps a coroutine factory and guarantees that its
outcome reaches the caller exactly once, either through the optional
completion handler or by awaiting the operation. Cancellation is cooperative:
it flips a flag the workflow checks at its phase boundaries, it never aborts an
in-flight HTTP call, and it suppresses delivery of the outcome.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from enum import Enum
from typing import Any, Awaitable, Callable, Generator, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

CompletionHandler = Callable[[Optional[Any], Optional[BaseException]], None]

_ids = itertools.count(1)


class OperationState(str, Enum):
    PENDING = "pending"
    EXECUTING = "executing"
    CANCELLED = "cancelled"
    FINISHED = "finished"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationState.CANCELLED, OperationState.FINISHED)


class Operation(Generic[T]):
    """A unit of asynchronous work with a start/cancel/finish lifecycle.

    The work receives the operation itself so it can poll `is_cancelled`
    between phases. `cancel()` is safe to call from any thread.
    """

    def __init__(
        self,
        work: Callable[["Operation[T]"], Awaitable[T]],
        *,
        completion_handler: CompletionHandler | None = None,
        name: str | None = None,
    ) -> None:
        self.id = next(_ids)
        self.name = name or f"operation-{self.id}"
        self._work = work
        self._completion_handler = completion_handler
        self._lock = threading.Lock()
        self._state = OperationState.PENDING
        self._result: T | None = None
        self._error: BaseException | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._done: asyncio.Future[None] | None = None
        self._task: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"Operation({self.name!r}, state={self._state.value})"

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def is_cancelled(self) -> bool:
        return self._state is OperationState.CANCELLED

    @property
    def is_finished(self) -> bool:
        return self._state is OperationState.FINISHED

    @property
    def result(self) -> T | None:
        return self._result

    @property
    def error(self) -> BaseException | None:
        return self._error

    def start(self) -> "Operation[T]":
        """Schedule the work on the running event loop.

        The work never runs inside the caller's frame: the earliest it can
        execute (and deliver) is the next loop iteration.
        """

        loop = asyncio.get_running_loop()
        with self._lock:
            if self._state is not OperationState.PENDING:
                return self
            self._state = OperationState.EXECUTING
            self._loop = loop
            self._done = loop.create_future()
        logger.debug("%s started", self.name)
        self._task = loop.create_task(self._run())
        return self

    def cancel(self) -> None:
        with self._lock:
            if self._state.is_terminal:
                return
            self._state = OperationState.CANCELLED
        logger.debug("%s cancelled", self.name)
        self._signal_done()

    def finish(self, result: T | None = None, error: BaseException | None = None) -> None:
        """Move to FINISHED and deliver the outcome, once.

        A cancelled operation stays cancelled and delivers nothing; a second
        call on a finished operation is ignored.
        """

        with self._lock:
            if self._state is OperationState.CANCELLED:
                logger.debug("%s finished after cancellation; outcome dropped", self.name)
                return
            if self._state is OperationState.FINISHED:
                logger.warning("%s finished twice; ignoring second outcome", self.name)
                return
            self._state = OperationState.FINISHED
            self._result = result
            self._error = error
        logger.debug("%s finished (error=%r)", self.name, error)
        self._signal_done()
        if self._completion_handler is not None:
            try:
                self._completion_handler(result, error)
            except Exception:
                logger.exception("%s completion handler raised", self.name)

    async def wait(self) -> T | None:
        """Wait for a terminal state and return the result (or raise)."""

        if self._done is not None:
            await asyncio.shield(self._done)
        elif self._state is OperationState.PENDING:
            raise RuntimeError(f"{self.name} has not been started")
        if self._state is OperationState.CANCELLED:
            raise asyncio.CancelledError(f"{self.name} was cancelled")
        if self._error is not None:
            raise self._error
        return self._result

    def __await__(self) -> Generator[Any, None, T | None]:
        return self.wait().__await__()

    async def _run(self) -> None:
        if self.is_cancelled:
            return
        try:
            result = await self._work(self)
        except Exception as exc:
            self.finish(error=exc)
        else:
            self.finish(result)

    def _signal_done(self) -> None:
        loop = self._loop
        if loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._resolve_done()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(self._resolve_done)

    def _resolve_done(self) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(None)


def start_operation(
    work: Callable[[Operation[T]], Awaitable[T]],
    completion_handler: CompletionHandler | None = None,
    *,
    name: str | None = None,
) -> Operation[T]:
    """Build and start an operation in one call."""

    return Operation(work, completion_handler=completion_handler, name=name).start()
