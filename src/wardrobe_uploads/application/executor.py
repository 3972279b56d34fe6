from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from src.wardrobe_uploads.domain.cancellation import CancellationToken

logger = logging.getLogger(__name__)

RunFactory = Callable[[CancellationToken], Awaitable[Any]]


@dataclass(frozen=True)
class TaskRun:
    task_id: str
    token: CancellationToken
    future: asyncio.Task


class TaskExecutor:
    """Runs one asyncio task per upload task.

    ``max_concurrent_tasks`` bounds how many runs execute at once; ``None``
    leaves the number of in-flight runs unlimited. Runs waiting for a slot
    can still be cancelled.
    """

    def __init__(self, max_concurrent_tasks: int | None = None) -> None:
        if max_concurrent_tasks is not None and max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be positive or None")
        self._max_concurrent_tasks = max_concurrent_tasks
        self._semaphore = (
            asyncio.Semaphore(max_concurrent_tasks) if max_concurrent_tasks else None
        )
        self._runs: dict[str, TaskRun] = {}
        self._cancelling: set[asyncio.Task] = set()

    @property
    def max_concurrent_tasks(self) -> int | None:
        return self._max_concurrent_tasks

    def submit(self, task_id: str, factory: RunFactory) -> TaskRun:
        """Schedule ``factory(token)`` on the running loop for ``task_id``."""
        token = CancellationToken()
        future = asyncio.create_task(self._guarded(factory, token), name=f"upload:{task_id}")
        run = TaskRun(task_id=task_id, token=token, future=future)
        self._runs[task_id] = run
        future.add_done_callback(lambda done, run=run: self._on_done(run, done))
        return run

    def current_run(self, task_id: str) -> TaskRun | None:
        """Return the latest run submitted for ``task_id`` that is still tracked."""
        return self._runs.get(task_id)

    def is_running(self, task_id: str) -> bool:
        run = self._runs.get(task_id)
        return run is not None and not run.future.done()

    def running_ids(self) -> list[str]:
        return [task_id for task_id, run in self._runs.items() if not run.future.done()]

    def cancel(self, task_id: str, reason: str = "cancelled") -> bool:
        run = self._runs.pop(task_id, None)
        if run is None:
            return False
        run.token.cancel(reason)
        if run.future.cancel():
            self._cancelling.add(run.future)
            run.future.add_done_callback(self._cancelling.discard)
        logger.info("Task run cancelled", extra={"task_id": task_id, "reason": reason})
        return True

    async def drain(self) -> None:
        """Wait until every submitted run has finished."""
        while self._runs or self._cancelling:
            futures = [run.future for run in list(self._runs.values())]
            futures.extend(self._cancelling)
            await asyncio.gather(*futures, return_exceptions=True)

    async def shutdown(self) -> None:
        for task_id in list(self._runs):
            self.cancel(task_id, reason="shutdown")
        await self.drain()

    async def _guarded(self, factory: RunFactory, token: CancellationToken) -> Any:
        if self._semaphore is None:
            return await factory(token)
        async with self._semaphore:
            token.raise_if_cancelled()
            return await factory(token)

    def _on_done(self, run: TaskRun, future: asyncio.Task) -> None:
        if self._runs.get(run.task_id) is run:
            del self._runs[run.task_id]
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "Task run ended with an unhandled error",
                extra={"task_id": run.task_id},
                exc_info=exc,
            )
