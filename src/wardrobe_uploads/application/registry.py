from __future__ import annotations

import logging
import random
import string
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from src.wardrobe_uploads.domain.exceptions import InvalidTaskUpdateError, TaskNotFoundError
from src.wardrobe_uploads.domain.models.task import TASK_ADAPTER, TASK_MODELS, Task
from src.wardrobe_uploads.domain.models.task_patch import TaskPatch
from src.wardrobe_uploads.domain.models.task_status import TERMINAL_STATUSES, TaskStatus

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_task_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"upload-{int(time.time() * 1000)}-{suffix}"


class RegistryChangeKind(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    SELECTED = "selected"


@dataclass(frozen=True)
class RegistryChange:
    kind: RegistryChangeKind
    task_id: str | None
    task: Task | None = None


RegistryListener = Callable[[RegistryChange], None]


class TaskRegistry:
    """In-memory source of truth for upload tasks.

    Every mutation replaces the single record for one id with a new
    immutable record while holding the registry lock, so updates coming
    from different tasks never interfere. Listeners run after the lock is
    released.
    """

    def __init__(self, id_factory: Callable[[], str] = new_task_id) -> None:
        self._id_factory = id_factory
        self._tasks: dict[str, Task] = {}
        self._active_task_id: str | None = None
        self._lock = threading.RLock()
        self._listeners: list[RegistryListener] = []

    @property
    def active_task_id(self) -> str | None:
        return self._active_task_id

    @property
    def active_task(self) -> Task | None:
        with self._lock:
            if self._active_task_id is None:
                return None
            return self._tasks.get(self._active_task_id)

    def get_task(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def list_tasks(self) -> list[Task]:
        with self._lock:
            return list(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def subscribe(self, listener: RegistryListener) -> Callable[[], None]:
        """Register ``listener`` for change events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def add_task(self, file_name: str, **fields: Any) -> str:
        """Insert a new task, mark it active and return its id."""
        fields.setdefault("status", TaskStatus.UPLOADING)
        with self._lock:
            task_id = self._id_factory()
            while task_id in self._tasks:
                task_id = self._id_factory()
            try:
                task = TASK_ADAPTER.validate_python(
                    {**fields, "id": task_id, "file_name": file_name}
                )
            except ValidationError as exc:
                raise InvalidTaskUpdateError(task_id, str(exc)) from exc
            self._tasks[task_id] = task
            self._active_task_id = task_id
        logger.debug("Task added", extra={"task_id": task_id, "file_name": file_name})
        self._emit(RegistryChange(RegistryChangeKind.ADDED, task_id, task))
        return task_id

    def update_task(
        self, task_id: str, patch: TaskPatch | None = None, **fields: Any
    ) -> Task | None:
        """Merge ``patch`` (or keyword fields) into the record for ``task_id``.

        Unknown ids are ignored and return ``None``. A patch that would leave
        the record in an invalid state raises ``InvalidTaskUpdateError`` and
        the stored record is left untouched.
        """
        if patch is None:
            try:
                patch = TaskPatch(**fields)
            except ValidationError as exc:
                raise InvalidTaskUpdateError(task_id, str(exc)) from exc
        elif fields:
            raise TypeError("Pass either a TaskPatch or keyword fields, not both")

        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                logger.debug("Update for unknown task ignored", extra={"task_id": task_id})
                return None
            updated = _merge(current, patch)
            if updated == current:
                return current
            self._tasks[task_id] = updated
        self._emit(RegistryChange(RegistryChangeKind.UPDATED, task_id, updated))
        return updated

    def remove_task(self, task_id: str) -> Task | None:
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                return None
            if self._active_task_id == task_id:
                self._active_task_id = None
        logger.debug("Task removed", extra={"task_id": task_id})
        self._emit(RegistryChange(RegistryChangeKind.REMOVED, task_id, task))
        return task

    def set_active_task(self, task_id: str | None) -> None:
        with self._lock:
            if task_id is not None and task_id not in self._tasks:
                raise TaskNotFoundError(task_id)
            if self._active_task_id == task_id:
                return
            self._active_task_id = task_id
            task = self._tasks.get(task_id) if task_id is not None else None
        self._emit(RegistryChange(RegistryChangeKind.SELECTED, task_id, task))

    def clear_completed_tasks(self) -> list[str]:
        """Remove every task in a terminal state and return the removed ids."""
        with self._lock:
            removed = [
                task for task in self._tasks.values() if task.status in TERMINAL_STATUSES
            ]
            for task in removed:
                del self._tasks[task.id]
                if self._active_task_id == task.id:
                    self._active_task_id = None
        for task in removed:
            self._emit(RegistryChange(RegistryChangeKind.REMOVED, task.id, task))
        if removed:
            logger.info("Cleared completed tasks", extra={"count": len(removed)})
        return [task.id for task in removed]

    def _emit(self, change: RegistryChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception(
                    "Registry listener failed",
                    extra={"task_id": change.task_id, "kind": change.kind.value},
                )


def _merge(current: Task, patch: TaskPatch) -> Task:
    changes = patch.changes()
    status = changes.get("status") or current.status
    changes["status"] = status
    target = TASK_MODELS[status]

    foreign = sorted(
        name
        for name, value in changes.items()
        if value is not None and name not in target.model_fields
    )
    if foreign:
        raise InvalidTaskUpdateError(
            current.id, f"{', '.join(foreign)} not valid for status '{status.value}'"
        )

    progress = changes.get("progress")
    if progress is not None and not current.is_terminal:
        # progress never moves backwards until the task settles
        changes["progress"] = max(current.progress, progress)

    try:
        return TASK_ADAPTER.validate_python({**dict(current), **changes})
    except ValidationError as exc:
        raise InvalidTaskUpdateError(current.id, str(exc)) from exc
