from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import cast

import inject

from src.wardrobe_uploads.application.executor import TaskExecutor
from src.wardrobe_uploads.application.pipeline import UploadPipeline
from src.wardrobe_uploads.application.registry import (
    RegistryChange,
    RegistryChangeKind,
    TaskRegistry,
)
from src.wardrobe_uploads.application.retry import RetryController
from src.wardrobe_uploads.domain.exceptions import TaskNotFoundError, TaskNotReadyError
from src.wardrobe_uploads.domain.models.source_file import SourceFile
from src.wardrobe_uploads.domain.models.task import SucceededTask, Task
from src.wardrobe_uploads.domain.models.task_status import TaskStatus
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem
from src.wardrobe_uploads.domain.repositories import (
    AnalysisService,
    ItemEditorSurface,
    NotificationSurface,
    UploadTransport,
)
from src.setup.upload_config import UploadSettings, get_upload_settings

logger = logging.getLogger(__name__)


class UploadService:
    """Entry point used by the UI layer to submit and manage upload tasks."""

    def __init__(
        self,
        registry: TaskRegistry | None = None,
        transport: UploadTransport | None = None,
        analysis: AnalysisService | None = None,
        notifier: NotificationSurface | None = None,
        editor: ItemEditorSurface | None = None,
        settings: UploadSettings | None = None,
    ) -> None:
        # an empty registry is falsy, so collaborators are checked against None
        if registry is None:
            registry = cast(TaskRegistry, inject.instance(TaskRegistry))
        if transport is None:
            transport = cast(UploadTransport, inject.instance(UploadTransport))
        if analysis is None:
            analysis = cast(AnalysisService, inject.instance(AnalysisService))
        if notifier is None:
            notifier = cast(NotificationSurface, inject.instance(NotificationSurface))
        if editor is None:
            editor = cast(ItemEditorSurface, inject.instance(ItemEditorSurface))
        if settings is None:
            settings = get_upload_settings()

        self._registry = registry
        self._editor = editor
        self._sources: dict[str, SourceFile] = {}
        self._executor = TaskExecutor(settings.MAX_CONCURRENT_TASKS)
        self._pipeline = UploadPipeline(self._registry, transport, analysis, notifier)
        self._retry = RetryController(
            self._registry,
            self._pipeline,
            self._executor,
            self._sources,
            max_retries=settings.MAX_RETRIES,
        )
        self._unsubscribe = self._registry.subscribe(self._on_registry_change)

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def executor(self) -> TaskExecutor:
        return self._executor

    def submit(self, files: Iterable[SourceFile]) -> list[str]:
        """Create one task per file and start its pipeline; returns the new ids."""
        task_ids: list[str] = []
        for source in files:
            task_id = self._registry.add_task(source.file_name)
            self._sources[task_id] = source
            self._executor.submit(
                task_id,
                lambda token, task_id=task_id, source=source: self._pipeline.run(
                    task_id, source, token
                ),
            )
            task_ids.append(task_id)
        logger.info("Submitted uploads", extra={"count": len(task_ids)})
        return task_ids

    def retry(self, task_id: str) -> bool:
        return self._retry.retry(task_id)

    def dismiss(self, task_id: str) -> None:
        """Remove a task; an in-flight run is cancelled through the registry listener."""
        if self._registry.remove_task(task_id) is None:
            raise TaskNotFoundError(task_id)

    def clear_completed(self) -> list[str]:
        return self._registry.clear_completed_tasks()

    def select(self, task_id: str | None) -> None:
        self._registry.set_active_task(task_id)

    def get_task(self, task_id: str) -> Task:
        task = self._registry.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(self) -> list[Task]:
        return self._registry.list_tasks()

    async def open_editor(self, task_id: str) -> WardrobeItem:
        """Open the item editor from the snapshot cached on a successful task."""
        task = self.get_task(task_id)
        if not isinstance(task, SucceededTask):
            raise TaskNotReadyError(task_id, task.status)
        await self._editor.open_editor(task.created_item_id, task.created_item_data)
        return task.created_item_data

    async def drain(self) -> None:
        await self._executor.drain()

    async def shutdown(self) -> None:
        self._unsubscribe()
        await self._executor.shutdown()

    def _on_registry_change(self, change: RegistryChange) -> None:
        if change.task_id is None:
            return
        if change.kind is RegistryChangeKind.REMOVED:
            self._executor.cancel(change.task_id, reason="removed")
            self._sources.pop(change.task_id, None)
        elif (
            change.kind is RegistryChangeKind.UPDATED
            and change.task is not None
            and change.task.status is TaskStatus.SUCCESS
        ):
            self._sources.pop(change.task_id, None)
