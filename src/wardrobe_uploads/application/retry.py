from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from src.wardrobe_uploads.application.executor import TaskExecutor
from src.wardrobe_uploads.application.pipeline import UploadPipeline
from src.wardrobe_uploads.application.registry import TaskRegistry
from src.wardrobe_uploads.domain.cancellation import CancellationToken
from src.wardrobe_uploads.domain.models.source_file import SourceFile
from src.wardrobe_uploads.domain.models.task import FailedTask, Task
from src.wardrobe_uploads.domain.models.task_status import TaskStatus

logger = logging.getLogger(__name__)


class RetryController:
    """Puts failed tasks back into the pipeline at the stage that failed.

    A task with a retry already in flight is left alone. ``max_retries``
    caps ``retry_count``; ``None`` allows unlimited retries.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        pipeline: UploadPipeline,
        executor: TaskExecutor,
        sources: Mapping[str, SourceFile],
        max_retries: int | None = None,
    ) -> None:
        self._registry = registry
        self._pipeline = pipeline
        self._executor = executor
        self._sources = sources
        self._max_retries = max_retries

    def retry(self, task_id: str) -> bool:
        """Schedule a retry and return whether a new run was started."""
        task = self._registry.get_task(task_id)
        if task is None:
            logger.debug("Retry for unknown task ignored", extra={"task_id": task_id})
            return False
        if task.is_retrying:
            logger.info("Retry already in flight", extra={"task_id": task_id})
            return False
        if not isinstance(task, FailedTask):
            logger.info(
                "Only failed tasks can be retried",
                extra={"task_id": task_id, "status": task.status.value},
            )
            return False
        if self._max_retries is not None and task.retry_count >= self._max_retries:
            logger.warning(
                "Retry limit reached",
                extra={"task_id": task_id, "retry_count": task.retry_count},
            )
            return False

        asset_url = task.asset_url if task.failed_stage is TaskStatus.ANALYZING else None
        source = self._sources.get(task_id)
        if asset_url is None and source is None:
            logger.warning("No source file kept for re-upload", extra={"task_id": task_id})
            return False

        resume = TaskStatus.UPLOADING if asset_url is None else TaskStatus.ANALYZING
        self._registry.update_task(
            task_id,
            status=resume,
            progress=0 if resume is TaskStatus.UPLOADING else 100,
            is_retrying=True,
            error_message=None,
            retry_count=task.retry_count + 1,
            asset_url=asset_url,
        )
        logger.info(
            "Retrying task",
            extra={
                "task_id": task_id,
                "stage": resume.value,
                "retry_count": task.retry_count + 1,
            },
        )
        self._executor.submit(
            task_id, lambda token: self._run(task_id, source, token, asset_url)
        )
        return True

    async def _run(
        self,
        task_id: str,
        source: SourceFile | None,
        token: CancellationToken,
        asset_url: str | None,
    ) -> Task | None:
        try:
            return await self._pipeline.run(task_id, source, token, asset_url=asset_url)
        finally:
            # a newer retry owns the flag once it has replaced this run
            current = self._executor.current_run(task_id)
            if current is None or current.future is asyncio.current_task():
                self._registry.update_task(task_id, is_retrying=False)
