from __future__ import annotations

import asyncio
import logging

from src.wardrobe_uploads.application.registry import TaskRegistry
from src.wardrobe_uploads.domain.cancellation import CancellationToken
from src.wardrobe_uploads.domain.exceptions import PipelineStageError
from src.wardrobe_uploads.domain.models.notification import NotificationKind, TaskNotification
from src.wardrobe_uploads.domain.models.source_file import SourceFile
from src.wardrobe_uploads.domain.models.task import Task
from src.wardrobe_uploads.domain.models.task_status import TaskStatus
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem
from src.wardrobe_uploads.domain.repositories import (
    AnalysisService,
    NotificationSurface,
    UploadTransport,
)

logger = logging.getLogger(__name__)


class UploadPipeline:
    """Drives a single task from upload through analysis to a terminal state.

    All failures are converted into an ``Error`` record on the task; only
    cancellation propagates out of :meth:`run`. A cancelled run writes
    nothing back to the registry.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        transport: UploadTransport,
        analysis: AnalysisService,
        notifier: NotificationSurface,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._analysis = analysis
        self._notifier = notifier

    async def run(
        self,
        task_id: str,
        source: SourceFile | None,
        token: CancellationToken,
        *,
        asset_url: str | None = None,
    ) -> Task | None:
        """Run the task; with ``asset_url`` set the upload stage is skipped."""
        stage = TaskStatus.ANALYZING if asset_url is not None else TaskStatus.UPLOADING
        try:
            if asset_url is None:
                if source is None:
                    raise ValueError("A source file is required to upload")
                asset_url = await self._upload(task_id, source, token)
                stage = TaskStatus.ANALYZING
                if self._registry.update_task(
                    task_id, status=TaskStatus.ANALYZING, progress=100, asset_url=asset_url
                ) is None:
                    return None
            token.raise_if_cancelled()
            item = await self._analysis.analyze(asset_url, token)
            token.raise_if_cancelled()
        except asyncio.CancelledError:
            logger.info("Pipeline cancelled", extra={"task_id": task_id, "stage": stage.value})
            raise
        except PipelineStageError as exc:
            logger.warning(
                "Pipeline stage failed",
                extra={"task_id": task_id, "stage": exc.stage.value, "error": exc.message},
            )
            return await self._settle_error(
                task_id, exc.stage, exc.message or exc.__class__.__name__, asset_url
            )
        except Exception as exc:
            logger.exception(
                "Unexpected pipeline failure", extra={"task_id": task_id, "stage": stage.value}
            )
            return await self._settle_error(
                task_id, stage, str(exc) or exc.__class__.__name__, asset_url
            )
        return await self._settle_success(task_id, item)

    async def _upload(self, task_id: str, source: SourceFile, token: CancellationToken) -> str:
        def _on_progress(percentage: int) -> None:
            if token.cancelled:
                return
            self._registry.update_task(task_id, progress=min(max(int(percentage), 0), 100))

        token.raise_if_cancelled()
        logger.debug("Uploading", extra={"task_id": task_id, "size": source.size})
        return await self._transport.upload(source, _on_progress, token)

    async def _settle_success(self, task_id: str, item: WardrobeItem) -> Task | None:
        task = self._registry.update_task(
            task_id,
            status=TaskStatus.SUCCESS,
            progress=100,
            is_retrying=False,
            created_item_id=item.id,
            created_item_data=item,
        )
        if task is None:
            return None
        logger.info("Task succeeded", extra={"task_id": task_id, "item_id": item.id})
        await self._notify(
            TaskNotification(
                kind=NotificationKind.SUCCESS,
                task_id=task_id,
                message=f'"{task.file_name}" added to wardrobe!',
            )
        )
        return task

    async def _settle_error(
        self,
        task_id: str,
        stage: TaskStatus,
        message: str,
        asset_url: str | None,
    ) -> Task | None:
        task = self._registry.update_task(
            task_id,
            status=TaskStatus.ERROR,
            is_retrying=False,
            error_message=message,
            failed_stage=stage,
            asset_url=asset_url if stage is TaskStatus.ANALYZING else None,
        )
        if task is None:
            return None
        await self._notify(
            TaskNotification(kind=NotificationKind.ERROR, task_id=task_id, message=message)
        )
        return task

    async def _notify(self, notification: TaskNotification) -> None:
        try:
            await self._notifier.notify(notification)
        except Exception:
            logger.exception(
                "Notification delivery failed", extra={"task_id": notification.task_id}
            )
