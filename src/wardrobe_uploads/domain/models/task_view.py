from __future__ import annotations

from pydantic import BaseModel, Field

from src.wardrobe_uploads.domain.models.task import (
    FailedTask,
    SucceededTask,
    Task,
)
from src.wardrobe_uploads.domain.models.task_status import TaskStatus
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem


class TaskView(BaseModel):
    """Flat representation used by progress panels and task listings."""

    id: str = Field(description="Unique task identifier.")
    file_name: str
    status: TaskStatus
    progress: int
    retry_count: int
    is_retrying: bool
    is_active: bool = False
    error_message: str | None = None
    created_item_id: str | None = None
    created_item_data: WardrobeItem | None = None

    @classmethod
    def from_task(cls, task: Task, *, active: bool = False) -> TaskView:
        view = cls(
            id=task.id,
            file_name=task.file_name,
            status=task.status,
            progress=task.progress,
            retry_count=task.retry_count,
            is_retrying=task.is_retrying,
            is_active=active,
        )
        if isinstance(task, FailedTask):
            view.error_message = task.error_message
        elif isinstance(task, SucceededTask):
            view.created_item_id = task.created_item_id
            view.created_item_data = task.created_item_data
        return view
