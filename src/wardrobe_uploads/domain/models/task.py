from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from src.wardrobe_uploads.domain.models.task_status import TaskStatus
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TaskBase(BaseModel):
    """Fields shared by every task state.

    Records are immutable: the registry replaces a record wholesale on each
    update. State-specific facets live on the concrete variants only.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique task identifier.")
    file_name: str = Field(description="Display name of the source file.")
    status: TaskStatus
    progress: int = Field(default=0, ge=0, le=100, description="Percent complete.")
    retry_count: int = Field(default=0, ge=0, description="Retry attempts so far.")
    is_retrying: bool = Field(default=False, description="A retry is in flight.")
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class UploadingTask(TaskBase):
    status: Literal[TaskStatus.UPLOADING] = TaskStatus.UPLOADING


class AnalyzingTask(TaskBase):
    status: Literal[TaskStatus.ANALYZING] = TaskStatus.ANALYZING
    asset_url: str = Field(description="Reference to the uploaded photo.")


class SucceededTask(TaskBase):
    status: Literal[TaskStatus.SUCCESS] = TaskStatus.SUCCESS
    created_item_id: str = Field(description="Identifier of the created catalog item.")
    created_item_data: WardrobeItem = Field(description="Cached catalog item snapshot.")


class FailedTask(TaskBase):
    status: Literal[TaskStatus.ERROR] = TaskStatus.ERROR
    error_message: str = Field(description="Human readable failure reason.")
    failed_stage: Literal[TaskStatus.UPLOADING, TaskStatus.ANALYZING] = Field(
        description="Stage a retry resumes from."
    )
    asset_url: str | None = Field(
        default=None, description="Uploaded photo, kept when analysis failed."
    )


Task = Annotated[
    Union[UploadingTask, AnalyzingTask, SucceededTask, FailedTask],
    Field(discriminator="status"),
]

TASK_ADAPTER: TypeAdapter[Task] = TypeAdapter(Task)

TASK_MODELS: dict[TaskStatus, type[TaskBase]] = {
    TaskStatus.UPLOADING: UploadingTask,
    TaskStatus.ANALYZING: AnalyzingTask,
    TaskStatus.SUCCESS: SucceededTask,
    TaskStatus.ERROR: FailedTask,
}
