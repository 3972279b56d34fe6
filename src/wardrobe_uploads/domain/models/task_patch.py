from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.wardrobe_uploads.domain.models.task_status import TaskStatus
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem


class TaskPatch(BaseModel):
    """Partial update applied to a task record.

    Only explicitly provided fields take part in the merge, so ``None`` can
    be used to clear a facet.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    file_name: str | None = None
    status: TaskStatus | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    retry_count: int | None = Field(default=None, ge=0)
    is_retrying: bool | None = None
    error_message: str | None = None
    failed_stage: TaskStatus | None = None
    asset_url: str | None = None
    created_item_id: str | None = None
    created_item_data: WardrobeItem | None = None

    def changes(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.model_fields_set}
