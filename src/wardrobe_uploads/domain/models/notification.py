from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NotificationKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class TaskNotification(BaseModel):
    """User facing toast emitted once per terminal transition."""

    model_config = ConfigDict(frozen=True)

    kind: NotificationKind
    task_id: str = Field(description="Task that settled.")
    message: str = Field(description="Text shown to the user.")
