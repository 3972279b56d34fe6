from src.wardrobe_uploads.domain.models.notification import NotificationKind, TaskNotification
from src.wardrobe_uploads.domain.models.source_file import SourceFile
from src.wardrobe_uploads.domain.models.task import (
    TASK_ADAPTER,
    TASK_MODELS,
    AnalyzingTask,
    FailedTask,
    SucceededTask,
    Task,
    TaskBase,
    UploadingTask,
)
from src.wardrobe_uploads.domain.models.task_patch import TaskPatch
from src.wardrobe_uploads.domain.models.task_status import TERMINAL_STATUSES, TaskStatus
from src.wardrobe_uploads.domain.models.task_view import TaskView
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem

__all__ = [
    "Task",
    "TaskBase",
    "UploadingTask",
    "AnalyzingTask",
    "SucceededTask",
    "FailedTask",
    "TASK_ADAPTER",
    "TASK_MODELS",
    "TaskPatch",
    "TaskStatus",
    "TERMINAL_STATUSES",
    "TaskView",
    "TaskNotification",
    "NotificationKind",
    "SourceFile",
    "WardrobeItem",
]
