from enum import Enum


class TaskStatus(str, Enum):
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SUCCESS, TaskStatus.ERROR)


TERMINAL_STATUSES = frozenset({TaskStatus.SUCCESS, TaskStatus.ERROR})
