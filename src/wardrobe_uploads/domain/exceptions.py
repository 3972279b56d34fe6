from src.wardrobe_uploads.domain.models.task_status import TaskStatus


class TaskNotFoundError(Exception):
    """Raised when a task identifier does not exist in the registry."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id '{task_id}' was not found.")
        self.task_id = task_id


class TaskNotReadyError(Exception):
    """Raised when an operation needs a task state the task has not reached."""

    def __init__(self, task_id: str, status: TaskStatus) -> None:
        super().__init__(f"Task '{task_id}' is '{status.value}'.")
        self.task_id = task_id
        self.status = status


class InvalidTaskUpdateError(ValueError):
    """Raised when a patch would produce an inconsistent task record."""

    def __init__(self, task_id: str, reason: str) -> None:
        super().__init__(f"Invalid update for task '{task_id}': {reason}")
        self.task_id = task_id
        self.reason = reason


class PipelineStageError(Exception):
    """Failure of one pipeline stage; ``stage`` tells retry where to resume."""

    stage: TaskStatus

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UploadTransportError(PipelineStageError):
    """Upload failed: network error, storage rejection or invalid file."""

    stage = TaskStatus.UPLOADING


class AnalysisError(PipelineStageError):
    """Analysis failed: service error, invalid response or timeout."""

    stage = TaskStatus.ANALYZING
