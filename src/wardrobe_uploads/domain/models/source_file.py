from pydantic import BaseModel, ConfigDict, Field


class SourceFile(BaseModel):
    """Raw photo selected by the user, held in memory until the task settles."""

    model_config = ConfigDict(frozen=True)

    file_name: str = Field(description="Display name of the source file.")
    content_type: str = Field(description="MIME type reported by the client.")
    data: bytes = Field(repr=False, description="File contents.")

    @property
    def size(self) -> int:
        return len(self.data)
