from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from src.wardrobe_uploads.domain.cancellation import CancellationToken
from src.wardrobe_uploads.domain.models.notification import TaskNotification
from src.wardrobe_uploads.domain.models.source_file import SourceFile
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem

ProgressCallback = Callable[[int], None]


class UploadTransport(Protocol):
    """Contract for pushing a photo to storage."""

    async def upload(
        self,
        source: SourceFile,
        on_progress: ProgressCallback,
        token: CancellationToken,
    ) -> str:
        """Upload ``source`` and return the stored asset URL.

        ``on_progress`` receives percentages in 0..100. Raises
        ``UploadTransportError`` on failure.
        """


class AnalysisService(Protocol):
    """Contract for the AI analysis that turns a photo into a catalog item."""

    async def analyze(self, asset_url: str, token: CancellationToken) -> WardrobeItem:
        """Analyze the uploaded photo and return the created catalog item.

        Raises ``AnalysisError`` on failure.
        """


class NotificationSurface(Protocol):
    async def notify(self, notification: TaskNotification) -> None:
        """Show a toast for a task that reached a terminal state."""


class ItemEditorSurface(Protocol):
    async def open_editor(self, item_id: str, item: WardrobeItem) -> None:
        """Open the edit view for a catalog item using the cached snapshot."""
