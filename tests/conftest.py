from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import PurePosixPath

import pytest

from src.wardrobe_uploads.application.registry import TaskRegistry
from src.wardrobe_uploads.application.services import UploadService
from src.wardrobe_uploads.domain.cancellation import CancellationToken
from src.wardrobe_uploads.domain.exceptions import AnalysisError, UploadTransportError
from src.wardrobe_uploads.domain.models.notification import TaskNotification
from src.wardrobe_uploads.domain.models.source_file import SourceFile
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem
from src.wardrobe_uploads.domain.repositories import (
    AnalysisService,
    ItemEditorSurface,
    NotificationSurface,
    ProgressCallback,
    UploadTransport,
)
from src.setup.upload_config import UploadSettings

CDN = "https://cdn.test/"


def make_item(item_id: str = "1", image_url: str = CDN + "shirt.jpg") -> WardrobeItem:
    return WardrobeItem(
        id=item_id,
        name=PurePosixPath(image_url).stem,
        type="top",
        image_url=image_url,
        colors=["blue"],
        seasons=["summer"],
        occasions=["casual"],
    )


class ScriptedTransport(UploadTransport):
    """In-memory transport; failures and pauses are scripted per file name."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.failures: dict[str, list[Exception]] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.progress_steps: tuple[int, ...] = (25, 50, 75)

    def fail(self, file_name: str, exc: Exception | None = None, times: int = 1) -> None:
        error = exc or UploadTransportError(f"Upload of {file_name} rejected")
        self.failures.setdefault(file_name, []).extend([error] * times)

    def hold(self, file_name: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[file_name] = gate
        return gate

    async def upload(
        self,
        source: SourceFile,
        on_progress: ProgressCallback,
        token: CancellationToken,
    ) -> str:
        self.calls.append(source.file_name)
        for step in self.progress_steps:
            on_progress(step)
            await asyncio.sleep(0)
        gate = self.gates.get(source.file_name)
        if gate is not None:
            await gate.wait()
        pending = self.failures.get(source.file_name)
        if pending:
            raise pending.pop(0)
        return CDN + source.file_name


class ScriptedAnalysis(AnalysisService):
    """Creates a catalog item per asset; failures and pauses keyed by asset URL."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.failures: dict[str, list[Exception]] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self._next_id = 100

    def fail(self, file_name: str, exc: Exception | None = None, times: int = 1) -> None:
        error = exc or AnalysisError(f"Could not analyze {file_name}")
        self.failures.setdefault(CDN + file_name, []).extend([error] * times)

    def hold(self, file_name: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[CDN + file_name] = gate
        return gate

    async def analyze(self, asset_url: str, token: CancellationToken) -> WardrobeItem:
        self.calls.append(asset_url)
        await asyncio.sleep(0)
        gate = self.gates.get(asset_url)
        if gate is not None:
            await gate.wait()
        pending = self.failures.get(asset_url)
        if pending:
            raise pending.pop(0)
        self._next_id += 1
        return make_item(str(self._next_id), asset_url)


class RecordingNotifier(NotificationSurface):
    def __init__(self) -> None:
        self.notifications: list[TaskNotification] = []
        self.gate: asyncio.Event | None = None

    def hold(self) -> asyncio.Event:
        """Make every toast block until the returned event is set."""
        self.gate = asyncio.Event()
        return self.gate

    async def notify(self, notification: TaskNotification) -> None:
        self.notifications.append(notification)
        if self.gate is not None:
            await self.gate.wait()

    def for_task(self, task_id: str) -> list[TaskNotification]:
        return [n for n in self.notifications if n.task_id == task_id]


class RecordingEditor(ItemEditorSurface):
    def __init__(self) -> None:
        self.opened: list[tuple[str, WardrobeItem]] = []

    async def open_editor(self, item_id: str, item: WardrobeItem) -> None:
        self.opened.append((item_id, item))


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def analysis() -> ScriptedAnalysis:
    return ScriptedAnalysis()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def editor() -> RecordingEditor:
    return RecordingEditor()


@pytest.fixture
def registry() -> TaskRegistry:
    return TaskRegistry()


@pytest.fixture
def source_file() -> Callable[..., SourceFile]:
    def _make(name: str, content_type: str = "image/jpeg", data: bytes = b"\xff\xd8photo") -> SourceFile:
        return SourceFile(file_name=name, content_type=content_type, data=data)

    return _make


@pytest.fixture
def make_service(
    registry: TaskRegistry,
    transport: ScriptedTransport,
    analysis: ScriptedAnalysis,
    notifier: RecordingNotifier,
    editor: RecordingEditor,
) -> Callable[..., UploadService]:
    """Build an UploadService wired to the in-memory stubs."""

    def _make(
        max_concurrent_tasks: int | None = None, max_retries: int | None = None
    ) -> UploadService:
        settings = UploadSettings(
            MAX_CONCURRENT_TASKS=max_concurrent_tasks, MAX_RETRIES=max_retries
        )
        return UploadService(
            registry=registry,
            transport=transport,
            analysis=analysis,
            notifier=notifier,
            editor=editor,
            settings=settings,
        )

    return _make
