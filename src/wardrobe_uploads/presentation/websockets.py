from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from src.wardrobe_uploads.application.registry import RegistryChange, TaskRegistry
from src.wardrobe_uploads.domain.models.notification import TaskNotification
from src.wardrobe_uploads.domain.models.task_view import TaskView
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem
from src.wardrobe_uploads.domain.repositories import ItemEditorSurface, NotificationSurface

router = APIRouter(tags=["ws"])
logger = logging.getLogger(__name__)


class UploadConnectionManager:
    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def broadcast(self, payload: dict[str, object]) -> None:
        for websocket in list(self._connections):
            try:
                await websocket.send_json(payload)
            except RuntimeError:
                self.disconnect(websocket)


class WebSocketNotificationSurface(NotificationSurface):
    def __init__(self, manager: UploadConnectionManager) -> None:
        self._manager = manager

    async def notify(self, notification: TaskNotification) -> None:
        await self._manager.broadcast(
            {"type": "notification", **notification.model_dump(mode="json")}
        )


class WebSocketItemEditorSurface(ItemEditorSurface):
    def __init__(self, manager: UploadConnectionManager) -> None:
        self._manager = manager

    async def open_editor(self, item_id: str, item: WardrobeItem) -> None:
        await self._manager.broadcast(
            {
                "type": "open_editor",
                "item_id": item_id,
                "item": item.model_dump(mode="json"),
            }
        )


class WebSocketRegistryBroadcaster:
    """Registry listener that pushes every task change to the upload sockets.

    Changes are sent in the order the registry emitted them. Changes raised
    outside the event loop thread are not pushed.
    """

    def __init__(self, manager: UploadConnectionManager, registry: TaskRegistry) -> None:
        self._manager = manager
        self._registry = registry
        self._pending: set[asyncio.Task] = set()
        self._last: asyncio.Task | None = None

    def __call__(self, change: RegistryChange) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                "Registry change outside event loop not pushed",
                extra={"task_id": change.task_id, "kind": change.kind.value},
            )
            return
        send = loop.create_task(self._send(self._last, self.payload_for(change)))
        self._last = send
        self._pending.add(send)
        send.add_done_callback(self._pending.discard)

    def payload_for(self, change: RegistryChange) -> dict[str, object]:
        active_id = self._registry.active_task_id
        task = change.task
        view = (
            TaskView.from_task(task, active=task.id == active_id).model_dump(mode="json")
            if task is not None
            else None
        )
        return {
            "type": change.kind.value,
            "task_id": change.task_id,
            "active_task_id": active_id,
            "task": view,
        }

    async def drain(self) -> None:
        """Wait until every queued change has been sent."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _send(self, previous: asyncio.Task | None, payload: dict[str, object]) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        await self._manager.broadcast(payload)


connection_manager = UploadConnectionManager()


@router.websocket("/ws/uploads")
async def upload_updates(websocket: WebSocket) -> None:
    await connection_manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        connection_manager.disconnect(websocket)
        logger.debug("Upload socket disconnected")
