import logging

import inject
from fastapi import FastAPI

from src.wardrobe_uploads.application.registry import TaskRegistry
from src.wardrobe_uploads.application.services import UploadService
from src.wardrobe_uploads.infrastructure.http.client import ApiClient
from src.wardrobe_uploads.presentation.websockets import (
    WebSocketItemEditorSurface,
    WebSocketNotificationSurface,
    WebSocketRegistryBroadcaster,
    connection_manager,
    router as ws_router,
)
from src.setup.api_config import ApiSettings
from src.setup.app_config import configure_di

settings = ApiSettings()
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

configure_di(
    notifier=WebSocketNotificationSurface(connection_manager),
    editor=WebSocketItemEditorSurface(connection_manager),
)

registry = inject.instance(TaskRegistry)
registry_broadcaster = WebSocketRegistryBroadcaster(connection_manager, registry)
_unsubscribe_broadcaster = registry.subscribe(registry_broadcaster)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Wardrobe photo upload and analysis tasks",
)

async def _stop_uploads() -> None:
    await inject.instance(UploadService).shutdown()
    _unsubscribe_broadcaster()
    await registry_broadcaster.drain()
    await inject.instance(ApiClient).close()

app.add_event_handler("shutdown", _stop_uploads)

from src.wardrobe_uploads.presentation.routes import router as api_router  # noqa: E402

app.include_router(api_router, prefix="")
app.include_router(ws_router, prefix="")
