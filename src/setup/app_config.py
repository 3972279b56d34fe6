import inject

from src.wardrobe_uploads.application.registry import TaskRegistry
from src.wardrobe_uploads.application.services import UploadService
from src.wardrobe_uploads.domain.repositories import (
    AnalysisService,
    ItemEditorSurface,
    NotificationSurface,
    UploadTransport,
)
from src.wardrobe_uploads.infrastructure.http.analysis import HttpAnalysisService
from src.wardrobe_uploads.infrastructure.http.client import ApiClient
from src.wardrobe_uploads.infrastructure.http.transport import HttpUploadTransport
from src.setup.upload_config import UploadSettings, get_upload_settings


def build_api_client(settings: UploadSettings) -> ApiClient:
    return ApiClient(settings.API_BASE_URL, timeout=settings.REQUEST_TIMEOUT_SEC)


def configure_di(
    notifier: NotificationSurface,
    editor: ItemEditorSurface,
    settings: UploadSettings | None = None,
) -> None:
    """Bind the HTTP clients, UI surfaces and the upload service into the DI container."""
    if inject.is_configured():
        return
    if settings is None:
        settings = get_upload_settings()
    client = build_api_client(settings)

    def _config(binder: inject.Binder) -> None:
        binder.bind(UploadSettings, settings)
        binder.bind(ApiClient, client)
        binder.bind(
            UploadTransport,
            HttpUploadTransport(
                client,
                path=settings.UPLOAD_PATH,
                chunk_size=settings.UPLOAD_CHUNK_SIZE,
                max_file_size=settings.MAX_FILE_SIZE_BYTES,
                allowed_content_types=settings.ALLOWED_CONTENT_TYPES,
            ),
        )
        binder.bind(AnalysisService, HttpAnalysisService(client, path=settings.ANALYZE_PATH))
        binder.bind(NotificationSurface, notifier)
        binder.bind(ItemEditorSurface, editor)
        binder.bind_to_constructor(TaskRegistry, TaskRegistry)
        binder.bind_to_constructor(
            UploadService, lambda: UploadService(settings=settings)
        )

    inject.configure(_config)
