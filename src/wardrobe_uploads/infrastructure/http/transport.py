from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable

import httpx

from src.wardrobe_uploads.domain.cancellation import CancellationToken
from src.wardrobe_uploads.domain.exceptions import UploadTransportError
from src.wardrobe_uploads.domain.models.source_file import SourceFile
from src.wardrobe_uploads.domain.repositories import ProgressCallback, UploadTransport
from src.wardrobe_uploads.infrastructure.http.client import ApiClient, unwrap_envelope

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


class HttpUploadTransport(UploadTransport):
    """Uploads photos to object storage as ``multipart/form-data``.

    The encoded body is streamed in chunks so progress can be reported as
    bytes leave the client.
    """

    def __init__(
        self,
        client: ApiClient,
        *,
        path: str = "/minio/upload",
        chunk_size: int = 64 * 1024,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        allowed_content_types: Iterable[str] = DEFAULT_CONTENT_TYPES,
    ) -> None:
        self._client = client
        self._path = path
        self._chunk_size = chunk_size
        self._max_file_size = max_file_size
        self._allowed_content_types = frozenset(allowed_content_types)

    def validate(self, source: SourceFile) -> None:
        if source.content_type not in self._allowed_content_types:
            raise UploadTransportError("Only JPG, JPEG, PNG, GIF, and WEBP files are allowed")
        if source.size > self._max_file_size:
            limit_mb = self._max_file_size / (1024 * 1024)
            raise UploadTransportError(f"File size must be less than {limit_mb:g}MB")

    async def upload(
        self,
        source: SourceFile,
        on_progress: ProgressCallback,
        token: CancellationToken,
    ) -> str:
        self.validate(source)
        token.raise_if_cancelled()

        encoded = httpx.Request(
            "POST",
            self._client.url_for(self._path),
            files={"file": (source.file_name, source.data, source.content_type)},
        )
        body = encoded.read()
        headers = {
            "Content-Type": encoded.headers["Content-Type"],
            "Content-Length": str(len(body)),
        }

        try:
            response = await self._client.http.post(
                self._path,
                content=self._stream(body, on_progress, token),
                headers=headers,
            )
        except httpx.TimeoutException as exc:
            raise UploadTransportError("Upload timed out") from exc
        except httpx.HTTPError as exc:
            raise UploadTransportError(f"Upload failed: {exc}") from exc

        data = unwrap_envelope(response, UploadTransportError)
        download_url = data.get("downloadUrl")
        if not download_url:
            raise UploadTransportError("Upload response has no download URL")
        logger.info(
            "Upload finished",
            extra={"file_name": source.file_name, "size": source.size},
        )
        return str(download_url)

    async def _stream(
        self, body: bytes, on_progress: ProgressCallback, token: CancellationToken
    ) -> AsyncIterator[bytes]:
        total = len(body)
        sent = 0
        on_progress(0)
        while sent < total:
            token.raise_if_cancelled()
            chunk = body[sent : sent + self._chunk_size]
            yield chunk
            sent += len(chunk)
            on_progress(sent * 100 // total)
