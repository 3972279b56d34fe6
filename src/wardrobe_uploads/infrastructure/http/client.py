from __future__ import annotations

import logging
from typing import Any

import httpx

from src.wardrobe_uploads.domain.exceptions import PipelineStageError

logger = logging.getLogger(__name__)


class ApiClient:
    """Shared async HTTP client for the storage and analysis endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    @property
    def http(self) -> httpx.AsyncClient:
        return self._client

    def url_for(self, path: str) -> httpx.URL:
        return self._client.base_url.join(path.lstrip("/"))

    async def close(self) -> None:
        await self._client.aclose()


def unwrap_envelope(
    response: httpx.Response, error_cls: type[PipelineStageError]
) -> dict[str, Any]:
    """Return the ``data`` member of a ``{statusCode, message, data}`` response.

    Raises ``error_cls`` for HTTP errors, undecodable bodies and envelopes
    whose ``statusCode`` is not a success code.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None

    message = None
    if isinstance(payload, dict):
        message = payload.get("message")

    if response.is_error:
        logger.warning(
            "Request failed",
            extra={"url": str(response.request.url), "status_code": response.status_code},
        )
        raise error_cls(message or f"Request failed with HTTP {response.status_code}")
    if not isinstance(payload, dict):
        raise error_cls("Response body is not a JSON object")

    status_code = payload.get("statusCode", response.status_code)
    if status_code not in (200, 201):
        raise error_cls(message or f"Request failed with status {status_code}")

    data = payload.get("data")
    if not isinstance(data, dict):
        raise error_cls("Response has no data")
    return data
