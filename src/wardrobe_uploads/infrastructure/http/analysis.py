from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from src.wardrobe_uploads.domain.cancellation import CancellationToken
from src.wardrobe_uploads.domain.exceptions import AnalysisError
from src.wardrobe_uploads.domain.models.wardrobe_item import WardrobeItem
from src.wardrobe_uploads.domain.repositories import AnalysisService
from src.wardrobe_uploads.infrastructure.http.client import ApiClient, unwrap_envelope

logger = logging.getLogger(__name__)


class HttpAnalysisService(AnalysisService):
    """Asks the catalog API to analyze an uploaded photo and create the item."""

    def __init__(self, client: ApiClient, *, path: str = "/items/analysis") -> None:
        self._client = client
        self._path = path

    async def analyze(self, asset_url: str, token: CancellationToken) -> WardrobeItem:
        token.raise_if_cancelled()
        try:
            response = await self._client.http.post(self._path, json={"imageUrl": asset_url})
        except httpx.TimeoutException as exc:
            raise AnalysisError("Analysis timed out") from exc
        except httpx.HTTPError as exc:
            raise AnalysisError(f"Analysis failed: {exc}") from exc

        data = unwrap_envelope(response, AnalysisError)
        try:
            item = WardrobeItem.model_validate(data)
        except ValidationError as exc:
            raise AnalysisError("Analysis returned an invalid item") from exc
        logger.info("Analysis finished", extra={"item_id": item.id, "type": item.type})
        return item
