from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ItemType = Literal["top", "bottom", "shoes", "outer", "accessory"]
Season = Literal["spring", "summer", "fall", "winter"]
Occasion = Literal["casual", "formal", "sport", "travel"]


class WardrobeItem(BaseModel):
    """Snapshot of a catalog item as returned by the analysis service.

    Kept on successful tasks so the item editor can open without a fetch.
    Accepts the camelCase keys used on the wire.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Catalog item identifier.")
    name: str = Field(description="Display name of the item.")
    type: ItemType = Field(description="Garment category.")
    image_url: str = Field(alias="imageUrl", description="Location of the item photo.")
    brand: str | None = Field(default=None, description="Brand, when detected.")
    colors: list[str] = Field(default_factory=list)
    seasons: list[Season] = Field(default_factory=list)
    occasions: list[Occasion] = Field(default_factory=list)
    status: Literal["active", "archived"] = "active"
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        # the catalog API hands out numeric ids
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value
