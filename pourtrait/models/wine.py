"""Wine document model for MongoDB with an embedded drinking window."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import BaseModel, Field

from pourtrait.models._common import utc_now


class WineType(str, Enum):
    """Style of wine."""

    RED = "red"
    WHITE = "white"
    ROSE = "rosé"
    SPARKLING = "sparkling"
    DESSERT = "dessert"
    FORTIFIED = "fortified"


class DrinkingWindowStatus(str, Enum):
    """Where a wine sits in its drinking window today."""

    TOO_YOUNG = "too_young"
    READY = "ready"
    PEAK = "peak"
    DECLINING = "declining"
    OVER_HILL = "over_hill"


class DrinkingWindow(BaseModel):
    """Embedded drinking window: four ordered dates plus the current status."""

    earliest_date: datetime
    peak_start_date: datetime
    peak_end_date: datetime
    latest_date: datetime
    current_status: DrinkingWindowStatus


class Wine(Document):
    """A wine in a user's cellar."""

    # Owner reference for data isolation
    owner_id: Indexed(PydanticObjectId)

    name: Indexed(str)
    producer: str
    vintage: Indexed(int)
    region: str
    country: str
    varietal: list[str] = Field(default_factory=list)
    type: WineType

    quantity: int = Field(default=0, ge=0)
    purchase_price: Optional[float] = None
    purchase_date: Optional[datetime] = None

    drinking_window: DrinkingWindow

    personal_rating: Optional[int] = None
    personal_notes: Optional[str] = None
    image_url: Optional[str] = None

    # Open-ended enrichment bag (agingPotential, professional ratings, ...)
    external_data: dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "wines"
        indexes = [
            "producer",
            "type",
            [("owner_id", 1), ("quantity", 1)],
            [("owner_id", 1), ("drinking_window.peak_start_date", 1)],
        ]

    @property
    def in_stock(self) -> bool:
        return self.quantity > 0

    def __repr__(self) -> str:
        return f"<Wine(id={self.id}, name={self.name}, vintage={self.vintage})>"
