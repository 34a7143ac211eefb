"""Consumption history for wines marked as drunk."""

from datetime import datetime
from typing import Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field

from pourtrait.models._common import utc_now


class ConsumptionRecord(Document):
    """One bottle opened from the cellar."""

    owner_id: Indexed(PydanticObjectId)
    wine_id: Indexed(PydanticObjectId)
    consumed_at: datetime = Field(default_factory=utc_now)
    rating: Optional[int] = None
    notes: Optional[str] = None
    occasion: Optional[str] = None
    companions: list[str] = Field(default_factory=list)
    food_pairing: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "consumption_history"
        indexes = [
            [("owner_id", 1), ("consumed_at", -1)],
        ]

    def __repr__(self) -> str:
        return f"<ConsumptionRecord(id={self.id}, wine_id={self.wine_id})>"
