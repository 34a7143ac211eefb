"""Recommendation audit log with optional user feedback."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field, model_validator

from pourtrait.models._common import utc_now


class RecommendationType(str, Enum):
    INVENTORY = "inventory"
    PURCHASE = "purchase"
    PAIRING = "pairing"


class RecommendationFeedback(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MODIFIED = "modified"


class Recommendation(Document):
    """One suggested wine and the context it was suggested for.

    Inventory recommendations point at a cellar wine through ``wine_id``;
    purchase and pairing suggestions may carry ``suggested_wine`` instead.
    """

    owner_id: Indexed(PydanticObjectId)
    type: RecommendationType
    wine_id: Optional[PydanticObjectId] = None
    suggested_wine: Optional[dict[str, Any]] = None
    context: dict[str, Any] = Field(default_factory=dict)
    reasoning: str = Field(min_length=1, max_length=1000)
    confidence: float = Field(ge=0, le=1)

    user_feedback: Optional[RecommendationFeedback] = None
    feedback_reason: Optional[str] = None
    modified_context: Optional[dict[str, Any]] = None
    feedback_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def check_target(self) -> "Recommendation":
        if self.type == RecommendationType.INVENTORY and self.wine_id is None:
            raise ValueError("inventory recommendations require wine_id")
        if self.wine_id is None and not self.suggested_wine:
            raise ValueError("recommendations require wine_id or suggested_wine")
        return self

    class Settings:
        name = "recommendations"
        indexes = [
            [("owner_id", 1), ("created_at", -1)],
        ]
