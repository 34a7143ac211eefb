"""People the user regularly shares wine with."""

from datetime import datetime
from typing import Any, Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field

from pourtrait.models._common import utc_now


class DrinkingPartner(Document):
    """A drinking partner with an optional partial taste profile."""

    owner_id: Indexed(PydanticObjectId)
    name: str
    taste_profile: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "drinking_partners"
