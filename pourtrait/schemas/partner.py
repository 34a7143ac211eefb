"""Drinking partner schemas."""

from datetime import datetime
from typing import Any

from beanie import PydanticObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator


class PartnerBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    taste_profile: dict[str, Any] | None = None
    notes: str | None = Field(None, max_length=500)


class PartnerCreate(PartnerBase):
    pass


class PartnerUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    taste_profile: dict[str, Any] | None = None
    notes: str | None = Field(None, max_length=500)


class PartnerResponse(PartnerBase):
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("id", mode="before")
    @classmethod
    def convert_objectid_to_str(cls, v: Any) -> str:
        if isinstance(v, PydanticObjectId):
            return str(v)
        return v
