"""Pydantic schemas for cellar wines and consumption history."""

from datetime import datetime
from typing import Any

from beanie import PydanticObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pourtrait.models._common import as_utc, utc_now
from pourtrait.models.wine import DrinkingWindowStatus, WineType

MIN_VINTAGE = 1800
VARIETAL_MAX_LENGTH = 50


def _check_vintage(value: int | None) -> int | None:
    if value is None:
        return value
    max_vintage = utc_now().year + 5
    if not MIN_VINTAGE <= value <= max_vintage:
        raise ValueError(f"vintage must be between {MIN_VINTAGE} and {max_vintage}")
    return value


def _check_varietals(value: list[str] | None) -> list[str] | None:
    if value is None:
        return value
    cleaned = [v.strip() for v in value]
    if not cleaned:
        raise ValueError("at least one varietal is required")
    for varietal in cleaned:
        if not 1 <= len(varietal) <= VARIETAL_MAX_LENGTH:
            raise ValueError(f"each varietal must be 1-{VARIETAL_MAX_LENGTH} characters")
    return cleaned


class DrinkingWindowInput(BaseModel):
    """Drinking window supplied by the client; the status is always recomputed."""

    earliest_date: datetime
    peak_start_date: datetime
    peak_end_date: datetime
    latest_date: datetime

    @model_validator(mode="after")
    def dates_in_order(self) -> "DrinkingWindowInput":
        if not (
            as_utc(self.earliest_date)
            <= as_utc(self.peak_start_date)
            <= as_utc(self.peak_end_date)
            <= as_utc(self.latest_date)
        ):
            raise ValueError("drinking window dates must be chronologically ordered")
        return self


class DrinkingWindowResponse(BaseModel):
    earliest_date: datetime
    peak_start_date: datetime
    peak_end_date: datetime
    latest_date: datetime
    current_status: DrinkingWindowStatus

    model_config = ConfigDict(from_attributes=True)


class WineBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    producer: str = Field(..., min_length=1, max_length=200)
    vintage: int
    region: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    varietal: list[str] = Field(..., min_length=1)
    type: WineType
    quantity: int = Field(1, ge=0)
    purchase_price: float | None = Field(None, ge=0)
    purchase_date: datetime | None = None
    personal_rating: int | None = Field(None, ge=1, le=10)
    personal_notes: str | None = Field(None, max_length=1000)
    image_url: str | None = Field(None, max_length=2048)
    external_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("vintage")
    @classmethod
    def validate_vintage(cls, v: int | None) -> int | None:
        return _check_vintage(v)

    @field_validator("varietal")
    @classmethod
    def validate_varietal(cls, v: list[str] | None) -> list[str] | None:
        return _check_varietals(v)


class WineCreate(WineBase):
    drinking_window: DrinkingWindowInput | None = None


class WineUpdate(BaseModel):
    """Partial update; only fields present in the body change."""

    name: str | None = Field(None, min_length=1, max_length=200)
    producer: str | None = Field(None, min_length=1, max_length=200)
    vintage: int | None = None
    region: str | None = Field(None, min_length=1, max_length=100)
    country: str | None = Field(None, min_length=1, max_length=100)
    varietal: list[str] | None = None
    type: WineType | None = None
    quantity: int | None = Field(None, ge=0)
    purchase_price: float | None = Field(None, ge=0)
    purchase_date: datetime | None = None
    personal_rating: int | None = Field(None, ge=1, le=10)
    personal_notes: str | None = Field(None, max_length=1000)
    image_url: str | None = Field(None, max_length=2048)
    external_data: dict[str, Any] | None = None
    drinking_window: DrinkingWindowInput | None = None

    @field_validator("vintage")
    @classmethod
    def validate_vintage(cls, v: int | None) -> int | None:
        return _check_vintage(v)

    @field_validator("varietal")
    @classmethod
    def validate_varietal(cls, v: list[str] | None) -> list[str] | None:
        return _check_varietals(v)


class WineResponse(BaseModel):
    id: str
    name: str
    producer: str
    vintage: int
    region: str
    country: str
    varietal: list[str]
    type: WineType
    quantity: int
    purchase_price: float | None = None
    purchase_date: datetime | None = None
    personal_rating: int | None = None
    personal_notes: str | None = None
    image_url: str | None = None
    external_data: dict[str, Any] = {}
    drinking_window: DrinkingWindowResponse
    in_stock: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("id", mode="before")
    @classmethod
    def convert_objectid_to_str(cls, v: Any) -> str:
        if isinstance(v, PydanticObjectId):
            return str(v)
        return v


class ConsumeRequest(BaseModel):
    consumed_at: datetime | None = None
    rating: int | None = Field(None, ge=1, le=10)
    notes: str | None = Field(None, max_length=500)
    occasion: str | None = Field(None, max_length=100)
    companions: list[str] = Field(default_factory=list)
    food_pairing: str | None = Field(None, max_length=200)


class ConsumedWineSummary(BaseModel):
    name: str
    producer: str
    vintage: int


class ConsumptionResponse(BaseModel):
    id: str
    wine_id: str
    consumed_at: datetime
    rating: int | None = None
    notes: str | None = None
    occasion: str | None = None
    companions: list[str] = []
    food_pairing: str | None = None
    wine: ConsumedWineSummary | None = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("id", "wine_id", mode="before")
    @classmethod
    def convert_objectid_to_str(cls, v: Any) -> str:
        if isinstance(v, PydanticObjectId):
            return str(v)
        return v


class ConsumeResponse(BaseModel):
    wine: WineResponse
    consumption: ConsumptionResponse


class WineStats(BaseModel):
    total_wines: int
    total_bottles: int
    rated_wines: int
    average_rating: float | None
    red_wines: int
    white_wines: int
    sparkling_wines: int
    by_status: dict[str, int]
