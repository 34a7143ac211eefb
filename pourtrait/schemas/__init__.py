"""Pydantic schemas for the Pourtrait API."""

from pourtrait.schemas.notification import NotificationPreferences, NotificationResponse
from pourtrait.schemas.partner import PartnerCreate, PartnerResponse, PartnerUpdate
from pourtrait.schemas.profile import UserProfile
from pourtrait.schemas.recommendation import (
    ExtractedWine,
    FoodPairingRequest,
    FoodPairingResponse,
    RestaurantAnalysis,
)
from pourtrait.schemas.wine import WineCreate, WineResponse, WineUpdate

__all__ = [
    "WineCreate",
    "WineUpdate",
    "WineResponse",
    "UserProfile",
    "ExtractedWine",
    "RestaurantAnalysis",
    "FoodPairingRequest",
    "FoodPairingResponse",
    "NotificationPreferences",
    "NotificationResponse",
    "PartnerCreate",
    "PartnerUpdate",
    "PartnerResponse",
]
