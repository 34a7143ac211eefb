"""MongoDB document models for Pourtrait."""

from pourtrait.models.consumption import ConsumptionRecord
from pourtrait.models.drinking_partner import DrinkingPartner
from pourtrait.models.login_attempt import LoginAttempt
from pourtrait.models.mapping_run import MappingDailyStats, MappingRun
from pourtrait.models.notification import (
    DeliveryLog,
    Notification,
    NotificationPayload,
    NotificationType,
    ScheduledNotification,
    ScheduleStatus,
)
from pourtrait.models.palate import (
    AromaPreference,
    ContextPreference,
    FoodProfileRecord,
    PalateProfile,
)
from pourtrait.models.recommendation import (
    Recommendation,
    RecommendationFeedback,
    RecommendationType,
)
from pourtrait.models.taste_profile import (
    FlavorProfile,
    GeneralPreferences,
    PriceRange,
    TasteProfile,
    TastingRecord,
)
from pourtrait.models.token_blacklist import RevokedToken
from pourtrait.models.user import User
from pourtrait.models.wine import DrinkingWindow, DrinkingWindowStatus, Wine, WineType

__all__ = [
    # Main documents
    "User",
    "Wine",
    "ConsumptionRecord",
    "TasteProfile",
    "Recommendation",
    "Notification",
    "ScheduledNotification",
    "DeliveryLog",
    "DrinkingPartner",
    # Onboarding palate data
    "PalateProfile",
    "AromaPreference",
    "ContextPreference",
    "FoodProfileRecord",
    # Telemetry
    "MappingRun",
    "MappingDailyStats",
    # Security
    "RevokedToken",
    "LoginAttempt",
    # Embedded subdocuments and enums
    "DrinkingWindow",
    "DrinkingWindowStatus",
    "WineType",
    "FlavorProfile",
    "GeneralPreferences",
    "PriceRange",
    "TastingRecord",
    "NotificationPayload",
    "NotificationType",
    "ScheduleStatus",
    "RecommendationFeedback",
    "RecommendationType",
]
