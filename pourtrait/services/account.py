"""Account-level data operations."""

import logging

from beanie import PydanticObjectId
from beanie.operators import In

from pourtrait.models import (
    AromaPreference,
    ConsumptionRecord,
    ContextPreference,
    DeliveryLog,
    DrinkingPartner,
    FoodProfileRecord,
    MappingRun,
    Notification,
    PalateProfile,
    Recommendation,
    ScheduledNotification,
    TasteProfile,
    Wine,
)

logger = logging.getLogger(__name__)

# Deleted in this order; consumption rows point at wines
OWNED_DOCUMENTS = [
    ConsumptionRecord,
    Wine,
    Recommendation,
    Notification,
    TasteProfile,
    PalateProfile,
    AromaPreference,
    ContextPreference,
    FoodProfileRecord,
    DrinkingPartner,
]


async def purge_user_data(user_id: PydanticObjectId) -> dict[str, int]:
    """Delete everything the user owns and return the count per collection.

    Mapping runs are kept for the metrics digests with the user id cleared.
    """
    removed: dict[str, int] = {}

    scheduled_ids = [
        s.id for s in await ScheduledNotification.find(ScheduledNotification.owner_id == user_id).to_list()
    ]
    if scheduled_ids:
        result = await DeliveryLog.find(In(DeliveryLog.scheduled_notification_id, scheduled_ids)).delete()
        removed[DeliveryLog.Settings.name] = result.deleted_count if result else 0
        result = await ScheduledNotification.find(In(ScheduledNotification.id, scheduled_ids)).delete()
        removed[ScheduledNotification.Settings.name] = result.deleted_count if result else 0

    for model in OWNED_DOCUMENTS:
        result = await model.find(model.owner_id == user_id).delete()
        count = result.deleted_count if result else 0
        if count:
            removed[model.Settings.name] = count

    await MappingRun.find(MappingRun.user_id == user_id).update({"$set": {"user_id": None}})

    logger.info("Purged data for user %s: %s", user_id, removed)
    return removed
