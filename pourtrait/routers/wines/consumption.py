"""Consumption endpoints: mark a bottle drunk and read the history."""

import logging
from typing import Annotated

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import Query

from pourtrait.models import ConsumptionRecord, Wine
from pourtrait.models._common import utc_now
from pourtrait.schemas.wine import (
    ConsumedWineSummary,
    ConsumeRequest,
    ConsumeResponse,
    ConsumptionResponse,
    WineResponse,
)
from pourtrait.services.analytics import posthog_service
from pourtrait.services.auth import RequireAuth

from ._common import get_owned_wine, wine_not_found

logger = logging.getLogger(__name__)


async def consume_wine(
    wine_id: str,
    current_user: RequireAuth,
    consumption: ConsumeRequest,
) -> ConsumeResponse:
    """Record one bottle as consumed and take it out of stock.

    Quantity never drops below zero.
    """
    wine = await get_owned_wine(wine_id, current_user)

    record = ConsumptionRecord(
        owner_id=current_user.id,
        wine_id=wine.id,
        consumed_at=consumption.consumed_at or utc_now(),
        rating=consumption.rating,
        notes=consumption.notes,
        occasion=consumption.occasion,
        companions=consumption.companions,
        food_pairing=consumption.food_pairing,
    )
    await record.insert()

    wine.quantity = max(0, wine.quantity - 1)
    wine.updated_at = utc_now()
    await wine.save()

    posthog_service.capture(
        distinct_id=str(current_user.id),
        event="wine_consumed",
        properties={"rating": consumption.rating, "remaining": wine.quantity},
    )
    logger.info("Consumed wine %s, %d left (user=%s)", wine.id, wine.quantity, current_user.id)

    return ConsumeResponse(
        wine=WineResponse.model_validate(wine),
        consumption=ConsumptionResponse.model_validate(record),
    )


async def list_consumption(
    current_user: RequireAuth,
    wine_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[ConsumptionResponse]:
    """Consumption history, newest first, with wine details joined in."""
    query = ConsumptionRecord.find(ConsumptionRecord.owner_id == current_user.id)
    if wine_id:
        try:
            query = query.find(ConsumptionRecord.wine_id == PydanticObjectId(wine_id))
        except InvalidId:
            raise wine_not_found(wine_id)

    records = await query.sort(-ConsumptionRecord.consumed_at).limit(limit).to_list()

    wine_ids = list({record.wine_id for record in records})
    wines = {
        wine.id: wine
        for wine in await Wine.find(
            {"_id": {"$in": wine_ids}, "owner_id": current_user.id}
        ).to_list()
    }

    results = []
    for record in records:
        response = ConsumptionResponse.model_validate(record)
        wine = wines.get(record.wine_id)
        if wine is not None:
            response.wine = ConsumedWineSummary(
                name=wine.name, producer=wine.producer, vintage=wine.vintage
            )
        results.append(response)
    return results
