"""Wine CRUD endpoints (create, list, get, update, delete)."""

import logging
import re
from typing import Annotated, Literal

from fastapi import Query

from pourtrait.models import ConsumptionRecord, DrinkingWindow, Wine, WineType
from pourtrait.models._common import utc_now
from pourtrait.schemas.wine import WineCreate, WineResponse, WineUpdate
from pourtrait.services.analytics import posthog_service
from pourtrait.services.auth import RequireAuth
from pourtrait.services.drinking_window import (
    calculate_drinking_window,
    determine_status,
    refresh_status,
)

from ._common import get_owned_wine

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "name": "name",
    "producer": "producer",
    "vintage": "vintage",
    "rating": "personal_rating",
    "purchaseDate": "purchase_date",
    "drinkingWindow": "drinking_window.peak_start_date",
}
SortKey = Literal["name", "producer", "vintage", "rating", "purchaseDate", "drinkingWindow"]


async def create_wine(
    current_user: RequireAuth,
    wine_data: WineCreate,
) -> WineResponse:
    """Add a wine; without a supplied window one is calculated."""
    data = wine_data.model_dump(exclude={"drinking_window"})
    if wine_data.drinking_window is not None:
        supplied = wine_data.drinking_window
        window = DrinkingWindow(
            **supplied.model_dump(),
            current_status=determine_status(
                supplied.earliest_date,
                supplied.peak_start_date,
                supplied.peak_end_date,
                supplied.latest_date,
            ),
        )
    else:
        window = calculate_drinking_window(
            wine_data.vintage, wine_data.type, wine_data.region, wine_data.external_data
        )

    wine = Wine(owner_id=current_user.id, drinking_window=window, **data)
    await wine.insert()

    posthog_service.capture(
        distinct_id=str(current_user.id),
        event="wine_added",
        properties={"type": wine.type.value, "vintage": wine.vintage},
    )
    logger.info("Added wine %s (user=%s)", wine.id, current_user.id)
    return WineResponse.model_validate(wine)


async def list_wines(
    current_user: RequireAuth,
    type: Annotated[list[WineType] | None, Query(description="One or more wine types")] = None,
    region: Annotated[str | None, Query(description="Region substring")] = None,
    vintage_min: int | None = None,
    vintage_max: int | None = None,
    price_min: float | None = None,
    price_max: float | None = None,
    rating_min: Annotated[int | None, Query(ge=1, le=10)] = None,
    search: Annotated[str | None, Query(description="Search name, producer and region")] = None,
    in_stock: bool | None = None,
    sort_by: SortKey = "name",
    sort_order: Literal["asc", "desc"] = "asc",
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> list[WineResponse]:
    """List the user's wines with filtering and sorting."""
    conditions: dict = {}

    if type:
        conditions["type"] = {"$in": [t.value for t in type]}

    if region:
        conditions["region"] = {"$regex": re.compile(re.escape(region), re.IGNORECASE)}

    if vintage_min is not None or vintage_max is not None:
        conditions["vintage"] = {}
        if vintage_min is not None:
            conditions["vintage"]["$gte"] = vintage_min
        if vintage_max is not None:
            conditions["vintage"]["$lte"] = vintage_max

    if price_min is not None or price_max is not None:
        conditions["purchase_price"] = {}
        if price_min is not None:
            conditions["purchase_price"]["$gte"] = price_min
        if price_max is not None:
            conditions["purchase_price"]["$lte"] = price_max

    if rating_min is not None:
        conditions["personal_rating"] = {"$gte": rating_min}

    if search:
        pattern = re.compile(re.escape(search), re.IGNORECASE)
        conditions["$or"] = [
            {"name": {"$regex": pattern}},
            {"producer": {"$regex": pattern}},
            {"region": {"$regex": pattern}},
        ]

    if in_stock is True:
        conditions["quantity"] = {"$gt": 0}
    elif in_stock is False:
        conditions["quantity"] = {"$lte": 0}

    direction = "-" if sort_order == "desc" else "+"
    wines = (
        await Wine.find(Wine.owner_id == current_user.id, conditions)
        .sort(f"{direction}{SORT_FIELDS[sort_by]}")
        .skip(skip)
        .limit(limit)
        .to_list()
    )
    return [WineResponse.model_validate(wine) for wine in wines]


async def get_wine(
    wine_id: str,
    current_user: RequireAuth,
) -> WineResponse:
    wine = await get_owned_wine(wine_id, current_user)
    return WineResponse.model_validate(wine)


async def update_wine(
    wine_id: str,
    current_user: RequireAuth,
    wine_update: WineUpdate,
) -> WineResponse:
    """Update only the provided fields.

    The window status is recomputed; supplied window dates replace the
    stored ones. Use the refresh endpoint to recalculate the dates.
    """
    wine = await get_owned_wine(wine_id, current_user)

    update_data = wine_update.model_dump(exclude_unset=True, exclude={"drinking_window"})
    for field, value in update_data.items():
        setattr(wine, field, value)

    if wine_update.drinking_window is not None:
        wine.drinking_window = refresh_status(
            DrinkingWindow(
                **wine_update.drinking_window.model_dump(),
                current_status=wine.drinking_window.current_status,
            )
        )
    else:
        wine.drinking_window = refresh_status(wine.drinking_window)

    wine.updated_at = utc_now()
    await wine.save()
    return WineResponse.model_validate(wine)


async def delete_wine(
    wine_id: str,
    current_user: RequireAuth,
) -> None:
    """Delete a wine and its consumption history."""
    wine = await get_owned_wine(wine_id, current_user)

    await ConsumptionRecord.find(
        ConsumptionRecord.wine_id == wine.id,
        ConsumptionRecord.owner_id == current_user.id,
    ).delete()
    await wine.delete()
    logger.info("Deleted wine %s (user=%s)", wine_id, current_user.id)
