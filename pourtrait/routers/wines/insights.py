"""Cellar statistics, drinking-window alerts and window recalculation."""

import logging

from pourtrait.models import Wine
from pourtrait.models._common import utc_now
from pourtrait.schemas.notification import DrinkingWindowAlert
from pourtrait.schemas.wine import WineResponse, WineStats
from pourtrait.services.alerts import generate_alerts
from pourtrait.services.auth import RequireAuth
from pourtrait.services.drinking_window import type_key, window_for_wine

from ._common import get_owned_wine

logger = logging.getLogger(__name__)


async def wine_stats(current_user: RequireAuth) -> WineStats:
    """Collection totals over every wine the user owns."""
    wines = await Wine.find(Wine.owner_id == current_user.id).to_list()

    ratings = [wine.personal_rating for wine in wines if wine.personal_rating is not None]
    by_type: dict[str, int] = {}
    by_status: dict[str, int] = {}
    for wine in wines:
        by_type[type_key(wine.type)] = by_type.get(type_key(wine.type), 0) + 1
        status = type_key(wine.drinking_window.current_status)
        by_status[status] = by_status.get(status, 0) + 1

    return WineStats(
        total_wines=len(wines),
        total_bottles=sum(wine.quantity for wine in wines),
        rated_wines=len(ratings),
        average_rating=round(sum(ratings) / len(ratings), 1) if ratings else None,
        red_wines=by_type.get("red", 0),
        white_wines=by_type.get("white", 0),
        sparkling_wines=by_type.get("sparkling", 0),
        by_status=by_status,
    )


async def wine_alerts(current_user: RequireAuth) -> list[DrinkingWindowAlert]:
    """Alerts the processor would currently raise for this cellar."""
    return await generate_alerts(current_user)


async def refresh_drinking_window(
    wine_id: str,
    current_user: RequireAuth,
) -> WineResponse:
    """Recalculate a wine's window from its vintage, type and region."""
    wine = await get_owned_wine(wine_id, current_user)
    wine.drinking_window = window_for_wine(wine)
    wine.updated_at = utc_now()
    await wine.save()
    logger.info("Recalculated drinking window for wine %s", wine.id)
    return WineResponse.model_validate(wine)
