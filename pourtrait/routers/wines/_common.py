"""Shared lookups for wine endpoints."""

import logging

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, status
from pydantic import ValidationError

from pourtrait.models import User, Wine

logger = logging.getLogger(__name__)


def wine_not_found(wine_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Wine with ID {wine_id} not found",
    )


async def get_owned_wine(wine_id: str, current_user: User) -> Wine:
    """Load a wine owned by the current user.

    Raises:
        HTTPException: 404 if the id is malformed or the wine is not theirs.
    """
    try:
        wine = await Wine.find_one(
            Wine.id == PydanticObjectId(wine_id),
            Wine.owner_id == current_user.id,
        )
    except (InvalidId, ValidationError) as e:
        logger.debug("Invalid wine ID format: %s - %s", wine_id, e)
        wine = None

    if not wine:
        raise wine_not_found(wine_id)
    return wine
