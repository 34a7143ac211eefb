"""Recommendation endpoints: restaurant lists, food pairing, context and feedback."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, File, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from pourtrait.models import RecommendationType
from pourtrait.schemas.recommendation import (
    ContextualFilter,
    ExtractedWine,
    FoodPairingRequest,
    FoodPairingResponse,
    PriceRangeInput,
    RecommendationContext,
)
from pourtrait.services.analytics import posthog_service
from pourtrait.services.auth import RequireAuth
from pourtrait.services.food_pairing import (
    generate_contextual_recommendations,
    generate_food_pairings,
)
from pourtrait.services.recommendations import (
    get_analytics,
    get_history,
    log_pairing_recommendations,
    log_restaurant_recommendations,
    record_feedback,
    to_record,
    validate_feedback_body,
)
from pourtrait.services.restaurant import RestaurantAnalysisError, analyze_wine_list
from pourtrait.services.vision import WineListExtractionError, extract_wine_list

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_IMAGE_BYTES = 10 * 1024 * 1024


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _parse_context(raw: Any) -> RecommendationContext:
    if not isinstance(raw, dict):
        return RecommendationContext()
    return RecommendationContext.model_validate(raw)


async def _analyze(current_user, wines: list[ExtractedWine], context: RecommendationContext) -> JSONResponse:
    try:
        analysis = await analyze_wine_list(wines, current_user.id, context)
    except RestaurantAnalysisError:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Unable to analyze wine list. Please try again.",
        )

    await log_restaurant_recommendations(
        current_user.id,
        analysis.recommendations,
        context.model_dump(by_alias=True, exclude_none=True, mode="json"),
    )
    posthog_service.capture(
        distinct_id=str(current_user.id),
        event="restaurant_analysis",
        properties={
            "wines": analysis.total_wines,
            "recommendations": len(analysis.recommendations),
        },
    )
    return JSONResponse(
        content={"success": True, "data": analysis.model_dump(by_alias=True, mode="json")}
    )


@router.post("/restaurant")
async def analyze_restaurant_list(current_user: RequireAuth, body: Any = Body(None)) -> Any:
    """Rank wines read off a restaurant list against the user's cellar and palate."""
    body = body if isinstance(body, dict) else {}
    raw_wines = body.get("wines")

    if not isinstance(raw_wines, list):
        return _error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid wines data. Expected array of extracted wines.",
        )
    if not raw_wines:
        return _error(status.HTTP_400_BAD_REQUEST, "No wines provided for analysis.")
    if any(
        not isinstance(raw, dict) or not raw.get("name") or not isinstance(raw["name"], str)
        for raw in raw_wines
    ):
        return _error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid wine data. Each wine must have a name.",
        )

    try:
        wines = [ExtractedWine.model_validate(raw) for raw in raw_wines]
        context = _parse_context(body.get("context"))
    except ValidationError as e:
        return _error(status.HTTP_400_BAD_REQUEST, str(e.errors()[0]["msg"]))

    return await _analyze(current_user, wines, context)


@router.post("/restaurant/scan")
async def scan_restaurant_list(
    current_user: RequireAuth,
    image: UploadFile = File(...),
) -> Any:
    """Read a wine-list photo, then analyse it like a typed list."""
    content = await image.read()
    if len(content) > MAX_IMAGE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail="Image exceeds maximum allowed size of 10.0 MB",
        )

    try:
        wines = await extract_wine_list(content, image.content_type or "image/jpeg")
    except WineListExtractionError as e:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(e))

    if not wines:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "No wines found in the image.")
    return await _analyze(current_user, wines, RecommendationContext())


@router.post("/food-pairing", response_model=FoodPairingResponse)
async def food_pairing(
    request: FoodPairingRequest,
    current_user: RequireAuth,
) -> FoodPairingResponse:
    """Pair a dish with wines from the cellar."""
    response = await generate_food_pairings(current_user.id, request)
    await log_pairing_recommendations(current_user.id, response.pairings)
    return response


@router.get("/contextual", response_model=FoodPairingResponse)
async def contextual_recommendations(
    current_user: RequireAuth,
    occasion: str | None = None,
    price_min: Annotated[float | None, Query(ge=0)] = None,
    price_max: Annotated[float | None, Query(ge=0)] = None,
    currency: str = "USD",
    wine_type: Annotated[list[str] | None, Query()] = None,
    urgency: Annotated[str | None, Query(pattern="^(low|medium|high)$")] = None,
    companions: Annotated[int | None, Query(ge=0)] = None,
) -> FoodPairingResponse:
    price_range = None
    if price_min is not None and price_max is not None:
        price_range = PriceRangeInput(min=price_min, max=price_max, currency=currency)

    filters = ContextualFilter(
        price_range=price_range,
        wine_type=wine_type,
        urgency=urgency,
        occasion=occasion,
        companions=companions,
    )
    return await generate_contextual_recommendations(current_user.id, filters)


@router.post("/feedback")
async def submit_feedback(current_user: RequireAuth, body: Any = Body(None)) -> Any:
    error = validate_feedback_body(body)
    if error:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": error})

    recommendation = await record_feedback(
        current_user.id,
        body["recommendationId"],
        body["feedback"],
        reason=body.get("reason"),
        modified_context=body.get("modifiedContext"),
    )
    if recommendation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Recommendation with ID {body['recommendationId']} not found",
        )
    return {"success": True, "message": "Feedback recorded successfully"}


@router.get("/history")
async def recommendation_history(
    current_user: RequireAuth,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    type: RecommendationType | None = None,
    analytics: bool = False,
) -> dict:
    """Recent recommendations, or feedback analytics when ``analytics=true``."""
    if analytics:
        return {"success": True, "data": await get_analytics(current_user.id)}

    history = await get_history(current_user.id, limit, type)
    return {
        "success": True,
        "data": [to_record(rec).model_dump(by_alias=True, mode="json") for rec in history],
    }
