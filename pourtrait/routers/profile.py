"""Onboarding profile endpoints: LLM mapping, preview, storage and taste profile."""

import logging
import time
from typing import Any

from fastapi import APIRouter, Body, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from pourtrait.config import settings
from pourtrait.models import TasteProfile, TastingRecord, User
from pourtrait.models._common import utc_now
from pourtrait.schemas.profile import (
    MapRequest,
    TasteProfileResponse,
    TasteProfileUpdate,
    TastingInput,
    UserProfile,
)
from pourtrait.services.analytics import posthog_service
from pourtrait.services.auth import RequireAuth
from pourtrait.services.metrics import record_mapping_run
from pourtrait.services.profile import (
    ProfileMappingError,
    RateLimitedError,
    evaluate_profile,
    load_profile_summary,
    map_free_text_to_profile,
    sync_taste_profile,
    upsert_user_profile,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PREVIEW_COOKIE = "pp_preview_ts"
PREVIEW_COOKIE_MAX_AGE = 300


def _failure_payload(error: ProfileMappingError) -> dict[str, Any]:
    return {
        "error": "preview_map_failed",
        "code": error.code,
        "message": error.message,
        "outputSample": error.output_sample,
    }


def _mapping_error_response(error: ProfileMappingError) -> JSONResponse:
    status_code = (
        status.HTTP_429_TOO_MANY_REQUESTS
        if isinstance(error, RateLimitedError)
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return JSONResponse(status_code=status_code, content=_failure_payload(error))


async def _record_run(model: str, answers: Any, **fields: Any) -> None:
    """Store a preview run; a failed write never fails the preview."""
    try:
        await record_mapping_run(model, answers, **fields)
    except Exception:
        logger.exception("Failed to record mapping run (model=%s)", model)


@router.post("/map")
async def map_profile(request: MapRequest, current_user: RequireAuth) -> Any:
    """Map free-text answers to a profile; stored when ``persist`` is set."""
    try:
        result = await map_free_text_to_profile(
            str(current_user.id), request.experience, request.free_text_answers
        )
    except ProfileMappingError as e:
        logger.error("Profile mapping failed (user=%s, code=%s): %s", current_user.id, e.code, e)
        return _mapping_error_response(e)

    if request.persist:
        evaluation = evaluate_profile(result.profile, request.free_text_answers, request.experience)
        await upsert_user_profile(current_user, result.profile, evaluation.confidence)

    posthog_service.capture(
        distinct_id=str(current_user.id),
        event="profile_mapped",
        properties={"model": result.used_model, "persisted": request.persist},
    )
    return {
        "success": True,
        "data": {
            "profile": result.profile.model_dump(by_alias=True, mode="json"),
            "summary": result.summary,
        },
    }


@router.post("/map/preview")
async def preview_map(request: Request, body: Any = Body(None)) -> Any:
    """Anonymous mapping preview with evaluation, throttled per browser by cookie."""
    body = body if isinstance(body, dict) else {}
    experience = body.get("experience")
    free_text = body.get("freeTextAnswers") or {}
    if not experience or not isinstance(experience, str):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "experience is required"},
        )
    if not isinstance(free_text, dict):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "freeTextAnswers must be an object"},
        )

    now_ms = int(time.time() * 1000)
    try:
        last_ms = int(request.cookies.get(PREVIEW_COOKIE, "0"))
    except ValueError:
        last_ms = 0
    elapsed = now_ms - last_ms
    if elapsed < settings.preview_throttle_ms:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"error": "Too many requests", "retryAfterMs": settings.preview_throttle_ms - elapsed},
        )

    anon_id = f"preview-{now_ms}"
    logger.info("preview_map_started experience=%s", experience)
    started = time.monotonic()
    try:
        result = await map_free_text_to_profile(anon_id, experience, free_text)
    except ProfileMappingError as e:
        payload = _failure_payload(e)
        logger.error("preview_map_failed %s", payload)
        await _record_run(
            settings.llm_model,
            free_text,
            experience=experience,
            latency_ms=int((time.monotonic() - started) * 1000),
            success=False,
            anon_id=anon_id,
        )
        return _mapping_error_response(e)

    latency_ms = int((time.monotonic() - started) * 1000)
    logger.info("preview_map_completed latency_ms=%d", latency_ms)

    evaluation = evaluate_profile(result.profile, free_text, experience)
    checks = [c.model_dump(by_alias=True, mode="json") for c in evaluation.checks]
    diagnostics = settings.show_eval_diagnostics
    await _record_run(
        result.used_model,
        free_text,
        experience=experience,
        latency_ms=latency_ms,
        confidence=evaluation.confidence,
        checks=checks if diagnostics else None,
        anon_id=anon_id,
    )

    posthog_service.capture(
        distinct_id=anon_id,
        event="profile_previewed",
        properties={"experience": experience, "confidence": evaluation.confidence},
    )

    evaluation_body: dict[str, Any] = {"confidence": evaluation.confidence}
    if diagnostics:
        evaluation_body["checks"] = checks

    response = JSONResponse(
        content={
            "success": True,
            "data": {
                "profile": result.profile.model_dump(by_alias=True, mode="json"),
                "summary": result.summary,
                "evaluation": evaluation_body,
                "commentary": evaluation.commentary,
            },
        }
    )
    response.set_cookie(
        PREVIEW_COOKIE,
        str(now_ms),
        max_age=PREVIEW_COOKIE_MAX_AGE,
        samesite="lax",
        httponly=False,
    )
    return response


@router.post("/upsert")
async def upsert_profile(current_user: RequireAuth, body: Any = Body(None)) -> dict:
    """Validate and store a complete profile."""
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")
    try:
        profile = UserProfile.model_validate({**body, "userId": str(current_user.id)})
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        )

    await upsert_user_profile(current_user, profile)
    return {"success": True}


@router.get("/summary")
async def profile_summary(current_user: RequireAuth) -> dict:
    return await load_profile_summary(current_user)


async def _taste_profile(current_user: User) -> TasteProfile:
    profile = await TasteProfile.find_one(TasteProfile.owner_id == current_user.id)
    if profile is None:
        profile = await sync_taste_profile(current_user.id)
    return profile


@router.get("/taste", response_model=TasteProfileResponse)
async def get_taste_profile(current_user: RequireAuth) -> TasteProfileResponse:
    """The 1-10 taste profile, derived on first read when missing."""
    return TasteProfileResponse.model_validate(await _taste_profile(current_user))


@router.put("/taste", response_model=TasteProfileResponse)
async def update_taste_profile(
    update: TasteProfileUpdate,
    current_user: RequireAuth,
) -> TasteProfileResponse:
    profile = await _taste_profile(current_user)
    for field in update.model_dump(exclude_none=True):
        setattr(profile, field, getattr(update, field))
    profile.last_updated = utc_now()
    await profile.save()
    return TasteProfileResponse.model_validate(profile)


@router.post("/taste/tastings", response_model=TasteProfileResponse, status_code=status.HTTP_201_CREATED)
async def add_tasting(
    tasting: TastingInput,
    current_user: RequireAuth,
) -> TasteProfileResponse:
    """Append a tasting to the learning history."""
    profile = await _taste_profile(current_user)
    profile.learning_history.append(
        TastingRecord(
            wine_id=tasting.wine_id,
            rating=tasting.rating,
            notes=tasting.notes,
            characteristics=tasting.characteristics,
            tasted_at=tasting.tasted_at or utc_now(),
        )
    )
    profile.last_updated = utc_now()
    await profile.save()
    return TasteProfileResponse.model_validate(profile)
