"""Profile-mapping telemetry endpoints."""

import logging
from typing import Annotated, Any

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Body, Header, Query, status
from fastapi.responses import JSONResponse

from pourtrait.config import settings
from pourtrait.services.auth import RequireAdmin, secret_matches
from pourtrait.services.metrics import digest, record_mapping_run, rollup

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("pourtrait.security")

router = APIRouter()


def _object_id(value: Any) -> PydanticObjectId | None:
    if not value:
        return None
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        return None


@router.post("/llm-map/log")
async def log_mapping_run(
    body: Any = Body(None),
    x_ingest_key: Annotated[str | None, Header()] = None,
) -> Any:
    """Ingest one mapping run from an out-of-process caller."""
    if not secret_matches(x_ingest_key, settings.metrics_ingest_key):
        security_logger.warning("Rejected metrics ingest: bad or missing ingest key")
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})

    body = body if isinstance(body, dict) else {}
    model = body.get("model")
    if not model:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "model required"})

    confidence = body.get("confidence")
    latency = body.get("latencyMs")
    await record_mapping_run(
        str(model),
        body.get("answers"),
        experience=body.get("experience"),
        latency_ms=int(latency) if isinstance(latency, (int, float)) else None,
        confidence=confidence if isinstance(confidence, (int, float)) else None,
        success=bool(body.get("success", True)),
        checks=body.get("checks"),
        user_id=_object_id(body.get("userId")),
        anon_id=body.get("anonId"),
    )
    return {"success": True}


@router.get("/llm-map-digest")
async def mapping_digest(
    _admin: RequireAdmin,
    days: Annotated[int, Query()] = 7,
) -> dict:
    """Aggregates over the trailing window (1 to 30 days)."""
    return await digest(days)


@router.get("/llm-map-rollup")
async def mapping_rollup(
    _admin: RequireAdmin,
    offset: Annotated[int, Query(ge=1)] = 1,
) -> dict:
    """Roll up one UTC day into the daily stats collection."""
    stats = await rollup(offset)
    return {"ok": True, **stats}
