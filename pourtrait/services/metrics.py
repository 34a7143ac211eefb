"""Profile-mapping telemetry: run logging, digests and daily rollups."""

import hashlib
import json
import logging
import math
from datetime import datetime, timedelta
from typing import Any

from beanie import PydanticObjectId

from pourtrait.config import settings
from pourtrait.models._common import utc_now
from pourtrait.models.mapping_run import MappingDailyStats, MappingRun

logger = logging.getLogger(__name__)

ANSWERS_EXCERPT_LENGTH = 160
MAX_DIGEST_DAYS = 30


def _answers_text(answers: Any) -> str:
    if isinstance(answers, str):
        return answers
    return json.dumps(answers or {}, separators=(",", ":"), ensure_ascii=False)


def hash_answers(answers: Any) -> str:
    """Salted SHA-256 of the answers; the raw text is never stored."""
    return hashlib.sha256((settings.llm_log_salt + _answers_text(answers)).encode("utf-8")).hexdigest()


async def record_mapping_run(
    model: str,
    answers: Any = None,
    *,
    experience: str | None = None,
    latency_ms: int | None = None,
    confidence: float | None = None,
    success: bool = True,
    checks: list[dict[str, Any]] | None = None,
    user_id: PydanticObjectId | None = None,
    anon_id: str | None = None,
) -> MappingRun:
    run = MappingRun(
        user_id=user_id,
        anon_id=anon_id,
        model=model,
        prompt_version=settings.prompt_version,
        evaluator_version=settings.evaluator_version,
        experience=experience,
        latency_ms=latency_ms or None,
        confidence=confidence,
        success=success,
        answers_excerpt=_answers_text(answers)[:ANSWERS_EXCERPT_LENGTH],
        answers_hash=hash_answers(answers),
        checks=checks,
    )
    await run.insert()
    logger.debug("Recorded mapping run (model=%s, success=%s)", model, success)
    return run


def _half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _aggregate(runs: list[MappingRun]) -> dict[str, Any]:
    """Totals plus a per-model breakdown, models in first-seen order."""
    by_model: dict[str, dict[str, float]] = {}
    sum_latency = sum_confidence = 0.0
    failures = 0

    for run in runs:
        bucket = by_model.setdefault(
            run.model, {"total": 0, "latency": 0.0, "confidence": 0.0, "fails": 0}
        )
        bucket["total"] += 1
        bucket["latency"] += run.latency_ms or 0
        bucket["confidence"] += run.confidence or 0
        sum_latency += run.latency_ms or 0
        sum_confidence += run.confidence or 0
        if not run.success:
            bucket["fails"] += 1
            failures += 1

    models = [
        {
            "model": model,
            "total": int(v["total"]),
            "avg_latency_ms": _half_up(v["latency"] / v["total"]),
            "avg_confidence": round(v["confidence"] / v["total"], 3),
            "failure_rate": round(v["fails"] / v["total"], 3),
        }
        for model, v in by_model.items()
    ]

    total = len(runs)
    return {
        "total_runs": total,
        "avg_latency_ms": _half_up(sum_latency / total) if total else 0,
        "avg_confidence": round(sum_confidence / total, 3) if total else 0,
        "failure_rate": round(failures / total, 3) if total else 0,
        "models": models,
    }


def clamp_days(days: int | None) -> int:
    return max(1, min(MAX_DIGEST_DAYS, days or 7))


async def digest(days: int = 7, now: datetime | None = None) -> dict[str, Any]:
    """Aggregate runs over the trailing ``days`` (clamped to 1..30)."""
    days = clamp_days(days)
    since = (now or utc_now()) - timedelta(days=days)
    runs = await MappingRun.find(MappingRun.created_at >= since).to_list()
    return {"days": days, **_aggregate(runs)}


def day_range(offset: int = 1, now: datetime | None = None) -> tuple[datetime, datetime, str]:
    """UTC day ``offset`` days back: (start, end, YYYY-MM-DD)."""
    now = now or utc_now()
    end = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start = end - timedelta(days=offset)
    return start, end, start.date().isoformat()


async def rollup(offset: int = 1, now: datetime | None = None) -> dict[str, Any]:
    """Aggregate one UTC day and upsert it into the daily stats collection."""
    start, end, day = day_range(offset, now)
    runs = await MappingRun.find(
        MappingRun.created_at >= start,
        MappingRun.created_at < end,
    ).to_list()
    stats = {"day": day, **_aggregate(runs)}

    existing = await MappingDailyStats.find_one(MappingDailyStats.day == day)
    if existing is None:
        await MappingDailyStats(**stats).insert()
    else:
        for key, value in stats.items():
            setattr(existing, key, value)
        existing.updated_at = utc_now()
        await existing.save()

    logger.info("Rolled up %d mapping runs for %s", stats["total_runs"], day)
    return stats
