"""Telemetry for taste-profile mapping calls."""

from datetime import datetime
from typing import Any, Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field

from pourtrait.models._common import utc_now


class MappingRun(Document):
    """One call to the profile mapper.

    Only a short excerpt and a salted hash of the free-text answers are kept.
    """

    user_id: Optional[PydanticObjectId] = None
    anon_id: Optional[str] = None
    model: str
    prompt_version: Optional[str] = None
    evaluator_version: Optional[str] = None
    experience: Optional[str] = None
    latency_ms: Optional[int] = None
    confidence: Optional[float] = None
    success: bool = True
    answers_excerpt: Optional[str] = None
    answers_hash: Optional[str] = None
    checks: Optional[list[dict[str, Any]]] = None
    created_at: Indexed(datetime) = Field(default_factory=utc_now)

    class Settings:
        name = "llm_mapping_runs"


class MappingDailyStats(Document):
    """Per-day rollup of mapping runs, keyed by UTC date (YYYY-MM-DD)."""

    day: Indexed(str, unique=True)
    total_runs: int = 0
    avg_latency_ms: int = 0
    avg_confidence: float = 0.0
    failure_rate: float = 0.0
    models: list[dict[str, Any]] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "llm_daily_stats"
