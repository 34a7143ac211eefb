"""Recommendation log: storing suggestions, recording feedback and summarizing it."""

import logging
from typing import Any

from beanie import PydanticObjectId
from bson.errors import InvalidId

from pourtrait.models._common import utc_now
from pourtrait.models.recommendation import (
    Recommendation,
    RecommendationFeedback,
    RecommendationType,
)
from pourtrait.schemas.recommendation import (
    PairingRecommendation,
    RecommendationRecord,
    RestaurantRecommendation,
)
from pourtrait.services.analytics import posthog_service

logger = logging.getLogger(__name__)

MAX_REASONING_LENGTH = 1000
FEEDBACK_VALUES = {item.value for item in RecommendationFeedback}


def validate_feedback_body(body: Any) -> str | None:
    """Return the error message for a malformed feedback body, or None."""
    if not isinstance(body, dict):
        return "Recommendation ID is required"
    recommendation_id = body.get("recommendationId")
    if not recommendation_id or not isinstance(recommendation_id, str):
        return "Recommendation ID is required"
    if body.get("feedback") not in FEEDBACK_VALUES:
        return "Valid feedback is required (accepted, rejected, modified)"
    if body.get("reason") and not isinstance(body["reason"], str):
        return "Reason must be a string"
    if body.get("modifiedContext") and not isinstance(body["modifiedContext"], dict):
        return "Modified context must be an object"
    return None


def _reasoning(text: str, fallback: str) -> str:
    return (text or fallback)[:MAX_REASONING_LENGTH]


async def log_restaurant_recommendations(
    owner_id: PydanticObjectId,
    recommendations: list[RestaurantRecommendation],
    context: dict[str, Any],
) -> list[Recommendation]:
    """Store restaurant picks; cellar matches as inventory, the rest as purchase."""
    rows = []
    for rec in recommendations:
        matched = rec.wine.matched_wine
        entry = rec.wine.extracted_wine
        rows.append(
            Recommendation(
                owner_id=owner_id,
                type=RecommendationType.INVENTORY if matched else RecommendationType.PURCHASE,
                wine_id=PydanticObjectId(matched.id) if matched else None,
                suggested_wine=None if matched else entry.model_dump(by_alias=True, exclude_none=True),
                context={**context, "source": "restaurant"},
                reasoning=_reasoning(rec.explanation, entry.name),
                confidence=max(0.0, min(1.0, rec.score)),
            )
        )
    if rows:
        await Recommendation.insert_many(rows)
    return rows


async def log_pairing_recommendations(
    owner_id: PydanticObjectId,
    pairings: list[PairingRecommendation],
) -> list[Recommendation]:
    """Store pairings and write the stored ids back onto them."""
    rows = []
    for pairing in pairings:
        row = Recommendation(
            owner_id=owner_id,
            type=RecommendationType(pairing.type),
            wine_id=PydanticObjectId(pairing.wine_id) if pairing.wine_id else None,
            context=pairing.context,
            reasoning=_reasoning(pairing.reasoning, pairing.pairing_explanation),
            confidence=max(0.0, min(1.0, pairing.confidence)),
        )
        await row.insert()
        pairing.id = str(row.id)
        rows.append(row)
    return rows


async def record_feedback(
    owner_id: PydanticObjectId,
    recommendation_id: str,
    feedback: str,
    reason: str | None = None,
    modified_context: dict[str, Any] | None = None,
) -> Recommendation | None:
    """Attach feedback to an owned recommendation; None when it is not found."""
    try:
        object_id = PydanticObjectId(recommendation_id)
    except (InvalidId, TypeError):
        return None

    recommendation = await Recommendation.find_one(
        Recommendation.id == object_id,
        Recommendation.owner_id == owner_id,
    )
    if recommendation is None:
        return None

    recommendation.user_feedback = RecommendationFeedback(feedback)
    recommendation.feedback_reason = reason
    recommendation.modified_context = modified_context
    recommendation.feedback_at = utc_now()
    await recommendation.save()

    posthog_service.capture(
        distinct_id=str(owner_id),
        event="recommendation_feedback",
        properties={"feedback": feedback, "type": recommendation.type.value},
    )
    logger.info("Recorded %s feedback on recommendation %s", feedback, recommendation_id)
    return recommendation


def to_record(recommendation: Recommendation) -> RecommendationRecord:
    return RecommendationRecord(
        id=str(recommendation.id),
        type=recommendation.type.value,
        wine_id=str(recommendation.wine_id) if recommendation.wine_id else None,
        suggested_wine=recommendation.suggested_wine,
        context=recommendation.context,
        reasoning=recommendation.reasoning,
        confidence=recommendation.confidence,
        user_feedback=recommendation.user_feedback.value if recommendation.user_feedback else None,
        feedback_reason=recommendation.feedback_reason,
        created_at=recommendation.created_at,
    )


async def get_history(
    owner_id: PydanticObjectId,
    limit: int = 50,
    recommendation_type: RecommendationType | None = None,
) -> list[Recommendation]:
    query = Recommendation.find(Recommendation.owner_id == owner_id)
    if recommendation_type is not None:
        query = query.find(Recommendation.type == recommendation_type)
    return await query.sort(-Recommendation.created_at).limit(limit).to_list()


def summarize(recommendations: list[Recommendation]) -> dict[str, Any]:
    """Feedback rates over the rows that have feedback; rows are newest first."""
    total = len(recommendations)
    counts = {value: 0 for value in FEEDBACK_VALUES}
    for rec in recommendations:
        if rec.user_feedback is not None:
            counts[rec.user_feedback.value] += 1
    with_feedback = sum(counts.values())

    def rate(key: str) -> float:
        return counts[key] / with_feedback if with_feedback else 0

    return {
        "totalRecommendations": total,
        "acceptanceRate": rate("accepted"),
        "rejectionRate": rate("rejected"),
        "modificationRate": rate("modified"),
        "pendingFeedback": total - with_feedback,
        "averageConfidence": sum(r.confidence for r in recommendations) / total if total else 0,
        "typeBreakdown": {
            item.value: sum(1 for r in recommendations if r.type == item)
            for item in RecommendationType
        },
        "lastRecommendation": recommendations[0].created_at.isoformat() if recommendations else None,
    }


async def get_analytics(owner_id: PydanticObjectId) -> dict[str, Any]:
    recommendations = (
        await Recommendation.find(Recommendation.owner_id == owner_id)
        .sort(-Recommendation.created_at)
        .to_list()
    )
    return summarize(recommendations)
