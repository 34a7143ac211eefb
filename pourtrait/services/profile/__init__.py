"""Onboarding profile pipeline: prompt, LLM mapping, evaluation and storage."""

from pourtrait.services.profile.evaluator import evaluate_profile
from pourtrait.services.profile.mapper import (
    MappingResult,
    ProfileMappingError,
    RateLimitedError,
    map_free_text_to_profile,
)
from pourtrait.services.profile.persist import load_profile_summary, upsert_user_profile
from pourtrait.services.profile.taste import sync_taste_profile, taste_profile_from_palate

__all__ = [
    "MappingResult",
    "ProfileMappingError",
    "RateLimitedError",
    "evaluate_profile",
    "load_profile_summary",
    "map_free_text_to_profile",
    "sync_taste_profile",
    "taste_profile_from_palate",
    "upsert_user_profile",
]
