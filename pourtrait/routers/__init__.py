"""API routers for Pourtrait."""

from pourtrait.routers import (
    auth,
    metrics,
    notifications,
    partners,
    profile,
    recommendations,
    wines,
)

__all__ = [
    "auth",
    "wines",
    "profile",
    "recommendations",
    "notifications",
    "metrics",
    "partners",
]
