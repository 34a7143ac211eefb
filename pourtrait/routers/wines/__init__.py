"""Wine inventory router package."""

from fastapi import APIRouter

from .consumption import consume_wine, list_consumption
from .crud import create_wine, delete_wine, get_wine, list_wines, update_wine
from .insights import refresh_drinking_window, wine_alerts, wine_stats

router = APIRouter()

# Collection-level endpoints must come before /{wine_id}
router.add_api_route("", create_wine, methods=["POST"], status_code=201)
router.add_api_route("", list_wines, methods=["GET"])
router.add_api_route("/consumption", list_consumption, methods=["GET"])
router.add_api_route("/stats", wine_stats, methods=["GET"])
router.add_api_route("/alerts", wine_alerts, methods=["GET"])

router.add_api_route("/{wine_id}", get_wine, methods=["GET"])
router.add_api_route("/{wine_id}", update_wine, methods=["PUT"])
router.add_api_route("/{wine_id}", delete_wine, methods=["DELETE"], status_code=204)
router.add_api_route("/{wine_id}/consume", consume_wine, methods=["POST"])
router.add_api_route(
    "/{wine_id}/drinking-window/refresh",
    refresh_drinking_window,
    methods=["POST"],
)

__all__ = ["router"]
