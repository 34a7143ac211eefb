"""Tests for wine inventory endpoints."""

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from pourtrait.models import ConsumptionRecord, User, Wine, WineType
from pourtrait.services.auth import get_password_hash
from pourtrait.services.drinking_window import calculate_drinking_window


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert "app_name" in data


@pytest.mark.asyncio
async def test_list_wines_empty(client: AsyncClient) -> None:
    response = await client.get("/api/wines")
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_requires_authentication(unauthenticated_client: AsyncClient) -> None:
    response = await unauthenticated_client.get("/api/wines")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_wine_calculates_drinking_window(client: AsyncClient, wine_payload) -> None:
    """Without a supplied window one is derived from vintage and type."""
    response = await client.post("/api/wines", json=wine_payload())
    assert response.status_code == 201

    wine = response.json()
    assert wine["name"] == "Sancerre Les Romains"
    assert wine["quantity"] == 2
    assert wine["in_stock"] is True

    window = wine["drinking_window"]
    assert window["earliest_date"].startswith("2022-01-01")
    assert window["peak_start_date"].startswith("2023-01-01")
    assert window["peak_end_date"].startswith("2025-12-31")
    assert window["latest_date"].startswith("2025-12-31")
    assert window["current_status"] in {
        "too_young", "ready", "peak", "declining", "over_hill",
    }


@pytest.mark.asyncio
async def test_create_wine_with_supplied_window(client: AsyncClient, wine_payload) -> None:
    """A supplied window is kept and only its status is computed."""
    window = {
        "earliest_date": "2020-01-01T00:00:00Z",
        "peak_start_date": "2021-01-01T00:00:00Z",
        "peak_end_date": "2090-12-31T00:00:00Z",
        "latest_date": "2095-12-31T00:00:00Z",
    }
    response = await client.post("/api/wines", json=wine_payload(drinking_window=window))
    assert response.status_code == 201
    assert response.json()["drinking_window"]["current_status"] == "peak"


@pytest.mark.asyncio
async def test_create_wine_rejects_unordered_window(client: AsyncClient, wine_payload) -> None:
    window = {
        "earliest_date": "2025-01-01T00:00:00Z",
        "peak_start_date": "2024-01-01T00:00:00Z",
        "peak_end_date": "2026-12-31T00:00:00Z",
        "latest_date": "2027-12-31T00:00:00Z",
    }
    response = await client.post("/api/wines", json=wine_payload(drinking_window=window))
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "override",
    [
        {"vintage": 1700},
        {"name": ""},
        {"varietal": []},
        {"personal_rating": 11},
        {"quantity": -1},
        {"type": "orange"},
    ],
)
async def test_create_wine_validation(client: AsyncClient, wine_payload, override) -> None:
    response = await client.post("/api/wines", json=wine_payload(**override))
    assert response.status_code == 400
    field = next(iter(override))
    assert any(err["loc"][-1] == field for err in response.json()["detail"])


@pytest.mark.asyncio
async def test_get_wine(client: AsyncClient, wine_payload) -> None:
    created = (await client.post("/api/wines", json=wine_payload())).json()

    response = await client.get(f"/api/wines/{created['id']}")
    assert response.status_code == 200
    assert response.json()["producer"] == "Domaine Vacheron"


@pytest.mark.asyncio
@pytest.mark.parametrize("wine_id", ["not-an-id", "0123456789abcdef01234567"])
async def test_get_wine_not_found(client: AsyncClient, wine_id: str) -> None:
    response = await client.get(f"/api/wines/{wine_id}")
    assert response.status_code == 404
    assert response.json()["detail"] == f"Wine with ID {wine_id} not found"


@pytest.mark.asyncio
async def test_update_wine_changes_only_provided_fields(client: AsyncClient, wine_payload) -> None:
    created = (await client.post("/api/wines", json=wine_payload())).json()

    response = await client.put(
        f"/api/wines/{created['id']}",
        json={"personal_rating": 9, "personal_notes": "Flinty, long finish"},
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["personal_rating"] == 9
    assert updated["personal_notes"] == "Flinty, long finish"
    assert updated["name"] == created["name"]
    assert updated["drinking_window"]["peak_start_date"] == created["drinking_window"]["peak_start_date"]


@pytest.mark.asyncio
async def test_delete_wine_removes_consumption(
    client: AsyncClient, wine_payload
) -> None:
    created = (await client.post("/api/wines", json=wine_payload())).json()
    await client.post(f"/api/wines/{created['id']}/consume", json={})

    response = await client.delete(f"/api/wines/{created['id']}")
    assert response.status_code == 204

    assert (await client.get(f"/api/wines/{created['id']}")).status_code == 404
    assert await ConsumptionRecord.find_all().count() == 0


@pytest.mark.asyncio
async def test_consume_wine(client: AsyncClient, wine_payload) -> None:
    created = (await client.post("/api/wines", json=wine_payload(quantity=1))).json()

    response = await client.post(
        f"/api/wines/{created['id']}/consume",
        json={"rating": 8, "notes": "Perfect with oysters", "companions": ["Sam"]},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["wine"]["quantity"] == 0
    assert data["wine"]["in_stock"] is False
    assert data["consumption"]["rating"] == 8
    assert data["consumption"]["wine_id"] == created["id"]


@pytest.mark.asyncio
async def test_consume_never_goes_below_zero(client: AsyncClient, wine_payload) -> None:
    created = (await client.post("/api/wines", json=wine_payload(quantity=0))).json()

    response = await client.post(f"/api/wines/{created['id']}/consume", json={})
    assert response.status_code == 200
    assert response.json()["wine"]["quantity"] == 0


@pytest.mark.asyncio
async def test_consumption_history_joins_wine(client: AsyncClient, wine_payload) -> None:
    created = (await client.post("/api/wines", json=wine_payload(quantity=3))).json()
    await client.post(
        f"/api/wines/{created['id']}/consume",
        json={"consumed_at": "2024-05-01T19:00:00Z"},
    )
    await client.post(
        f"/api/wines/{created['id']}/consume",
        json={"consumed_at": "2024-06-01T19:00:00Z"},
    )

    response = await client.get("/api/wines/consumption")
    assert response.status_code == 200
    history = response.json()
    assert len(history) == 2
    assert history[0]["consumed_at"].startswith("2024-06-01")
    assert history[0]["wine"] == {
        "name": "Sancerre Les Romains",
        "producer": "Domaine Vacheron",
        "vintage": 2021,
    }


@pytest.mark.asyncio
async def test_list_wines_filters(client: AsyncClient, wine_payload) -> None:
    await client.post("/api/wines", json=wine_payload())
    await client.post(
        "/api/wines",
        json=wine_payload(
            name="Pauillac",
            producer="Chateau Pichon",
            region="Bordeaux",
            varietal=["Cabernet Sauvignon", "Merlot"],
            type="red",
            vintage=2016,
            purchase_price=120.0,
            personal_rating=9,
        ),
    )
    await client.post(
        "/api/wines",
        json=wine_payload(name="Brut Reserve", type="sparkling", quantity=0, purchase_price=30.0),
    )

    reds = (await client.get("/api/wines", params={"type": "red"})).json()
    assert [w["name"] for w in reds] == ["Pauillac"]

    several = (await client.get("/api/wines", params=[("type", "red"), ("type", "white")])).json()
    assert len(several) == 2

    bordeaux = (await client.get("/api/wines", params={"region": "bord"})).json()
    assert len(bordeaux) == 1

    search = (await client.get("/api/wines", params={"search": "pichon"})).json()
    assert [w["name"] for w in search] == ["Pauillac"]

    in_stock = (await client.get("/api/wines", params={"in_stock": "true"})).json()
    assert {w["name"] for w in in_stock} == {"Pauillac", "Sancerre Les Romains"}

    priced = (await client.get("/api/wines", params={"price_min": 40, "price_max": 100})).json()
    assert [w["name"] for w in priced] == ["Sancerre Les Romains"]

    rated = (await client.get("/api/wines", params={"rating_min": 8})).json()
    assert [w["name"] for w in rated] == ["Pauillac"]

    by_vintage = (
        await client.get("/api/wines", params={"sort_by": "vintage", "sort_order": "desc"})
    ).json()
    assert by_vintage[-1]["vintage"] == 2016


@pytest.mark.asyncio
async def test_wine_stats(client: AsyncClient, wine_payload) -> None:
    await client.post("/api/wines", json=wine_payload(personal_rating=8))
    await client.post(
        "/api/wines",
        json=wine_payload(name="Barolo", type="red", quantity=6, personal_rating=9),
    )

    response = await client.get("/api/wines/stats")
    assert response.status_code == 200
    stats = response.json()
    assert stats["total_wines"] == 2
    assert stats["total_bottles"] == 8
    assert stats["rated_wines"] == 2
    assert stats["average_rating"] == 8.5
    assert stats["red_wines"] == 1
    assert stats["white_wines"] == 1
    assert sum(stats["by_status"].values()) == 2


@pytest.mark.asyncio
async def test_refresh_drinking_window(client: AsyncClient, wine_payload) -> None:
    """Refreshing recalculates dates from the wine's own attributes."""
    window = {
        "earliest_date": "2020-01-01T00:00:00Z",
        "peak_start_date": "2021-01-01T00:00:00Z",
        "peak_end_date": "2090-12-31T00:00:00Z",
        "latest_date": "2095-12-31T00:00:00Z",
    }
    created = (await client.post("/api/wines", json=wine_payload(drinking_window=window))).json()

    response = await client.post(f"/api/wines/{created['id']}/drinking-window/refresh")
    assert response.status_code == 200
    assert response.json()["drinking_window"]["latest_date"].startswith("2025-12-31")


@pytest.mark.asyncio
async def test_wines_are_isolated_per_user(client: AsyncClient, init_test_db) -> None:
    """Another user's wine is invisible and reported as not found."""
    other = User(email="other@example.com", hashed_password=get_password_hash("otherpassword"))
    await other.insert()
    theirs = Wine(
        owner_id=other.id,
        name="Their Wine",
        producer="Someone",
        vintage=2019,
        region="Rioja",
        country="Spain",
        varietal=["Tempranillo"],
        type=WineType.RED,
        quantity=3,
        drinking_window=calculate_drinking_window(2019, WineType.RED, "Rioja"),
    )
    await theirs.insert()

    assert (await client.get("/api/wines")).json() == []
    assert (await client.get(f"/api/wines/{theirs.id}")).status_code == 404
    assert (await client.post(f"/api/wines/{theirs.id}/consume", json={})).status_code == 404
    assert (await client.delete(f"/api/wines/{theirs.id}")).status_code == 404

    reloaded = await Wine.get(theirs.id)
    assert reloaded.quantity == 3


def test_calculated_window_for_premium_red() -> None:
    """Premium regions add aging years on top of the type default."""
    window = calculate_drinking_window(
        2015, WineType.RED, "Napa Valley", now=datetime(2024, 6, 1, tzinfo=timezone.utc)
    )
    # red: 8 years + 3 premium bonus
    assert window.earliest_date.year == 2017
    assert window.peak_start_date.year == 2018
    assert window.peak_end_date.year == 2022
    assert window.latest_date.year == 2026
    assert window.current_status.value == "declining"
