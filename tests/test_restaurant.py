"""Tests for restaurant wine-list matching, scoring and the analysis endpoints."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from pourtrait.models import Recommendation, RecommendationType
from pourtrait.schemas.recommendation import ExtractedWine, PriceRangeInput
from pourtrait.services.restaurant import (
    extract_region,
    match_type_for,
    parse_price,
    price_score,
    similarity,
)
from pourtrait.services.vision import (
    WineListExtractionError,
    _parse_entries,
    extract_wine_list,
)

from tests.conftest import anthropic_reply


class TestSimilarity:
    @pytest.mark.parametrize(
        "a, b, expected",
        [
            ("Château Margaux", "chateau margaux", 1.0),
            ("Domaine Vacheron", "Domaine  Vacheron!", 1.0),
            ("Opus One", "Opus", 0.5),
            ("Barolo", "Chablis", 0.0),
            ("", None, 1.0),
        ],
    )
    def test_similarity(self, a, b, expected) -> None:
        assert similarity(a, b) == expected

    def test_extract_region(self) -> None:
        assert extract_region("Crisp Sauvignon from the Loire") == "Loire"
        assert extract_region("Old vine Chablis, steely") == "Chablis"
        assert extract_region("house red") is None
        assert extract_region(None) is None

    @pytest.mark.parametrize(
        "confidence, expected",
        [(0.95, "exact"), (0.9, "partial"), (0.8, "partial"), (0.5, "similar"), (0.4, "none")],
    )
    def test_match_type(self, confidence, expected) -> None:
        assert match_type_for(confidence) == expected


class TestPrice:
    @pytest.mark.parametrize(
        "label, expected",
        [
            ("$1,250", 1250.0),
            ("45 EUR", 45.0),
            ("£12.50 / glass", 12.5),
            ("market price", None),
            (None, None),
        ],
    )
    def test_parse_price(self, label, expected) -> None:
        assert parse_price(label) == expected

    @pytest.mark.parametrize(
        "label, expected",
        [("$55", 1.0), ("$65", 0.25), ("$70", 0.0), ("$200", 0.0), ("ask", 0.5)],
    )
    def test_price_score(self, label, expected) -> None:
        assert price_score(label, PriceRangeInput(min=40, max=60)) == pytest.approx(expected)

    def test_zero_width_range(self) -> None:
        fixed = PriceRangeInput(min=50, max=50)
        assert price_score("$50", fixed) == 1.0
        assert price_score("$60", fixed) == 0.0


class TestAnalyzeEndpoint:
    @pytest.mark.parametrize(
        "body, message",
        [
            ({}, "Invalid wines data. Expected array of extracted wines."),
            ({"wines": "Sancerre"}, "Invalid wines data. Expected array of extracted wines."),
            ({"wines": []}, "No wines provided for analysis."),
            ({"wines": [{"producer": "Vacheron"}]}, "Invalid wine data. Each wine must have a name."),
            ({"wines": [{"name": 42}]}, "Invalid wine data. Each wine must have a name."),
        ],
    )
    async def test_validation_messages(self, client: AsyncClient, body, message) -> None:
        response = await client.post("/api/recommendations/restaurant", json=body)
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": message}

    async def test_matches_cellar_wine(self, client: AsyncClient, wine_payload) -> None:
        wine = (await client.post("/api/wines", json=wine_payload())).json()

        response = await client.post(
            "/api/recommendations/restaurant",
            json={
                "wines": [
                    {"name": "Sancerre Les Romains", "producer": "Domaine Vacheron", "price": "$85"},
                    {"name": "Opus One", "producer": "Opus One Winery"},
                ]
            },
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalWines"] == 2

        matched = data["processedWines"][0]
        assert matched["confidence"] >= 0.6
        assert matched["matchType"] == "partial"
        assert matched["matchedWine"]["id"] == wine["id"]
        assert set(matched["matchedFields"]) == {"name", "producer"}

        unmatched = data["processedWines"][1]
        assert unmatched["matchType"] == "none"
        assert unmatched["matchedWine"] is None

        assert len(data["recommendations"]) == 1
        top = data["recommendations"][0]
        assert top["explanation"].startswith(
            "This Domaine Vacheron Sancerre Les Romains is a white wine from Loire Valley."
        )

        logged = await Recommendation.find_all().to_list()
        assert len(logged) == 1
        assert logged[0].type == RecommendationType.INVENTORY
        assert str(logged[0].wine_id) == wine["id"]
        assert logged[0].context["source"] == "restaurant"

    async def test_vintage_and_meal_context(self, client: AsyncClient, wine_payload) -> None:
        await client.post("/api/wines", json=wine_payload())

        response = await client.post(
            "/api/recommendations/restaurant",
            json={
                "wines": [
                    {
                        "name": "Sancerre Les Romains",
                        "producer": "Domaine Vacheron",
                        "vintage": 2021,
                        "price": "$55",
                    }
                ],
                "context": {
                    "priceRange": {"min": 40, "max": 60},
                    "meal": {"dishName": "grilled sole", "mainIngredient": "fish"},
                },
            },
        )

        assert response.status_code == 200
        top = response.json()["data"]["recommendations"][0]
        assert top["priceScore"] == 1.0
        assert top["foodPairingScore"] > 0.5
        assert "Within your preferred price range" in top["reasoning"]
        assert "pair well with grilled sole" in top["explanation"]
        assert "At $55, it fits within your preferred price range." in top["explanation"]

    async def test_unmatched_wine_in_budget_is_logged_as_purchase(
        self, client: AsyncClient
    ) -> None:
        response = await client.post(
            "/api/recommendations/restaurant",
            json={
                "wines": [{"name": "Opus One", "price": "$50"}],
                "context": {"priceRange": {"min": 40, "max": 60}},
            },
        )

        assert response.status_code == 200
        recommendations = response.json()["data"]["recommendations"]
        assert len(recommendations) == 1

        logged = await Recommendation.find_one()
        assert logged.type == RecommendationType.PURCHASE
        assert logged.suggested_wine["name"] == "Opus One"

    async def test_analysis_failure(self, client: AsyncClient) -> None:
        with patch(
            "pourtrait.services.restaurant.rank_recommendations",
            side_effect=RuntimeError("boom"),
        ):
            response = await client.post(
                "/api/recommendations/restaurant", json={"wines": [{"name": "Opus One"}]}
            )
        assert response.status_code == 422
        assert response.json() == {
            "success": False,
            "error": "Unable to analyze wine list. Please try again.",
        }


class TestScan:
    async def test_scan_without_vision(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/recommendations/restaurant/scan",
            files={"image": ("list.jpg", b"\xff\xd8fake", "image/jpeg")},
        )
        assert response.status_code == 422
        assert response.json()["success"] is False

    async def test_scan_too_large(self, client: AsyncClient) -> None:
        big = b"0" * (10 * 1024 * 1024 + 1)
        response = await client.post(
            "/api/recommendations/restaurant/scan",
            files={"image": ("list.jpg", big, "image/jpeg")},
        )
        assert response.status_code == 413

    async def test_scan_analyses_extracted_wines(self, client: AsyncClient) -> None:
        extracted = [ExtractedWine(name="Opus One", price="$300")]
        with patch(
            "pourtrait.routers.recommendations.extract_wine_list",
            AsyncMock(return_value=extracted),
        ):
            response = await client.post(
                "/api/recommendations/restaurant/scan",
                files={"image": ("list.png", b"png", "image/png")},
            )
        assert response.status_code == 200
        assert response.json()["data"]["totalWines"] == 1

    async def test_scan_with_no_wines(self, client: AsyncClient) -> None:
        with patch(
            "pourtrait.routers.recommendations.extract_wine_list",
            AsyncMock(return_value=[]),
        ):
            response = await client.post(
                "/api/recommendations/restaurant/scan",
                files={"image": ("list.png", b"png", "image/png")},
            )
        assert response.status_code == 422
        assert response.json()["error"] == "No wines found in the image."


class TestVisionParsing:
    def test_parse_entries(self) -> None:
        content = "```json\n" + json.dumps(
            {
                "wines": [
                    {"name": "Chablis Premier Cru", "vintage": 2020, "price": 95},
                    {"producer": "No name here"},
                    {"name": "Crémant de Loire", "vintage": None, "confidence": 0.6},
                ]
            }
        ) + "\n```"

        entries = _parse_entries(content)

        assert [e.name for e in entries] == ["Chablis Premier Cru", "Crémant de Loire"]
        assert entries[0].price == "95"
        assert entries[1].confidence == 0.6

    async def test_extract_requires_api_key(self) -> None:
        with pytest.raises(WineListExtractionError):
            await extract_wine_list(b"img")

    async def test_extract_rejects_unsupported_type(self) -> None:
        with patch("pourtrait.services.vision.is_available", return_value=True):
            with pytest.raises(WineListExtractionError, match="Unsupported image type"):
                await extract_wine_list(b"img", "application/pdf")

    async def test_extract_with_model(self) -> None:
        reply = anthropic_reply('{"wines": [{"name": "Barolo", "producer": "Vietti"}]}')
        fake_client = SimpleNamespace(
            messages=SimpleNamespace(create=AsyncMock(return_value=reply))
        )
        with (
            patch("pourtrait.services.vision.is_available", return_value=True),
            patch("pourtrait.services.vision.get_anthropic_client", return_value=fake_client),
        ):
            entries = await extract_wine_list(b"img", "image/png")

        assert entries[0].producer == "Vietti"
        sent = fake_client.messages.create.call_args.kwargs["messages"][0]["content"][0]
        assert sent["source"]["media_type"] == "image/png"

    async def test_unreadable_reply(self) -> None:
        reply = anthropic_reply("I could not read this photo.")
        fake_client = SimpleNamespace(
            messages=SimpleNamespace(create=AsyncMock(return_value=reply))
        )
        with (
            patch("pourtrait.services.vision.is_available", return_value=True),
            patch("pourtrait.services.vision.get_anthropic_client", return_value=fake_client),
        ):
            with pytest.raises(WineListExtractionError, match="Could not read the wine list"):
                await extract_wine_list(b"img")
