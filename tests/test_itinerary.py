"""Itinerary generation on top of ChatClient."""

from __future__ import annotations

import json

import httpx
import pytest

from tests.helpers import ScriptedHandler, make_client, ok
from wayfarer.errors import HTTPError, JSONValidationError
from wayfarer.itinerary import (
    ItineraryGenerator,
    TravelPreference,
    TripRequest,
    build_itinerary_prompt,
)

pytestmark = pytest.mark.unit

TRIP = TripRequest(
    destination="Lisbon",
    earliest_start_date="2026-05-01",
    latest_start_date="2026-05-10",
    approximate_trip_length=3,
    group_size=2,
    budget_amount=1200,
    currency="EUR",
    details="First time in Portugal",
)
PREFS = (
    TravelPreference(category="food", text="vegetarian"),
    TravelPreference(category="pace", text="slow mornings"),
)


def test_prompt_includes_trip_parameters_and_preferences() -> None:
    prompt = build_itinerary_prompt(TRIP, PREFS)

    assert "Destination: Lisbon" in prompt
    assert "between 2026-05-01 and 2026-05-10" in prompt
    assert "Group size: 2 people" in prompt
    assert "1200 EUR" in prompt
    assert "- food: vegetarian" in prompt
    assert "suggestedTripLength" in prompt


def test_prompt_without_budget_or_preferences() -> None:
    trip = TripRequest(
        destination="Kyoto",
        earliest_start_date="2026-04-01",
        latest_start_date="2026-04-02",
        approximate_trip_length=5,
    )

    prompt = build_itinerary_prompt(trip)

    assert "Budget: not provided" in prompt
    assert "Group size: 1 person" in prompt
    assert "Preferences:" not in prompt


@pytest.mark.asyncio
async def test_mock_mode_is_deterministic_and_offline() -> None:
    generator = ItineraryGenerator()

    first = await generator.generate(TRIP, PREFS)
    second = await generator.generate(TRIP, PREFS)

    assert generator.uses_mock
    assert first.itinerary == second.itinerary
    assert first.itinerary.startswith("# 3-Day Itinerary for Lisbon")
    assert "### Day 3" in first.itinerary
    assert "- food: vegetarian" in first.itinerary
    assert first.suggested_trip_length == 3
    assert first.suggested_budget == "1200 EUR"


@pytest.mark.asyncio
async def test_mock_budget_estimate_without_budget() -> None:
    trip = TripRequest(
        destination="Oslo",
        earliest_start_date="2026-06-01",
        latest_start_date="2026-06-03",
        approximate_trip_length=2,
    )

    result = await ItineraryGenerator(use_mock=True).generate(trip)

    assert result.suggested_budget == "300 USD"
    assert "Budget breakdown not available (no budget specified)" in result.itinerary
    assert "**Budget:**" not in result.itinerary


@pytest.mark.asyncio
async def test_mock_itinerary_has_tips_and_budget_breakdown() -> None:
    result = await ItineraryGenerator(use_mock=True).generate(TRIP)
    text = result.itinerary

    assert "- **Budget:** 1200 EUR per person" in text
    assert "## Travel Tips" in text
    assert "- Check visa requirements for Lisbon" in text
    breakdown = text.split("## Budget Breakdown\n", 1)[1].split("\n\n", 1)[0]
    assert breakdown.splitlines() == [
        "- Accommodation: 420 EUR",
        "- Food & Dining: 300 EUR",
        "- Activities: 240 EUR",
        "- Transportation: 180 EUR",
        "- Miscellaneous: 60 EUR",
    ]
    assert text.rstrip().endswith("*This is a mock itinerary generated for development.*")


@pytest.mark.asyncio
async def test_generate_uses_structured_chat() -> None:
    content = json.dumps(
        {
            "itinerary": "## Day 1\nAlfama walk and fado.",
            "suggestedTripLength": 3,
            "suggestedBudget": "1100 EUR",
        }
    )
    handler = ScriptedHandler([ok(content)])
    generator = ItineraryGenerator(make_client(handler), model="openai/gpt-4o-mini")

    result = await generator.generate(TRIP, PREFS)

    assert not generator.uses_mock
    assert result.itinerary.startswith("## Day 1")
    assert result.suggested_trip_length == 3
    assert result.suggested_budget == "1100 EUR"
    assert result.duration_ms >= 0

    body = handler.last_json()
    assert body["model"] == "openai/gpt-4o-mini"
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 8000
    assert body["messages"][0]["role"] == "system"
    assert body["response_format"]["json_schema"]["name"] == "trip-itinerary"


@pytest.mark.asyncio
async def test_generate_propagates_validation_errors(
    caplog: pytest.LogCaptureFixture,
) -> None:
    handler = ScriptedHandler([ok(json.dumps({"itinerary": "short"}))])
    generator = ItineraryGenerator(make_client(handler))

    with caplog.at_level("WARNING", logger="wayfarer.itinerary"):
        with pytest.raises(JSONValidationError):
            await generator.generate(TRIP)

    assert "Itinerary generation failed" in caplog.text
    assert handler.calls == 1


@pytest.mark.asyncio
async def test_generate_propagates_http_errors() -> None:
    handler = ScriptedHandler([httpx.Response(401)])
    generator = ItineraryGenerator(make_client(handler))

    with pytest.raises(HTTPError) as exc:
        await generator.generate(TRIP)
    assert exc.value.status_code == 401
