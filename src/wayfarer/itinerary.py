"""Itinerary generation on top of ChatClient.

The generator receives its client explicitly; there is no module-level
instance. Without a client it produces a deterministic mock itinerary, which
keeps development setups working offline.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import time
from typing import TYPE_CHECKING, Annotated

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from wayfarer.types import ChatMessage, ChatParams

if TYPE_CHECKING:
    from collections.abc import Sequence

    from wayfarer.client import ChatClient

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a professional travel planner. Respond only with JSON matching "
    "the requested schema."
)
DEFAULT_MAX_TOKENS = 8000
DEFAULT_TEMPERATURE = 0.7
# Per-day fallback used by the mock budget estimate.
_MOCK_DAILY_BUDGET = 150

# Share of the mock budget per spending category; sums to 1.
_BUDGET_SHARES = (
    ("Accommodation", 0.35),
    ("Food & Dining", 0.25),
    ("Activities", 0.20),
    ("Transportation", 0.15),
    ("Miscellaneous", 0.05),
)

_MOCK_ACTIVITIES = (
    "Explore local markets and try authentic cuisine",
    "Visit historical landmarks and museums",
    "Take a guided city tour",
    "Relax at a local café",
    "Discover hidden gems off the beaten path",
    "Experience local culture and traditions",
    "Enjoy outdoor activities and nature",
    "Sample street food and local specialties",
)


@dataclass(frozen=True)
class TripRequest:
    """Trip parameters supplied by the host application."""

    destination: str
    earliest_start_date: str
    latest_start_date: str
    approximate_trip_length: int
    group_size: int = 1
    budget_amount: float | None = None
    currency: str | None = None
    details: str = ""


@dataclass(frozen=True)
class TravelPreference:
    """A saved user preference, e.g. ``("food", "vegetarian")``."""

    category: str
    text: str


class ItineraryResponse(BaseModel):
    """Structured itinerary returned by the model."""

    model_config = ConfigDict(title="TripItinerary", populate_by_name=True)

    itinerary: str = Field(min_length=10)
    suggested_trip_length: PositiveInt | None = Field(
        default=None, alias="suggestedTripLength"
    )
    suggested_budget: Annotated[str, Field(min_length=1)] | None = Field(
        default=None, alias="suggestedBudget"
    )


@dataclass(frozen=True)
class ItineraryResult:
    itinerary: str
    duration_ms: int
    suggested_trip_length: int | None = None
    suggested_budget: str | None = None


def _people(n: int) -> str:
    return f"{n} {'person' if n == 1 else 'people'}"


def build_itinerary_prompt(
    trip: TripRequest, preferences: Sequence[TravelPreference] = ()
) -> str:
    """Render trip parameters and preferences as a user prompt."""
    currency = trip.currency or "USD"
    lines = [
        "Plan a travel itinerary for the following trip.",
        f"Destination: {trip.destination}",
        f"Travel dates: between {trip.earliest_start_date} and {trip.latest_start_date}",
        f"Suggested duration: {trip.approximate_trip_length} days",
        f"Group size: {_people(trip.group_size)}",
    ]
    if trip.budget_amount is not None:
        lines.append(f"Budget for the group: {trip.budget_amount:g} {currency}")
    else:
        lines.append("Budget: not provided")
    if trip.details:
        lines.append(f"Details: {trip.details}")
    if preferences:
        lines.append("Preferences:")
        lines.extend(f"- {p.category}: {p.text}" for p in preferences)
    lines.append(
        "Return JSON with fields itinerary (Markdown, day by day), "
        "suggestedTripLength (days) and suggestedBudget (amount and currency)."
    )
    return "\n".join(lines)


class ItineraryGenerator:
    """Generate itineraries through an injected ``ChatClient``."""

    def __init__(
        self,
        client: ChatClient | None = None,
        *,
        use_mock: bool = False,
        model: str | None = None,
    ) -> None:
        self._client = client
        self._use_mock = use_mock or client is None
        self._model = model

    @property
    def uses_mock(self) -> bool:
        return self._use_mock

    async def generate(
        self,
        trip: TripRequest,
        preferences: Sequence[TravelPreference] = (),
    ) -> ItineraryResult:
        """Generate an itinerary; client errors propagate unchanged."""
        start = time.perf_counter()
        if self._use_mock or self._client is None:
            return _mock_itinerary(trip, preferences, start)

        params = ChatParams(
            system=SYSTEM_INSTRUCTION,
            messages=(
                ChatMessage(role="user", content=build_itinerary_prompt(trip, preferences)),
            ),
            model=self._model,
            response_schema=ItineraryResponse,
            temperature=DEFAULT_TEMPERATURE,
            max_tokens=DEFAULT_MAX_TOKENS,
        )
        try:
            result = await self._client.chat(params)
        except Exception as exc:
            logger.warning(
                "Itinerary generation failed after %dms: %s",
                _elapsed_ms(start),
                exc,
            )
            raise

        response: ItineraryResponse = result.structured
        return ItineraryResult(
            itinerary=response.itinerary,
            duration_ms=_elapsed_ms(start),
            suggested_trip_length=response.suggested_trip_length,
            suggested_budget=response.suggested_budget,
        )


def _elapsed_ms(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _mock_itinerary(
    trip: TripRequest,
    preferences: Sequence[TravelPreference],
    start: float,
) -> ItineraryResult:
    currency = trip.currency or "USD"
    days = max(trip.approximate_trip_length, 1)
    budget = (
        trip.budget_amount
        if trip.budget_amount is not None
        else days * _MOCK_DAILY_BUDGET
    )

    sections = [
        f"# {days}-Day Itinerary for {trip.destination}",
        "",
        "## Trip Overview",
        f"- **Group Size:** {_people(trip.group_size)}",
        f"- **Duration:** {days} days",
    ]
    if trip.budget_amount is not None:
        sections.append(f"- **Budget:** {trip.budget_amount:g} {currency} per person")
    if trip.details:
        sections.append(f"- **Special Notes:** {trip.details}")
    if preferences:
        sections.append("")
        sections.append("Your preferences:")
        sections.extend(f"- {p.category}: {p.text}" for p in preferences)
    sections.extend(["", "## Daily Itinerary"])
    for i in range(days):
        activity = _MOCK_ACTIVITIES[i % len(_MOCK_ACTIVITIES)]
        sections.append(f"### Day {i + 1}")
        sections.extend(
            f"**{part}:** {activity}" for part in ("Morning", "Afternoon", "Evening")
        )
    sections.extend(
        [
            "",
            "## Travel Tips",
            "- Book accommodations in advance for the best rates",
            "- Consider purchasing travel insurance",
            f"- Check visa requirements for {trip.destination}",
            "- Download offline maps before your trip",
            "",
            "## Budget Breakdown",
        ]
    )
    if trip.budget_amount is not None:
        sections.extend(
            f"- {label}: {_round_half_up(trip.budget_amount * share)} {currency}"
            for label, share in _BUDGET_SHARES
        )
    else:
        sections.append("Budget breakdown not available (no budget specified)")
    sections.extend(["", "---", "*This is a mock itinerary generated for development.*"])

    return ItineraryResult(
        itinerary="\n".join(sections),
        duration_ms=_elapsed_ms(start),
        suggested_trip_length=days,
        suggested_budget=f"{budget:g} {currency}",
    )
