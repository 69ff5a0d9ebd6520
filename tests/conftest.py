"""Pytest fixtures for offline planner tests."""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

# Ensure placeholder keys exist so modules that read env on import succeed.
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test-maps-key")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.pop("REDIS_URL", None)
os.environ.pop("AWS_SECRETS_MANAGER_SECRET_NAME", None)

from cities import get_city_config  # noqa: E402
from config import Settings  # noqa: E402
from workflows.schemas import Coordinates, OpeningHours, OpeningPeriod, Venue  # noqa: E402


class FakeResponse:
    """Lightweight stand-in for httpx.Response used in patched requests."""

    def __init__(self, payload: Dict[str, Any], status_code: int = 200, headers: Dict[str, str] | None = None):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.text = ""

    def json(self) -> Dict[str, Any]:
        return self._payload


@pytest.fixture
def fake_response():
    """Factory that returns FakeResponse objects."""

    def _factory(payload: Dict[str, Any], status_code: int = 200, headers: Dict[str, str] | None = None) -> FakeResponse:
        return FakeResponse(payload, status_code=status_code, headers=headers)

    return _factory


class FakeMessage:
    def __init__(self, content: Any):
        self.content = content


class FakeLLM:
    """Chat model stub exposing ``invoke``.

    ``replies`` are returned in order (the last one repeats). A reply that is an
    exception instance is raised instead; dicts are serialized to JSON.
    """

    def __init__(self, replies: Union[Any, Sequence[Any]]):
        if not isinstance(replies, (list, tuple)):
            replies = [replies]
        self.replies: List[Any] = list(replies)
        self.calls: List[List[Any]] = []

    def invoke(self, messages):
        self.calls.append(list(messages))
        reply = self.replies[min(len(self.calls), len(self.replies)) - 1]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return FakeMessage(reply)


@pytest.fixture
def fake_llm():
    """Factory for ``FakeLLM`` instances."""
    return FakeLLM


# ==================== FIXTURES ====================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        google_api_key="test-google-key",
        google_maps_api_key="test-maps-key",
        http_timeout_s=1.0,
    )


@pytest.fixture
def london():
    return get_city_config("london")


@pytest.fixture
def nyc():
    return get_city_config("nyc")


def build_place(
    place_id: str,
    name: str,
    address: str,
    lat: float = 51.5,
    lng: float = -0.14,
    *,
    rating: Optional[float] = 4.5,
    types: Sequence[str] = ("restaurant",),
    hours: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Places API (New) v1 ``searchText`` result."""
    place: Dict[str, Any] = {
        "id": place_id,
        "displayName": {"text": name},
        "formattedAddress": address,
        "location": {"latitude": lat, "longitude": lng},
        "rating": rating,
        "userRatingCount": 120,
        "types": list(types),
    }
    if hours is not None:
        place["regularOpeningHours"] = hours
    return place


@pytest.fixture
def make_place():
    return build_place


@pytest.fixture
def make_venue():
    def _factory(
        external_id: str = "v1",
        name: str = "The Venue",
        address: str = "1 Example St, London W1, UK",
        lat: Optional[float] = 51.51,
        lng: Optional[float] = -0.14,
        *,
        categories: Sequence[str] = ("restaurant",),
        is_outdoor: bool = False,
        periods: Optional[Sequence[OpeningPeriod]] = None,
        rating: Optional[float] = 4.5,
    ) -> Venue:
        return Venue(
            external_id=external_id,
            name=name,
            address=address,
            coordinates=Coordinates(lat=lat, lng=lng) if lat is not None and lng is not None else None,
            categories=tuple(categories),
            rating=rating,
            is_outdoor=is_outdoor,
            opening_hours=OpeningHours(periods=tuple(periods)) if periods is not None else None,
        )

    return _factory
