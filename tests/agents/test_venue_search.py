"""Tests for venue search: query building, location bias and result filtering."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from agents.venue_search import VenueSearch, build_query, rank_by_rating
from tools import places
from workflows.cache import TTLCache
from workflows.circuit_breaker import CircuitBreaker
from workflows.errors import PlacesServiceError
from workflows.schemas import ActivitySlot

LONDON_TZ = ZoneInfo("Europe/London")


def _slot(**overrides) -> ActivitySlot:
    fields = {
        "activity": "lunch",
        "location": "Mayfair",
        "time": "12:00",
        "venue_type": "restaurant",
        "venue_preference": "fish and chips restaurant",
    }
    fields.update(overrides)
    return ActivitySlot(**fields)


@pytest.fixture
def capture_places(monkeypatch, fake_response):
    """Patch the HTTP seam; returns the list of captured request bodies."""

    def _install(results):
        calls = []

        def _fake_request(method: str, url: str, **kw):
            calls.append(kw["json"])
            return fake_response({"places": results})

        monkeypatch.setattr(places, "_request", _fake_request)
        return calls

    return _install


# ==================== QUERY + BIAS ====================


def test_area_slot_uses_tight_bias(settings, london, capture_places, make_place):
    calls = capture_places([make_place("p1", "Poppies", "30 Hanbury St, London E1 6QR, UK")])
    result = VenueSearch(settings=settings).search(_slot(), london)

    body = calls[0]
    assert body["textQuery"] == "fish and chips restaurant in Mayfair"
    assert body["includedType"] == "restaurant"
    circle = body["locationBias"]["circle"]
    assert circle["center"] == {"latitude": 51.5099, "longitude": -0.1495}
    assert circle["radius"] == float(london.area_radius_m)
    assert result.primary.external_id == "p1"


def test_nearby_slot_centres_on_previous_venue(settings, london, capture_places, make_place, make_venue):
    previous = make_venue("prev", name="Sketch", address="9 Conduit St, London W1S 2XG, UK", lat=51.5128, lng=-0.1418)
    calls = capture_places([
        make_place("prev", "Sketch", "9 Conduit St, London W1S 2XG, UK"),
        make_place("c1", "Kaffeine", "15 Eastcastle St, London W1T 3AY, UK", types=("cafe",)),
    ])
    slot = _slot(activity="coffee", location="nearby", venue_type="cafe", venue_preference=None, time="14:00")
    result = VenueSearch(settings=settings).search(slot, london, previous=previous)

    body = calls[0]
    circle = body["locationBias"]["circle"]
    assert circle["center"] == {"latitude": 51.5128, "longitude": -0.1418}
    assert circle["radius"] == 1500.0
    assert "9 Conduit St" in body["textQuery"]
    assert body["textQuery"].startswith("cafe in ")
    assert result.primary.external_id == "c1"
    assert result.alternatives == []


def test_unknown_location_uses_city_name(settings, london, capture_places):
    calls = capture_places([])
    VenueSearch(settings=settings).search(_slot(location="somewhere nice"), london)
    assert calls[0]["textQuery"] == "fish and chips restaurant in London"
    assert calls[0]["locationBias"]["circle"]["radius"] == float(london.city_radius_m)


def test_build_query_adds_label_only_when_missing(london):
    assert build_query(_slot(venue_type="cafe", venue_preference="hipster"), "Soho", london) == "hipster cafe in Soho"
    assert build_query(_slot(venue_type="cafe", venue_preference="tea room"), "Soho", london) == "tea room in Soho"
    slot = _slot(venue_preference="ramen restaurant", keywords=("japanese", "Ramen"))
    assert build_query(slot, None, london) == "ramen restaurant japanese"


# ==================== FILTERING + RANKING ====================


def test_out_of_city_results_are_dropped(settings, london, capture_places, make_place):
    capture_places([
        make_place("ny", "Katz's Delicatessen", "205 E Houston St, New York, NY 10002, USA"),
        make_place("ldn", "The Golden Hind", "73 Marylebone Ln, London W1U 2PN, UK"),
    ])
    result = VenueSearch(settings=settings).search(_slot(), london)
    assert result.primary.external_id == "ldn"
    assert [v.external_id for v in result.alternatives] == []


def test_low_rated_results_go_last(settings, london, capture_places, make_place):
    capture_places([
        make_place("low", "Chippy One", "1 Oxford St, London, UK", rating=3.2),
        make_place("high", "Chippy Two", "2 Oxford St, London, UK", rating=4.6),
        make_place("none", "Chippy Three", "3 Oxford St, London, UK", rating=None),
    ])
    result = VenueSearch(settings=settings).search(_slot(min_rating=4.0, is_fixed=True), london)
    assert result.primary.external_id == "high"
    assert [v.external_id for v in result.alternatives] == ["low", "none"]


def test_closed_venues_are_demoted(settings, london, capture_places, make_place):
    evening_only = {"periods": [{"open": {"day": d, "hour": 18}, "close": {"day": d, "hour": 23}} for d in range(7)]}
    capture_places([
        make_place("closed", "Dinner Spot", "1 Dean St, London W1, UK", hours=evening_only),
        make_place("open", "Lunch Spot", "2 Dean St, London W1, UK"),
    ])
    noon = datetime(2025, 5, 14, 12, 0, tzinfo=LONDON_TZ)
    result = VenueSearch(settings=settings).search(_slot(), london, scheduled_time=noon)
    assert result.primary.external_id == "open"
    assert result.alternatives[0].external_id == "closed"


def test_alternatives_are_capped(london, capture_places, make_place, settings):
    capture_places([make_place(f"p{i}", f"Place {i}", f"{i} Strand, London, UK") for i in range(8)])
    result = VenueSearch(settings=settings).search(_slot(), london)
    assert len(result.alternatives) == settings.max_alternatives


def test_no_results_gives_empty_search_result(settings, london, capture_places):
    capture_places([])
    result = VenueSearch(settings=settings).search(_slot(), london)
    assert result.primary is None
    assert result.alternatives == []


def test_rank_by_rating_without_threshold_keeps_order(make_venue):
    venues = [make_venue("a", rating=2.0), make_venue("b", rating=5.0)]
    assert rank_by_rating(venues, 0.0) == venues


# ==================== SKIP / CACHE / BREAKER ====================


def test_skip_slot_returns_placeholder_without_api_call(settings, london, monkeypatch):
    def _fail(*args, **kw):
        raise AssertionError("places search should not run for skip slots")

    monkeypatch.setattr(places, "_request", _fail)
    slot = _slot(activity="client meeting", venue_type="skip", venue_preference=None, time="15:00")
    result = VenueSearch(settings=settings).search(slot, london)
    assert result.primary.is_placeholder is True
    assert result.primary.external_id == "meeting_client_meeting_1500"
    assert result.primary.address == "Mayfair"


def test_identical_searches_hit_cache(settings, london, capture_places, make_place):
    calls = capture_places([make_place("p1", "Poppies", "London, UK")])
    search = VenueSearch(settings=settings, cache=TTLCache())
    search.search(_slot(), london)
    search.search(_slot(), london)
    assert len(calls) == 1


def test_open_breaker_raises_places_error(settings, london, capture_places):
    calls = capture_places([])
    breaker = CircuitBreaker("places", failure_threshold=1)
    breaker.record_failure()
    with pytest.raises(PlacesServiceError):
        VenueSearch(settings=settings, breaker=breaker).search(_slot(), london)
    assert calls == []
