"""Tests for location resolution against the gazetteer."""

from __future__ import annotations

from tools.location_resolver import (
    NEARBY_RADIUS_M,
    LocationResolver,
    haversine_km,
    is_nearby_reference,
    resolve_location_reference,
)
from workflows.schemas import Coordinates, ResolvedLocation


def test_resolves_named_area_with_tight_radius(london):
    resolved = LocationResolver(london).resolve("Mayfair")
    assert resolved.name == "Mayfair"
    assert resolved.coordinates == london.get_area("Mayfair").coordinates
    assert resolved.radius_m == london.area_radius_m
    assert resolved.is_fallback is False


def test_resolution_is_idempotent(london):
    resolver = LocationResolver(london)
    first = resolver.resolve("Chelsea")
    second = resolver.resolve("Chelsea")
    assert first.coordinates == second.coordinates
    assert resolve_location_reference("Chelsea", "london").coordinates == first.coordinates


def test_alias_and_substring_matches(london):
    resolver = LocationResolver(london)
    assert resolver.resolve("south ken").name == "Kensington"
    assert resolver.resolve("a pub near Covent Garden station").name == "Covent Garden"
    assert resolver.resolve_colloquial_term("Docklands").name == "Canary Wharf"


def test_unknown_text_falls_back_to_city_centre(london):
    resolved = LocationResolver(london).resolve("somewhere nice")
    assert resolved.is_fallback is True
    assert resolved.coordinates == london.center
    assert resolved.radius_m == london.city_radius_m


def test_nearby_uses_previous_location(london):
    previous = ResolvedLocation(
        name="12 Berkeley Square",
        coordinates=Coordinates(lat=51.5098, lng=-0.1459),
        radius_m=NEARBY_RADIUS_M,
    )
    resolver = LocationResolver(london)
    assert is_nearby_reference(" Nearby ")
    assert resolver.resolve("nearby", previous=previous) == previous
    assert resolver.resolve("nearby").is_fallback is True


def test_unknown_city_returns_none():
    assert resolve_location_reference("Mayfair", "atlantis") is None


def test_extract_area_references_follow_mention_order(london):
    refs = LocationResolver(london).extract_area_references("Lunch in Chelsea then drinks in Mayfair")
    assert [area.name for area in refs] == ["Chelsea", "Mayfair"]
    assert LocationResolver(london).resolve("between Soho and Mayfair").name == "Soho"


def test_find_nearest_area(london):
    near_soho = Coordinates(lat=51.5138, lng=-0.1365)
    assert LocationResolver(london).find_nearest_area(near_soho).name == "Soho"
    assert haversine_km(near_soho, near_soho) == 0
