"""Tests for the city gazetteer registry."""

from __future__ import annotations

import pytest

from cities import detect_city, get_city_config, list_cities, matches_city_address
from workflows.errors import UnknownCityError, ValidationError


def test_registry_lists_supported_cities():
    slugs = {city.slug for city in list_cities()}
    assert {"london", "nyc", "boston", "austin"} <= slugs


def test_get_city_config_is_case_insensitive():
    assert get_city_config(" London ").slug == "london"


def test_unknown_city_is_a_client_error():
    with pytest.raises(UnknownCityError) as exc_info:
        get_city_config("atlantis")
    assert isinstance(exc_info.value, ValidationError)
    assert exc_info.value.field == "city_slug"
    assert exc_info.value.status_code == 400


def test_every_city_has_a_valid_timezone_and_areas():
    for city in list_cities():
        assert city.tz is not None
        assert city.areas
        assert city.default_location


def test_city_filter_matches_aliases():
    london = get_city_config("london")
    assert matches_city_address("12 Berkeley Square, London W1J 6BR, UK", london)
    assert not matches_city_address("1 Main St, Manchester M1 1AA", london)
    assert not matches_city_address(None, london)


def test_short_aliases_only_match_whole_tokens():
    boston = get_city_config("boston")
    assert matches_city_address("100 Hanover St, Boston, MA 02113", boston)
    assert matches_city_address("1 Main St, Salem, MA 01970", boston)
    assert not matches_city_address("Mayfair Place, Springfield, IL", boston)


def test_detect_city_from_text():
    assert detect_city("A day in Austin, Texas").slug == "austin"
    assert detect_city("somewhere nice") is None
