"""Tests for travel-time heuristics and route ordering."""

from __future__ import annotations

from tools.travel_time import (
    DEFAULT_TRAVEL_MINUTES,
    MIN_TRAVEL_MINUTES,
    NEIGHBOUR_DEFAULT,
    SAME_AREA,
    UNKNOWN_PAIR,
    get_travel_estimator,
    total_minutes,
)


def test_london_uses_area_matrix(london, make_venue):
    estimator = get_travel_estimator(london)
    mayfair = make_venue("a", "A", "10 Mount St, Mayfair, London W1K", 51.5099, -0.1495)
    chelsea = make_venue("b", "B", "200 King's Road, Chelsea, London SW3", 51.4875, -0.1687)

    assert estimator.has_area_matrix
    assert estimator.area_for(mayfair) == "mayfair"
    assert estimator.minutes_between(mayfair, chelsea) == (18, "transit")
    assert estimator.minutes_between(chelsea, mayfair) == (18, "transit")


def test_matrix_defaults_for_neighbours_and_unknown_pairs(london):
    estimator = get_travel_estimator(london)
    assert estimator.estimate_between_areas("mayfair", "mayfair") == SAME_AREA
    assert estimator.estimate_between_areas("mayfair", "marylebone") == NEIGHBOUR_DEFAULT
    assert estimator.estimate_between_areas("narnia", "mayfair") == UNKNOWN_PAIR


def test_other_cities_use_distance_over_speed(nyc, make_venue):
    estimator = get_travel_estimator(nyc)
    a = make_venue("a", "A", "Broadway, New York, NY", 40.7549, -73.9840)
    b = make_venue("b", "B", "Broadway, New York, NY", 40.7550, -73.9841)
    c = make_venue("c", "C", "Wall St, New York, NY", 40.7074, -74.0113)

    assert not estimator.has_area_matrix
    assert estimator.minutes_between(a, b) == (MIN_TRAVEL_MINUTES, "walk")
    minutes, mode = estimator.minutes_between(a, c)
    assert mode == "transit"
    assert minutes > MIN_TRAVEL_MINUTES


def test_missing_coordinates_use_default(london, make_venue):
    estimator = get_travel_estimator(london)
    a = make_venue("a", lat=None, lng=None)
    b = make_venue("b")
    assert estimator.minutes_between(a, b) == (DEFAULT_TRAVEL_MINUTES, None)


def test_optimize_order_is_greedy_nearest_neighbour(london, make_venue):
    estimator = get_travel_estimator(london)
    soho = make_venue("s", "S", "Dean St, Soho, London W1D", 51.5136, -0.1371)
    shoreditch = make_venue("sh", "SH", "Brick Lane, Shoreditch, London E1", 51.5264, -0.0778)
    covent = make_venue("c", "C", "Floral St, Covent Garden, London WC2E", 51.5117, -0.1240)
    start = make_venue("m", "M", "Mount St, Mayfair, London W1K", 51.5099, -0.1495)

    order = estimator.optimize_order([shoreditch, covent, soho], start=start)
    assert order == [2, 1, 0]


def test_total_minutes_skips_missing_legs():
    assert total_minutes([10, None, 5, 0]) == 15
