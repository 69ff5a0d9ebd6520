# tools/travel_time.py
"""Travel-time heuristics between venues.

This is not a routing engine. London uses a hand-maintained area-to-area
matrix; every other city uses straight-line distance over the city's
average transport speeds.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from tools.location_resolver import LocationResolver, haversine_km
from workflows.schemas import CityConfig, Coordinates, Venue

DEFAULT_TRAVEL_MINUTES = 15
MIN_TRAVEL_MINUTES = 5
WALKABLE_KM = 1.0
NEAREST_AREA_MAX_KM = 2.5


@dataclass(frozen=True)
class TravelEstimate:
    walking_minutes: int
    transit_minutes: int
    driving_minutes: int
    recommended_mode: str

    @property
    def minutes(self) -> int:
        return {
            "walk": self.walking_minutes,
            "transit": self.transit_minutes,
            "driving": self.driving_minutes,
        }.get(self.recommended_mode, self.transit_minutes)


SAME_AREA = TravelEstimate(8, 8, 8, "walk")
NEIGHBOUR_DEFAULT = TravelEstimate(15, 8, 10, "walk")
UNKNOWN_PAIR = TravelEstimate(30, 20, 15, "transit")
DISTANT_PAIR = TravelEstimate(45, 25, 20, "transit")

LONDON_CONNECTIONS: Dict[Tuple[str, str], TravelEstimate] = {
    ("canary wharf", "mayfair"): TravelEstimate(90, 25, 20, "transit"),
    ("canary wharf", "soho"): TravelEstimate(85, 22, 18, "transit"),
    ("canary wharf", "shoreditch"): TravelEstimate(50, 15, 12, "transit"),
    ("canary wharf", "covent garden"): TravelEstimate(80, 20, 18, "transit"),
    ("mayfair", "soho"): TravelEstimate(10, 5, 8, "walk"),
    ("mayfair", "covent garden"): TravelEstimate(15, 8, 10, "walk"),
    ("mayfair", "shoreditch"): TravelEstimate(45, 18, 15, "transit"),
    ("soho", "covent garden"): TravelEstimate(8, 5, 8, "walk"),
    ("soho", "shoreditch"): TravelEstimate(35, 15, 12, "transit"),
    ("shoreditch", "covent garden"): TravelEstimate(30, 12, 10, "transit"),
    ("mayfair", "chelsea"): TravelEstimate(40, 18, 15, "transit"),
    ("soho", "chelsea"): TravelEstimate(50, 20, 18, "transit"),
    ("kensington", "chelsea"): TravelEstimate(20, 10, 10, "walk"),
    ("mayfair", "kensington"): TravelEstimate(45, 15, 15, "transit"),
}

# Areas whose names show up in London addresses.
LONDON_AREA_PATTERN = re.compile(
    r"\b(Canary Wharf|Mayfair|Soho|Shoreditch|Camden|Covent Garden|Notting Hill|Chelsea|Kensington|"
    r"Bloomsbury|Fitzrovia|Marylebone|Westminster|Islington|Hackney|Brixton|Clapham)\b",
    re.IGNORECASE,
)


class TravelEstimator:
    """Estimate minutes between consecutive venues for one city."""

    def __init__(
        self,
        city: CityConfig,
        connections: Optional[Dict[Tuple[str, str], TravelEstimate]] = None,
        area_pattern: Optional[re.Pattern] = None,
    ) -> None:
        self.city = city
        self.resolver = LocationResolver(city)
        self._area_pattern = area_pattern
        self._connections: Dict[Tuple[str, str], TravelEstimate] = {}
        for (a, b), estimate in (connections or {}).items():
            self._connections[(a, b)] = estimate
            self._connections[(b, a)] = estimate

    @property
    def has_area_matrix(self) -> bool:
        return bool(self._connections)

    # ------------------------------------------------------------------
    # Area lookups
    # ------------------------------------------------------------------

    def area_for(self, venue: Venue) -> Optional[str]:
        """Lower-cased area name for ``venue``, from its address or nearest area."""
        address = venue.address or ""
        if self._area_pattern is not None:
            match = self._area_pattern.search(address)
            if match:
                return match.group(1).lower()
        refs = self.resolver.extract_area_references(address)
        if refs:
            return refs[0].name.lower()
        if venue.coordinates is not None:
            nearest = self.resolver.find_nearest_area(venue.coordinates)
            if nearest and haversine_km(venue.coordinates, nearest.coordinates) <= NEAREST_AREA_MAX_KM:
                return nearest.name.lower()
        return None

    def estimate_between_areas(self, origin: str, destination: str) -> TravelEstimate:
        origin, destination = origin.lower(), destination.lower()
        if origin == destination:
            return SAME_AREA
        explicit = self._connections.get((origin, destination))
        if explicit is not None:
            return explicit
        origin_area = self.city.get_area(origin)
        if origin_area is not None and destination in (n.lower() for n in origin_area.neighbours):
            return NEIGHBOUR_DEFAULT
        if origin_area is not None and self.city.get_area(destination) is not None:
            return DISTANT_PAIR
        return UNKNOWN_PAIR

    # ------------------------------------------------------------------
    # Venue-to-venue estimates
    # ------------------------------------------------------------------

    def _distance_estimate(self, a: Coordinates, b: Coordinates) -> Tuple[int, str]:
        distance = haversine_km(a, b)
        speeds = self.city.transport_speeds_kmh
        if distance <= WALKABLE_KM:
            mode, speed = "walk", speeds.get("walk", 5.0)
        else:
            mode, speed = "transit", speeds.get("transit", 20.0)
        minutes = math.ceil(distance / max(speed, 0.1) * 60)
        return max(MIN_TRAVEL_MINUTES, minutes), mode

    def minutes_between(self, origin: Venue, destination: Venue) -> Tuple[int, Optional[str]]:
        """Return ``(minutes, mode)``; falls back to 15 minutes without coordinates."""
        if origin.coordinates is None or destination.coordinates is None:
            return DEFAULT_TRAVEL_MINUTES, None

        if self.has_area_matrix:
            area_a = self.area_for(origin)
            area_b = self.area_for(destination)
            if area_a and area_b and area_a != area_b:
                estimate = self.estimate_between_areas(area_a, area_b)
                return estimate.minutes, estimate.recommended_mode

        return self._distance_estimate(origin.coordinates, destination.coordinates)

    def transit_minutes_between(self, origin: Venue, destination: Venue) -> int:
        """Cost used by route optimization: matrix transit time, else the heuristic."""
        area_a = self.area_for(origin)
        area_b = self.area_for(destination)
        if self.has_area_matrix and area_a and area_b:
            return self.estimate_between_areas(area_a, area_b).transit_minutes
        return self.minutes_between(origin, destination)[0]

    def optimize_order(self, venues: List[Venue], start: Optional[Venue] = None) -> List[int]:
        """Greedy nearest-neighbour order over ``venues``; returns indexes.

        The walk starts from ``start`` when given, otherwise from ``venues[0]``.
        """
        if len(venues) <= 1:
            return list(range(len(venues)))
        remaining = list(range(len(venues)))
        order: List[int] = []
        current = start
        if current is None:
            order.append(remaining.pop(0))
            current = venues[order[0]]
        while remaining:
            best = min(remaining, key=lambda i: self.transit_minutes_between(current, venues[i]))
            remaining.remove(best)
            order.append(best)
            current = venues[best]
        return order


def get_travel_estimator(city: CityConfig) -> TravelEstimator:
    if city.slug == "london":
        return TravelEstimator(city, LONDON_CONNECTIONS, LONDON_AREA_PATTERN)
    return TravelEstimator(city)


def total_minutes(legs: Iterable[Optional[int]]) -> int:
    return sum(leg for leg in legs if leg)


__all__ = [
    "DEFAULT_TRAVEL_MINUTES",
    "LONDON_CONNECTIONS",
    "TravelEstimate",
    "TravelEstimator",
    "get_travel_estimator",
    "total_minutes",
]
