# tools/location_resolver.py
"""Match free-text location fragments against a city gazetteer.

No geocoding happens here. A fragment either names one of the city's areas
(or an alias), refers back to the previous stop ("nearby"), or falls back to
the city centre with a wide search radius.
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple, Union

from cities import get_city_config
from workflows.errors import UnknownCityError
from workflows.schemas import NEARBY_PHRASES, CityConfig, Coordinates, NamedArea, ResolvedLocation

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
NEARBY_RADIUS_M = 1500


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_nearby_reference(text: Optional[str]) -> bool:
    return (text or "").strip().lower() in NEARBY_PHRASES


class LocationResolver:
    """Resolve location references for a single city."""

    def __init__(self, city: CityConfig) -> None:
        self.city = city

    def extract_area_references(self, text: str) -> List[NamedArea]:
        """Return every area whose name or alias appears in ``text``, in order of first mention."""
        lowered = (text or "").lower()
        found: List[Tuple[int, int, NamedArea]] = []
        for rank, area in enumerate(self.city.areas):
            positions = [p for p in (lowered.find(name.lower()) for name in area.names()) if p >= 0]
            if positions:
                found.append((min(positions), rank, area))
        found.sort(key=lambda item: item[:2])
        return [area for _, _, area in found]

    def resolve_colloquial_term(self, term: str) -> Optional[NamedArea]:
        """Exact (case-insensitive) match against area names and aliases."""
        key = (term or "").strip().lower()
        if not key:
            return None
        for area in self.city.areas:
            if key in (name.lower() for name in area.names()):
                return area
        logger.debug(f"Colloquial term '{term}' not resolved in {self.city.name}")
        return None

    def find_nearest_area(self, coordinates: Coordinates) -> Optional[NamedArea]:
        if not self.city.areas:
            return None
        return min(self.city.areas, key=lambda area: haversine_km(coordinates, area.coordinates))

    def city_center(self) -> ResolvedLocation:
        return ResolvedLocation(
            name=self.city.default_location,
            coordinates=self.city.center,
            radius_m=self.city.city_radius_m,
            is_fallback=True,
        )

    def resolve(self, text: Optional[str], previous: Optional[ResolvedLocation] = None) -> ResolvedLocation:
        """Resolve ``text`` to a search bias. Never returns None.

        ``previous`` is used verbatim when ``text`` is a "nearby" phrase.
        """
        if is_nearby_reference(text):
            if previous is not None:
                return previous
            logger.info("'nearby' with no previous stop; using city centre")
            return self.city_center()

        area = self.resolve_colloquial_term(text or "")
        if area is None:
            references = self.extract_area_references(text or "")
            area = references[0] if references else None

        if area is None:
            return self.city_center()

        return ResolvedLocation(
            name=area.name,
            coordinates=area.coordinates,
            radius_m=self.city.area_radius_m,
        )


def resolve_location_reference(
    text: Optional[str],
    city: Union[CityConfig, str],
    previous: Optional[ResolvedLocation] = None,
) -> Optional[ResolvedLocation]:
    """Resolve ``text`` against ``city``; None only when the city is unknown."""
    if isinstance(city, str):
        try:
            city = get_city_config(city)
        except UnknownCityError:
            return None
    return LocationResolver(city).resolve(text, previous=previous)


__all__ = [
    "LocationResolver",
    "haversine_km",
    "is_nearby_reference",
    "resolve_location_reference",
]
