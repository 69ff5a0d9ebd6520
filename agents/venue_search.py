# agents/venue_search.py
"""VenueSearch: resolve an activity slot to a concrete place.

The text query is built from the slot's preference, keywords and category and
biased towards the slot's area (tight radius), the previous stop for "nearby"
slots, or the city centre (wide radius). Results whose address does not
mention the city are dropped before the primary is chosen.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from cities import matches_city_address
from config import Settings, get_settings
from tools.location_resolver import NEARBY_RADIUS_M, LocationResolver
from tools.opening_hours import is_open_at
from tools.places import search_places, to_venue
from workflows.cache import CacheKey, TTLCache
from workflows.circuit_breaker import CircuitBreaker
from workflows.errors import CircuitOpenError, PlacesServiceError
from workflows.schemas import (
    ActivitySlot,
    CityConfig,
    ResolvedLocation,
    SearchResult,
    Venue,
)

logger = logging.getLogger(__name__)

# Human wording used in the text query for each slot category.
CATEGORY_LABELS: Dict[str, str] = {
    "restaurant": "restaurant",
    "cafe": "cafe",
    "bar": "bar",
    "museum": "museum",
    "park": "park",
    "shopping_mall": "shopping",
    "tourist_attraction": "attraction",
}

# Slot category -> key in CityConfig.category_vocabulary.
VOCABULARY_KEYS: Dict[str, str] = {
    "restaurant": "restaurant",
    "cafe": "coffee",
    "bar": "nightlife",
    "shopping_mall": "shopping",
    "museum": "entertainment",
}

PLACEHOLDER_PREFIX = "meeting_"


def build_query(slot: ActivitySlot, location_name: Optional[str], city: CityConfig) -> str:
    """Compose the free-text query sent to places search."""
    label = CATEGORY_LABELS.get(slot.venue_type, slot.venue_type.replace("_", " "))
    preference = (slot.venue_preference or "").strip()

    parts: List[str] = []
    if preference:
        parts.append(preference)
    lowered = preference.lower()
    for keyword in slot.keywords:
        if keyword.lower() not in lowered:
            parts.append(keyword)
            lowered = f"{lowered} {keyword.lower()}"

    vocabulary = city.category_vocabulary.get(VOCABULARY_KEYS.get(slot.venue_type, ""), ())
    if not any(term.lower() in lowered for term in (label,) + tuple(vocabulary)):
        parts.append(label)

    query = " ".join(parts)
    if location_name:
        query = f"{query} in {location_name}"
    return query


def placeholder_venue(slot: ActivitySlot) -> Venue:
    """Stand-in for a slot that needs no search (meetings, appointments)."""
    slug = "_".join(slot.activity.lower().split())[:40] or "appointment"
    return Venue(
        external_id=f"{PLACEHOLDER_PREFIX}{slug}_{(slot.time or '').replace(':', '')}",
        name=slot.activity,
        address=slot.resolved_address or slot.location,
        categories=("appointment",),
        is_placeholder=True,
        source="placeholder",
    )


def rank_by_rating(venues: List[Venue], min_rating: float) -> List[Venue]:
    """Move venues rated below ``min_rating`` behind the rest, keeping relative order."""
    if min_rating <= 0:
        return list(venues)
    meets = [v for v in venues if v.rating is not None and v.rating >= min_rating]
    rest = [v for v in venues if not (v.rating is not None and v.rating >= min_rating)]
    return meets + rest


class VenueSearch:
    """Places search with location bias, city filtering, caching and a breaker."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        cache: Optional[TTLCache] = None,
        breaker: Optional[CircuitBreaker] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._cache = cache
        self._breaker = breaker

    def bias_for(
        self,
        slot: ActivitySlot,
        city: CityConfig,
        previous: Optional[Venue] = None,
    ) -> ResolvedLocation:
        """Location bias for ``slot``; "nearby" slots centre on ``previous``."""
        if slot.is_nearby or slot.resolved_address:
            if previous is not None and previous.coordinates is not None:
                return ResolvedLocation(
                    name=previous.address or previous.name,
                    coordinates=previous.coordinates,
                    radius_m=NEARBY_RADIUS_M,
                    address=previous.address,
                )
        return LocationResolver(city).resolve(slot.location)

    def search(
        self,
        slot: ActivitySlot,
        city: CityConfig,
        scheduled_time: Optional[datetime] = None,
        previous: Optional[Venue] = None,
    ) -> SearchResult:
        return asyncio.run(self.search_async(slot, city, scheduled_time, previous))

    async def search_async(
        self,
        slot: ActivitySlot,
        city: CityConfig,
        scheduled_time: Optional[datetime] = None,
        previous: Optional[Venue] = None,
    ) -> SearchResult:
        if slot.is_skip:
            return SearchResult(primary=placeholder_venue(slot))

        bias = self.bias_for(slot, city, previous)
        location_name = None if bias.is_fallback else bias.name
        query = build_query(slot, location_name or city.name, city)

        places = await self._fetch(query, bias, slot.venue_type)

        venues: List[Venue] = []
        seen = set()
        for place in places:
            venue = to_venue(place)
            if venue is None or venue.external_id in seen:
                continue
            if not matches_city_address(venue.address, city):
                logger.debug(f"Dropping out-of-city result {venue.name!r} ({venue.address})")
                continue
            seen.add(venue.external_id)
            venues.append(venue)

        if previous is not None:
            venues = [v for v in venues if v.external_id != previous.external_id] or venues

        venues = rank_by_rating(venues, slot.min_rating)
        if scheduled_time is not None:
            # Venues known to be closed at the scheduled time go last.
            checks = {v.external_id: is_open_at(v, scheduled_time, city.tz) for v in venues}
            venues = [v for v in venues if checks[v.external_id].open] + [
                v for v in venues if not checks[v.external_id].open
            ]
        if not venues:
            logger.info(f"No venues for '{query}' after city filtering")
            return SearchResult()

        alternatives = venues[1 : 1 + self.settings.max_alternatives]
        return SearchResult(primary=venues[0], alternatives=alternatives)

    async def _fetch(self, query: str, bias: ResolvedLocation, venue_type: str) -> List[Dict[str, Any]]:
        key = CacheKey.build(
            "places",
            query=query.lower(),
            lat=round(bias.coordinates.lat, 4),
            lng=round(bias.coordinates.lng, 4),
            radius=bias.radius_m,
            type=venue_type,
        )

        async def fetch() -> List[Dict[str, Any]]:
            return await asyncio.to_thread(
                search_places,
                query,
                api_key=self.settings.google_maps_api_key,
                lat=bias.coordinates.lat,
                lng=bias.coordinates.lng,
                radius_m=bias.radius_m,
                included_type=venue_type,
                limit=self.settings.places_page_size,
                timeout=self.settings.http_timeout_s,
            )

        async def load() -> List[Dict[str, Any]]:
            if self._breaker is None:
                return await fetch()
            try:
                return await self._breaker.acall(fetch)
            except CircuitOpenError as exc:
                raise PlacesServiceError(str(exc)) from exc

        if self._cache is None:
            return await load()
        return await self._cache.aget_or_set(key, load, ttl=self.settings.places_cache_ttl_seconds)


__all__ = ["CATEGORY_LABELS", "VenueSearch", "build_query", "placeholder_venue", "rank_by_rating"]
