"""Day-planning orchestration.

This module exposes :class:`PlanningService` and the module-level
:func:`create_plan` helper. One request runs through five steps:

1. Validation: the query, date, trip length and city are checked, and the
   places key must be configured.
2. Extraction: ``ActivityExtractor`` turns the query into activity slots,
   degrading to keyword or raw-query slots when the LLM is unusable.
3. Scheduling: ``ItineraryAssembler.schedule`` gives every slot a time.
4. Venues: each slot is searched in order (so "nearby" can refer to the
   previous stop), then checked for opening hours and weather. Slots with no
   venue are dropped, not retried.
5. Assembly: the assembler orders the stops, adds travel times and the
   itinerary is stored.

Collaborators (settings, storage, LLM, caches and breakers) are injected so
tests can replace any of them.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date as Date
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from agents.activity_extractor import ActivityExtractor
from agents.itinerary_assembler import ItineraryAssembler
from agents.venue_filter import VenueFilter
from agents.venue_search import VenueSearch
from cities import get_city_config
from config import Settings, get_settings
from tools.query_complexity import analyze_query_complexity
from tools.time_parser import parse_time
from workflows.cache import TTLCache
from workflows.circuit_breaker import CircuitBreakerRegistry
from workflows.errors import ConfigurationError, ValidationError
from workflows.schemas import ActivitySlot, Itinerary, Venue, VenueChoice
from workflows.storage import PlanStorage, get_plan_storage, upsert_venue

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 2000
MAX_TRIP_DAYS = 14


def _coerce_date(value: Union[Date, str, None]) -> Optional[Date]:
    if value is None or isinstance(value, Date):
        return value
    try:
        return Date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value!r}", field="date") from exc


class PlanningService:
    """Build itineraries from free-text requests."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        storage: Optional[PlanStorage] = None,
        llm: Optional[Any] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
        extractor: Optional[ActivityExtractor] = None,
        venue_search: Optional[VenueSearch] = None,
        venue_filter: Optional[VenueFilter] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.storage = storage if storage is not None else get_plan_storage(self.settings)
        self.breakers = breakers or CircuitBreakerRegistry(self.settings)

        size = self.settings.cache_max_size
        self.extraction_cache: TTLCache = TTLCache(
            max_size=size, ttl_seconds=self.settings.extraction_cache_ttl_seconds, name="extraction"
        )
        self.places_cache: TTLCache = TTLCache(
            max_size=size, ttl_seconds=self.settings.places_cache_ttl_seconds, name="places"
        )
        self.weather_cache: TTLCache = TTLCache(
            max_size=size, ttl_seconds=self.settings.weather_cache_ttl_seconds, name="weather"
        )

        self.extractor = extractor or ActivityExtractor(
            settings=self.settings,
            llm=llm,
            cache=self.extraction_cache,
            breaker=self.breakers.nlp,
        )
        self.venue_search = venue_search or VenueSearch(
            settings=self.settings,
            cache=self.places_cache,
            breaker=self.breakers.places,
        )
        self.venue_filter = venue_filter or VenueFilter(
            settings=self.settings,
            cache=self.weather_cache,
            breaker=self.breakers.weather,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_plan(
        self,
        query: str,
        date: Union[Date, str, None] = None,
        start_time: Optional[str] = None,
        city_slug: Optional[str] = None,
        trip_duration: int = 1,
    ) -> Itinerary:
        return asyncio.run(self.create_plan_async(query, date, start_time, city_slug, trip_duration))

    async def create_plan_async(
        self,
        query: str,
        date: Union[Date, str, None] = None,
        start_time: Optional[str] = None,
        city_slug: Optional[str] = None,
        trip_duration: int = 1,
    ) -> Itinerary:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Query must not be empty", field="query")
        if len(query) > MAX_QUERY_LENGTH:
            raise ValidationError(f"Query is longer than {MAX_QUERY_LENGTH} characters", field="query")
        if not isinstance(trip_duration, int) or not 1 <= trip_duration <= MAX_TRIP_DAYS:
            raise ValidationError(f"trip_duration must be between 1 and {MAX_TRIP_DAYS}", field="trip_duration")
        plan_date = _coerce_date(date)

        city = get_city_config(city_slug or self.settings.default_city)
        if not self.settings.google_maps_api_key:
            raise ConfigurationError("GOOGLE_MAPS_API_KEY is not configured")

        if plan_date is None:
            plan_date = datetime.now(city.tz).date()
        if start_time:
            start_time = parse_time(start_time).hhmm

        complexity = analyze_query_complexity(query)
        logger.info(f"Planning {complexity.level} request for {city.slug} on {plan_date.isoformat()}")

        extraction = await self.extractor.extract_async(query, city, plan_date, start_time)
        assembler = ItineraryAssembler(city)
        slots = assembler.schedule(extraction.slots, start_time, trip_duration)

        stops: List[Tuple[ActivitySlot, VenueChoice]] = []
        dropped: List[str] = []
        previous: Optional[Venue] = None
        previous_day = 0
        for slot in slots:
            if slot.day != previous_day:
                previous, previous_day = None, slot.day
            slot = self._resolve_nearby(slot, previous)
            timestamp = assembler.timestamp_for(slot, plan_date)

            result = await self.venue_search.search_async(slot, city, timestamp, previous)
            choice = await self.venue_filter.apply_async(result, timestamp, city)
            if choice is None:
                logger.info(f"Dropping '{slot.activity}': no venue found")
                dropped.append(slot.activity)
                continue

            choice = self._persist_venue(choice)
            stops.append((slot, choice))
            if not choice.venue.is_placeholder:
                previous = choice.venue

        meta: Dict[str, Any] = {
            "complexity": complexity.to_dict(),
            "extraction": {
                "used_fallback": extraction.used_fallback,
                "fallback_kind": extraction.fallback_kind,
                "llm_error": extraction.llm_error,
                "slot_count": len(slots),
            },
            "dropped_activities": dropped,
            "start_time": start_time,
        }
        if extraction.special_requests:
            meta["special_requests"] = list(extraction.special_requests)

        itinerary = assembler.assemble(
            stops,
            query=query,
            date=plan_date,
            trip_duration=trip_duration,
            meta=meta,
        )
        stored = self.storage.save_itinerary(itinerary)
        logger.info(f"Stored itinerary {stored.id} with {len(stored.entries)} entries")
        return stored

    def get_itinerary(self, itinerary_id: int) -> Itinerary:
        return self.storage.get_itinerary(itinerary_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_nearby(slot: ActivitySlot, previous: Optional[Venue]) -> ActivitySlot:
        """Replace a "nearby" location with the previous stop's address."""
        if not slot.is_nearby or previous is None:
            return slot
        return slot.with_nearby_address(previous.address or previous.name)

    def _persist_venue(self, choice: VenueChoice) -> VenueChoice:
        if choice.venue.is_placeholder:
            return choice
        stored = upsert_venue(self.storage, choice.venue)
        if stored is choice.venue:
            return choice
        return choice.model_copy(update={"venue": stored})


_default_service: Optional[PlanningService] = None


def get_planning_service() -> PlanningService:
    """Get or create the process-wide service built from the current settings."""
    global _default_service
    if _default_service is None:
        _default_service = PlanningService()
    return _default_service


def create_plan(
    query: str,
    date: Union[Date, str, None] = None,
    start_time: Optional[str] = None,
    city_slug: Optional[str] = None,
    trip_duration: int = 1,
) -> Itinerary:
    """Plan a day (or trip) for ``query`` in ``city_slug``."""
    return get_planning_service().create_plan(query, date, start_time, city_slug, trip_duration)


__all__ = ["PlanningService", "create_plan", "get_planning_service"]
