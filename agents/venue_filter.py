# agents/venue_filter.py
"""Opening-hours and weather checks applied to a searched venue.

Both checks are advisory. A closed or weather-unsuitable venue is swapped for
an alternative when one passes, otherwise it is kept with a caveat. Weather
provider failures never fail the plan.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from config import Settings, get_settings
from tools.opening_hours import is_open_at, suggest_alternative_times
from tools.weather import get_weather_at
from workflows.cache import CacheKey, TTLCache
from workflows.circuit_breaker import CircuitBreaker
from workflows.errors import CircuitOpenError, WeatherServiceError
from workflows.schemas import CityConfig, HoursCheck, SearchResult, Venue, VenueChoice, WeatherReport

logger = logging.getLogger(__name__)

WEATHER_SUBSTITUTION = "weather"
HOURS_SUBSTITUTION = "closed"


class VenueFilter:
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

    # ------------------------------------------------------------------
    # Opening hours
    # ------------------------------------------------------------------

    def check_hours(self, venue: Venue, timestamp: datetime, city: CityConfig) -> HoursCheck:
        if venue.is_placeholder:
            return HoursCheck(open=True, confidence="unknown")
        return is_open_at(venue, timestamp, city.tz)

    def choose_open_venue(
        self,
        primary: Venue,
        alternatives: Sequence[Venue],
        timestamp: datetime,
        city: CityConfig,
    ) -> VenueChoice:
        check = self.check_hours(primary, timestamp, city)
        if check.open:
            return VenueChoice(venue=primary, alternatives=list(alternatives), hours=check)

        for index, candidate in enumerate(alternatives):
            candidate_check = self.check_hours(candidate, timestamp, city)
            if candidate_check.open:
                logger.info(f"{primary.name} is closed at {timestamp.isoformat()}; using {candidate.name}")
                remaining = [v for i, v in enumerate(alternatives) if i != index] + [primary]
                return VenueChoice(
                    venue=candidate,
                    alternatives=remaining,
                    hours=candidate_check,
                    substitution_reason=HOURS_SUBSTITUTION,
                    caveats=[f"{primary.name} is closed at the scheduled time"],
                )

        caveat = f"{primary.name} may be closed at the scheduled time"
        suggestions = suggest_alternative_times(primary.opening_hours, timestamp, city.tz)
        if suggestions:
            caveat += f" (open at {', '.join(suggestions)})"
        return VenueChoice(venue=primary, alternatives=list(alternatives), hours=check, caveats=[caveat])

    # ------------------------------------------------------------------
    # Weather
    # ------------------------------------------------------------------

    async def weather_for(self, venue: Venue, timestamp: datetime) -> Optional[WeatherReport]:
        """Forecast near ``venue`` at ``timestamp``; None when it cannot be determined."""
        if venue.coordinates is None:
            return None
        lat, lng = venue.coordinates.as_tuple()
        key = CacheKey.build(
            "weather",
            lat=round(lat, 2),
            lng=round(lng, 2),
            hour=timestamp.replace(minute=0, second=0, microsecond=0).isoformat(),
        )

        async def fetch() -> Optional[WeatherReport]:
            return await asyncio.to_thread(get_weather_at, lat, lng, timestamp, timeout=self.settings.http_timeout_s)

        async def load() -> Optional[WeatherReport]:
            if self._breaker is None:
                return await fetch()
            return await self._breaker.acall(fetch)

        try:
            if self._cache is None:
                return await load()
            return await self._cache.aget_or_set(key, load, ttl=self.settings.weather_cache_ttl_seconds)
        except (WeatherServiceError, CircuitOpenError, ValueError) as exc:
            logger.warning(f"Weather lookup failed for {venue.name}: {exc}")
            return None

    async def choose_weather_aware_venue(
        self,
        primary: Venue,
        alternatives: Sequence[Venue],
        timestamp: datetime,
    ) -> VenueChoice:
        """Swap an outdoor ``primary`` for the first alternative when the forecast is unsuitable."""
        if not primary.is_outdoor:
            return VenueChoice(venue=primary, alternatives=list(alternatives))

        report = await self.weather_for(primary, timestamp)
        if report is None:
            return VenueChoice(
                venue=primary,
                alternatives=list(alternatives),
                caveats=["Weather could not be checked for this outdoor venue"],
            )
        if report.suitable:
            return VenueChoice(venue=primary, alternatives=list(alternatives), weather=report)

        if alternatives:
            substitute = alternatives[0]
            logger.info(f"Weather unsuitable at {primary.name} ({report.reason}); substituting {substitute.name}")
            return VenueChoice(
                venue=substitute,
                alternatives=[primary] + list(alternatives[1:]),
                weather=report,
                weather_suitable=False,
                substitution_reason=WEATHER_SUBSTITUTION,
                caveats=[f"Replaced {primary.name}: {report.reason}"],
            )

        return VenueChoice(
            venue=primary,
            alternatives=[],
            weather=report,
            weather_suitable=False,
            caveats=[f"Outdoor venue with unsuitable weather: {report.reason}"],
        )

    # ------------------------------------------------------------------
    # Combined
    # ------------------------------------------------------------------

    def apply(self, result: SearchResult, timestamp: datetime, city: CityConfig) -> Optional[VenueChoice]:
        return asyncio.run(self.apply_async(result, timestamp, city))

    async def apply_async(self, result: SearchResult, timestamp: datetime, city: CityConfig) -> Optional[VenueChoice]:
        """Hours check first, then weather on whichever venue survived it."""
        if result.primary is None:
            return None

        hours_choice = self.choose_open_venue(result.primary, result.alternatives, timestamp, city)
        if hours_choice.venue.is_placeholder:
            return hours_choice

        weather_choice = await self.choose_weather_aware_venue(hours_choice.venue, hours_choice.alternatives, timestamp)
        caveats: List[str] = list(hours_choice.caveats) + list(weather_choice.caveats)
        hours = hours_choice.hours
        if weather_choice.venue.external_id != hours_choice.venue.external_id:
            hours = self.check_hours(weather_choice.venue, timestamp, city)

        return VenueChoice(
            venue=weather_choice.venue,
            alternatives=weather_choice.alternatives,
            hours=hours,
            weather=weather_choice.weather,
            weather_suitable=weather_choice.weather_suitable,
            substitution_reason=weather_choice.substitution_reason or hours_choice.substitution_reason,
            caveats=caveats,
        )


__all__ = ["HOURS_SUBSTITUTION", "VenueFilter", "WEATHER_SUBSTITUTION"]
