"""Pydantic schemas for cities, activity slots, venues and itineraries."""

from __future__ import annotations

from datetime import date as Date
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Literal, Optional, Tuple
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# City Gazetteer
# ============================================================================

class Coordinates(BaseModel):
    """Geographic coordinate."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

    def as_tuple(self) -> Tuple[float, float]:
        return self.lat, self.lng


class NamedArea(BaseModel):
    """A neighbourhood, district or landmark inside a city."""

    model_config = ConfigDict(frozen=True)

    name: str
    coordinates: Coordinates
    aliases: Tuple[str, ...] = ()
    neighbours: Tuple[str, ...] = ()
    area_type: Literal["neighborhood", "landmark", "district", "borough", "area"] = "neighborhood"

    @classmethod
    def build(cls, name: str, lat: float, lng: float, *, aliases=(), neighbours=(), area_type: str = "neighborhood") -> "NamedArea":
        return cls(
            name=name,
            coordinates=Coordinates(lat=lat, lng=lng),
            aliases=tuple(aliases),
            neighbours=tuple(neighbours),
            area_type=area_type,
        )

    def names(self) -> Tuple[str, ...]:
        return (self.name,) + self.aliases


class CityConfig(BaseModel):
    """Static per-city data. Loaded once and never modified."""

    model_config = ConfigDict(frozen=True)

    slug: str
    name: str
    timezone: str
    center: Coordinates
    areas: Tuple[NamedArea, ...] = ()
    category_vocabulary: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)
    transport_speeds_kmh: Dict[str, float] = Field(default_factory=dict)
    filter_aliases: Tuple[str, ...] = ()
    landmarks: Tuple[str, ...] = ()
    default_location: str = "Downtown"
    area_radius_m: int = 5000
    city_radius_m: int = 25000

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        ZoneInfo(value)
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def get_area(self, name: str) -> Optional[NamedArea]:
        key = (name or "").strip().lower()
        for area in self.areas:
            if area.name.lower() == key:
                return area
        return None


class ResolvedLocation(BaseModel):
    """A location reference pinned to coordinates, used as a search bias."""

    model_config = ConfigDict(frozen=True)

    name: str
    coordinates: Coordinates
    radius_m: int
    address: Optional[str] = None
    is_fallback: bool = False


# ============================================================================
# Activity Slots
# ============================================================================

class SlotSource(IntEnum):
    """Where a slot came from. Higher values win when two slots collide."""

    FLEXIBLE = 1
    FIXED_TIME = 2
    TIME_BLOCK = 3
    FIXED_APPOINTMENT = 4


SKIP_CATEGORY = "skip"
NEARBY_PHRASES = frozenset({
    "nearby",
    "near by",
    "close by",
    "near there",
    "around there",
    "same area",
    "same place",
    "near the previous location",
    "previous location",
})


class ActivitySlot(BaseModel):
    """One intended stop before a concrete venue has been chosen."""

    model_config = ConfigDict(frozen=True)

    activity: str
    location: str
    time: Optional[str] = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    venue_type: str
    venue_preference: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    min_rating: float = 0.0
    is_fixed: bool = False
    source: SlotSource = SlotSource.FLEXIBLE
    time_ambiguous: bool = False
    day: int = Field(default=1, ge=1)
    end_time: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    resolved_address: Optional[str] = None
    mention_index: Optional[int] = None

    @property
    def dedup_key(self) -> Tuple[str, str, str]:
        return (self.location.strip().lower(), self.venue_type, self.time or "")

    @property
    def is_scheduled(self) -> bool:
        return self.time is not None

    @property
    def is_skip(self) -> bool:
        return self.venue_type == SKIP_CATEGORY

    @property
    def is_nearby(self) -> bool:
        return self.location.strip().lower() in NEARBY_PHRASES

    def with_nearby_address(self, address: str) -> "ActivitySlot":
        return self.model_copy(update={"location": address, "resolved_address": address})


# ============================================================================
# Venues
# ============================================================================

class OpeningPeriod(BaseModel):
    """One open interval. ``day`` counts from 0=Sunday; times are ``HHMM``."""

    model_config = ConfigDict(frozen=True)

    day: int = Field(ge=0, le=6)
    open: str = Field(pattern=r"^\d{4}$")
    close: Optional[str] = Field(default=None, pattern=r"^\d{4}$")


class OpeningHours(BaseModel):
    model_config = ConfigDict(frozen=True)

    periods: Tuple[OpeningPeriod, ...] = ()
    weekday_text: Tuple[str, ...] = ()
    open_now: Optional[bool] = None


class Venue(BaseModel):
    """A concrete place resolved from places search."""

    model_config = ConfigDict(frozen=True)

    external_id: str
    name: str
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    categories: Tuple[str, ...] = ()
    rating: Optional[float] = None
    user_rating_count: Optional[int] = None
    price_level: Optional[str] = None
    opening_hours: Optional[OpeningHours] = None
    is_outdoor: bool = False
    is_placeholder: bool = False
    source: str = "google"
    raw: Optional[Dict[str, Any]] = Field(default=None, exclude=True, repr=False)


class SearchResult(BaseModel):
    primary: Optional[Venue] = None
    alternatives: List[Venue] = Field(default_factory=list)


class HoursCheck(BaseModel):
    open: bool
    confidence: Literal["high", "medium", "low", "unknown"]
    reason: Optional[str] = None


class WeatherReport(BaseModel):
    time: datetime
    temperature_c: Optional[float] = None
    condition: str = "Unknown"
    precipitation_mm: Optional[float] = None
    wind_speed_ms: Optional[float] = None
    suitable: bool = True
    reason: Optional[str] = None


class VenueChoice(BaseModel):
    """Outcome of the hours and weather checks for one slot."""

    venue: Venue
    alternatives: List[Venue] = Field(default_factory=list)
    hours: Optional[HoursCheck] = None
    weather: Optional[WeatherReport] = None
    weather_suitable: bool = True
    substitution_reason: Optional[str] = None
    caveats: List[str] = Field(default_factory=list)


# ============================================================================
# Itinerary Output
# ============================================================================

class ItineraryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    venue: Venue
    scheduled_time: datetime
    duration_minutes: int = Field(ge=0)
    travel_time_to_next_minutes: Optional[int] = None
    travel_mode: Optional[str] = None
    activity: str = ""
    venue_type: str = ""
    is_fixed: bool = False
    day: int = 1
    time_ambiguous: bool = False
    hours: Optional[HoursCheck] = None
    weather: Optional[WeatherReport] = None
    substitution_reason: Optional[str] = None
    alternatives: Tuple[Venue, ...] = ()
    caveats: Tuple[str, ...] = ()

    @field_validator("scheduled_time")
    @classmethod
    def _must_be_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("scheduled_time must be timezone-aware")
        return value


class Itinerary(BaseModel):
    """Final plan. Created once per request and never mutated."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    title: str
    description: str
    query: str
    date: Date
    city_slug: str
    entries: Tuple[ItineraryEntry, ...] = ()
    total_travel_time: int = 0
    trip_duration: int = 1
    created_at: datetime
    meta: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return self.model_dump(mode="json", exclude_none=True)


__all__ = [
    "ActivitySlot",
    "CityConfig",
    "Coordinates",
    "HoursCheck",
    "Itinerary",
    "ItineraryEntry",
    "NEARBY_PHRASES",
    "NamedArea",
    "OpeningHours",
    "OpeningPeriod",
    "ResolvedLocation",
    "SKIP_CATEGORY",
    "SearchResult",
    "SlotSource",
    "Venue",
    "VenueChoice",
    "WeatherReport",
]
