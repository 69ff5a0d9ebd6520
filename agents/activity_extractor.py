# agents/activity_extractor.py
"""ActivityExtractor: turns a free-text request into ordered activity slots.

Stages:

1. LLM extraction: Gemini returns JSON with four categories (time blocks,
   fixed appointments, fixed-time entries, flexible entries). The JSON is
   treated as untrusted and validated through pydantic before use.
2. Reshaping: every entry becomes an ``ActivitySlot`` with a normalized
   24h time and a venue category inferred from an ordered keyword table.
3. Deduplication on (location, category, time); on collision the slot whose
   ``SlotSource`` ranks higher wins, ties keep the first one seen. Each slot
   also records where its activity is mentioned in the query, so untimed
   entries can later be placed between the timed entries around them.
4. Fallback: when the LLM fails twice or returns nothing usable, a keyword
   detector builds slots, and failing that a single slot is made from the raw
   query so the pipeline never ends up empty.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date as Date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from config import Settings, get_settings
from prompts import PromptTemplate, load_prompt_template
from tools.location_resolver import LocationResolver
from tools.time_parser import DEFAULT_TIME, hhmm_to_minutes, parse_time
from workflows.cache import CacheKey, TTLCache
from workflows.circuit_breaker import CircuitBreaker
from workflows.errors import CircuitOpenError, ExtractionServiceError
from workflows.schemas import SKIP_CATEGORY, ActivitySlot, CityConfig, SlotSource

logger = logging.getLogger(__name__)

GENERAL_CATEGORY = "tourist_attraction"
FIXED_MIN_RATING = 4.0
WORKSPACE_PREFERENCE = "quiet workspace"

# Ordered (pattern, category) table; the first matching row wins.
CATEGORY_RULES: Tuple[Tuple[re.Pattern, str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), category)
    for pattern, category in (
        (r"\b(museum|gallery|galleries|exhibition)", "museum"),
        (r"\b(lunch|dinner|breakfast|brunch|restaurant|supper|eat|food|meal)", "restaurant"),
        (r"\b(coffee|cafe|café|work|tea room)", "cafe"),
        (r"\b(bar|drinks?|cocktails?|lounge|pub|pints?|wine)\b", "bar"),
        (r"\b(park|garden|walk|stroll|picnic)", "park"),
        (r"\b(shop|store|boutique|market)", "shopping_mall"),
        (r"\b(meeting|appointment|call with|interview)", SKIP_CATEGORY),
    )
)

# venueType values the LLM tends to produce, mapped to slot categories.
VENUE_TYPE_ALIASES: Dict[str, str] = {
    "restaurant": "restaurant",
    "food": "restaurant",
    "cafe": "cafe",
    "coffee": "cafe",
    "coffee shop": "cafe",
    "bar": "bar",
    "pub": "bar",
    "nightlife": "bar",
    "museum": "museum",
    "gallery": "museum",
    "art_gallery": "museum",
    "park": "park",
    "shopping": "shopping_mall",
    "shopping_mall": "shopping_mall",
    "tourist_attraction": GENERAL_CATEGORY,
    "attraction": GENERAL_CATEGORY,
    "landmark": GENERAL_CATEGORY,
    "entertainment": GENERAL_CATEGORY,
    "skip": SKIP_CATEGORY,
}

# (pattern, activity, category, duration minutes) rows for the keyword fallback.
KEYWORD_FALLBACK_RULES: Tuple[Tuple[re.Pattern, str, str, int], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), activity, category, minutes)
    for pattern, activity, category, minutes in (
        (r"\b(coffee|cafe)", "Coffee", "cafe", 60),
        (r"\b(lunch|restaurant)", "Lunch", "restaurant", 90),
        (r"\b(museum|art)\b", "Museum Visit", "museum", 120),
    )
)


def detect_category(*texts: Optional[str]) -> str:
    """Infer a venue category from free text using ``CATEGORY_RULES``."""
    combined = " ".join(t for t in texts if t)
    for pattern, category in CATEGORY_RULES:
        if pattern.search(combined):
            return category
    return GENERAL_CATEGORY


def normalize_venue_type(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return VENUE_TYPE_ALIASES.get(value.strip().lower().replace("-", "_"))


# ============================================================================
# LLM wire format
# ============================================================================

def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return [str(value)]


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SearchParameters(_WireModel):
    venue_type: Optional[str] = None
    venue_preference: Optional[str] = None
    specific_requirements: List[str] = Field(default_factory=list)
    cuisine: Optional[str] = None
    price_level: Optional[str] = None
    ambience: Optional[str] = None

    @field_validator("specific_requirements", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> List[str]:
        return _as_list(v)

    @field_validator("cuisine", mode="before")
    @classmethod
    def _join_cuisine(cls, v: Any) -> Optional[str]:
        if isinstance(v, list):
            return ", ".join(str(item) for item in v if item) or None
        return v


class _EntryBase(_WireModel):
    activity: str = Field(min_length=1)
    location: Optional[str] = None
    venue: Optional[str] = None
    venue_preference: Optional[str] = None
    venue_requirements: List[str] = Field(default_factory=list)
    search_parameters: Optional[SearchParameters] = None
    day: Optional[int] = Field(default=None, ge=1)

    @field_validator("venue_requirements", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> List[str]:
        return _as_list(v)


class TimeBlock(_EntryBase):
    start_time: str
    end_time: Optional[str] = None


class FixedAppointment(_EntryBase):
    time: str
    duration: Optional[int] = Field(default=None, ge=0)
    buffer_before: Optional[int] = None
    buffer_after: Optional[int] = None
    is_fixed: bool = True


class TimedEntry(_EntryBase):
    time: Optional[str] = None


class Preferences(_WireModel):
    cuisine: List[str] = Field(default_factory=list)
    budget: Optional[str] = None
    pace: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    accessibility: List[str] = Field(default_factory=list)
    transport_mode: Optional[str] = None

    @field_validator("cuisine", "interests", "accessibility", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> List[str]:
        return _as_list(v)


class ExtractionPayload(_WireModel):
    """Validated shape of the LLM response."""

    time_blocks: List[TimeBlock] = Field(default_factory=list)
    fixed_appointments: List[FixedAppointment] = Field(default_factory=list)
    fixed_time_entries: List[TimedEntry] = Field(default_factory=list)
    flexible_time_entries: List[TimedEntry] = Field(default_factory=list)
    start_location: Optional[str] = None
    end_location: Optional[str] = None
    preferences: Optional[Preferences] = None
    special_requests: List[str] = Field(default_factory=list)

    @field_validator("special_requests", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> List[str]:
        return _as_list(v)

    def is_empty(self) -> bool:
        return not (self.time_blocks or self.fixed_appointments or self.fixed_time_entries or self.flexible_time_entries)


def clean_nulls(value: Any) -> Any:
    """Drop ``None`` / ``"null"`` values recursively so optional fields fall back to defaults."""
    if isinstance(value, dict):
        return {
            k: clean_nulls(v)
            for k, v in value.items()
            if v is not None and not (isinstance(v, str) and v.strip().lower() in {"null", "none"})
        }
    if isinstance(value, list):
        return [clean_nulls(v) for v in value if v is not None]
    return value


def parse_llm_json(text: str) -> Optional[Dict[str, Any]]:
    """Parse JSON from a model reply: fenced block, raw text, then first ``{...}`` span."""
    candidates: List[str] = re.findall(r"```(?:json)?\s*(.*?)```", text, flags=re.DOTALL)
    candidates.append(text)
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        candidate = candidate.strip()
        if not candidate:
            continue
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


# ============================================================================
# Extractor
# ============================================================================

@dataclass
class ExtractionResult:
    slots: List[ActivitySlot]
    used_fallback: bool = False
    fallback_kind: Optional[str] = None
    llm_error: Optional[str] = None
    preferences: Optional[Preferences] = None
    special_requests: List[str] = field(default_factory=list)
    start_location: Optional[str] = None


class ActivityExtractor:
    """Extract activity slots for one planning request."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        llm: Optional[Any] = None,
        llm_factory: Optional[Callable[[float], Any]] = None,
        prompt: Optional[PromptTemplate] = None,
        cache: Optional[TTLCache] = None,
        breaker: Optional[CircuitBreaker] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._llm = llm
        self._llm_factory = llm_factory
        self._models: Dict[float, Any] = {}
        self._prompt_template = prompt or load_prompt_template("extract_activities")
        self._cache = cache
        self._breaker = breaker

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(
        self,
        query: str,
        city: CityConfig,
        date: Optional[Date] = None,
        start_time: Optional[str] = None,
    ) -> List[ActivitySlot]:
        """Synchronous wrapper returning only the slots."""
        return asyncio.run(self.extract_async(query, city, date, start_time)).slots

    async def extract_async(
        self,
        query: str,
        city: CityConfig,
        date: Optional[Date] = None,
        start_time: Optional[str] = None,
    ) -> ExtractionResult:
        query = (query or "").strip()
        if not query:
            return ExtractionResult(slots=[])

        if self._cache is not None:
            key = CacheKey.build("extraction", query=query.lower(), city=city.slug, date=str(date), start=start_time)
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Extraction cache hit")
                return cached
        else:
            key = None

        result = await self._extract_uncached(query, city, date, start_time)
        if key is not None and not result.used_fallback:
            self._cache.set(key, result, ttl=self.settings.extraction_cache_ttl_seconds, tags=(f"city:{city.slug}",))
        return result

    # ------------------------------------------------------------------
    # LLM extraction
    # ------------------------------------------------------------------

    async def _extract_uncached(
        self,
        query: str,
        city: CityConfig,
        date: Optional[Date],
        start_time: Optional[str],
    ) -> ExtractionResult:
        llm_error: Optional[str] = None
        try:
            payload = await self._llm_extract(query, city, date, start_time)
        except ExtractionServiceError as exc:
            llm_error = str(exc)
            payload = None

        if payload is not None:
            slots = self.convert_payload(payload, city, query)
            if slots:
                logger.info(f"Extracted {len(slots)} activity slots for {city.slug}")
                return ExtractionResult(
                    slots=slots,
                    preferences=payload.preferences,
                    special_requests=payload.special_requests,
                    start_location=payload.start_location,
                )
            llm_error = llm_error or "LLM response contained no usable activities."

        logger.warning(f"Falling back to keyword extraction: {llm_error}")
        slots, kind = self.fallback_slots(query, city, start_time)
        return ExtractionResult(slots=slots, used_fallback=True, fallback_kind=kind, llm_error=llm_error)

    def _model_for(self, temperature: float) -> Any:
        if self._llm is not None:
            return self._llm
        if temperature not in self._models:
            if self._llm_factory is not None:
                self._models[temperature] = self._llm_factory(temperature)
            else:
                self._models[temperature] = ChatGoogleGenerativeAI(
                    model=self.settings.model_name,
                    temperature=temperature,
                    google_api_key=self.settings.google_api_key,
                )
        return self._models[temperature]

    def _render_system_prompt(self, city: CityConfig, date: Optional[Date], start_time: Optional[str]) -> str:
        location_examples = ", ".join(f'"{area.name}"' for area in city.areas[:6])
        context_lines = []
        if start_time:
            context_lines.append(f"Start time: {start_time}")
        if date:
            context_lines.append(f"Date: {date.isoformat()}")
        return self._prompt_template.format(
            city_name=city.name,
            location_examples=location_examples,
            landmarks=", ".join(city.landmarks),
            default_location=city.default_location,
            context_lines="\n".join(context_lines),
        )

    def _invoke_once(self, model: Any, messages: Sequence[Any]) -> str:
        response = model.invoke(list(messages))
        content = getattr(response, "content", response)
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return str(content or "")

    async def _call_model(self, model: Any, messages: Sequence[Any]) -> str:
        call = asyncio.to_thread(self._invoke_once, model, messages)
        return await asyncio.wait_for(call, timeout=self.settings.llm_timeout_s)

    async def _llm_extract(
        self,
        query: str,
        city: CityConfig,
        date: Optional[Date],
        start_time: Optional[str],
    ) -> Optional[ExtractionPayload]:
        """Try each configured temperature in turn; None when every attempt was unusable."""
        system_msg = SystemMessage(content=self._render_system_prompt(city, date, start_time))
        user_msg = HumanMessage(content=f"Here's the request to analyze:\n{query}")
        last_error: Optional[str] = None

        for attempt, temperature in enumerate(self.settings.extraction_temperatures, start=1):
            try:
                model = self._model_for(temperature)
                if self._breaker is not None:
                    text = await self._breaker.acall(self._call_model, model, [system_msg, user_msg])
                else:
                    text = await self._call_model(model, [system_msg, user_msg])
            except CircuitOpenError as exc:
                raise ExtractionServiceError(str(exc)) from exc
            except Exception as exc:
                last_error = f"LLM call failed: {exc}"
                logger.warning(f"Extraction attempt {attempt} (temperature {temperature}) failed: {exc}")
                continue

            parsed = parse_llm_json(text)
            if parsed is None:
                last_error = "LLM response was not valid JSON."
                logger.warning(f"Extraction attempt {attempt}: {last_error}")
                continue
            try:
                payload = ExtractionPayload.model_validate(clean_nulls(parsed))
            except ValidationError as exc:
                last_error = f"LLM response failed validation: {exc.error_count()} errors"
                logger.warning(f"Extraction attempt {attempt}: {last_error}")
                continue
            if payload.is_empty():
                last_error = "LLM response contained no activities."
                continue
            return payload

        raise ExtractionServiceError(last_error or "No extraction attempts configured.")

    # ------------------------------------------------------------------
    # Reshaping
    # ------------------------------------------------------------------

    def convert_payload(
        self,
        payload: ExtractionPayload,
        city: CityConfig,
        query: Optional[str] = None,
    ) -> List[ActivitySlot]:
        """Turn the validated LLM payload into deduplicated, time-ordered slots."""
        default_location = payload.start_location or city.default_location
        candidates: List[ActivitySlot] = []

        for block in payload.time_blocks:
            candidates.append(self._from_time_block(block, default_location))
        for appointment in payload.fixed_appointments:
            candidates.append(self._from_appointment(appointment, default_location))
        for entry in payload.fixed_time_entries:
            candidates.append(self._from_timed_entry(entry, default_location, SlotSource.FIXED_TIME))
        for entry in payload.flexible_time_entries:
            candidates.append(self._from_timed_entry(entry, default_location, SlotSource.FLEXIBLE))

        if payload.preferences is not None:
            candidates = [self._apply_preferences(slot, payload.preferences) for slot in candidates]
        if query:
            candidates = assign_mention_order(candidates, query)

        return sort_slots(deduplicate_slots(candidates))

    def _keywords(self, entry: _EntryBase) -> Tuple[str, ...]:
        words: List[str] = list(entry.venue_requirements)
        if entry.search_parameters is not None:
            words.extend(entry.search_parameters.specific_requirements)
        seen = set()
        unique = []
        for word in words:
            key = word.lower()
            if key not in seen:
                seen.add(key)
                unique.append(word)
        return tuple(unique)

    def _from_time_block(self, block: TimeBlock, default_location: str) -> ActivitySlot:
        start = parse_time(block.start_time, block.activity)
        end = parse_time(block.end_time, block.activity) if block.end_time else None
        params = block.search_parameters or SearchParameters()
        duration = None
        if end is not None:
            duration = hhmm_to_minutes(end.hhmm) - hhmm_to_minutes(start.hhmm)
            duration = duration if duration > 0 else None
        preference = params.ambience and f"{params.ambience} workspace"
        return ActivitySlot(
            activity=block.activity,
            location=block.location or default_location,
            time=start.hhmm,
            end_time=end.hhmm if end else None,
            venue_type=normalize_venue_type(params.venue_type) or "cafe",
            venue_preference=block.venue_preference or preference or WORKSPACE_PREFERENCE,
            keywords=self._keywords(block),
            min_rating=FIXED_MIN_RATING,
            is_fixed=True,
            source=SlotSource.TIME_BLOCK,
            time_ambiguous=start.ambiguous,
            day=block.day or 1,
            duration_minutes=duration,
        )

    def _from_appointment(self, appointment: FixedAppointment, default_location: str) -> ActivitySlot:
        parsed = parse_time(appointment.time, appointment.activity)
        return ActivitySlot(
            activity=appointment.activity,
            location=appointment.location or default_location,
            time=parsed.hhmm,
            venue_type=SKIP_CATEGORY,
            is_fixed=True,
            source=SlotSource.FIXED_APPOINTMENT,
            time_ambiguous=parsed.ambiguous,
            day=appointment.day or 1,
            duration_minutes=appointment.duration or 60,
        )

    def _from_timed_entry(self, entry: TimedEntry, default_location: str, source: SlotSource) -> ActivitySlot:
        params = entry.search_parameters or SearchParameters()
        preference = entry.venue_preference or params.venue_preference or entry.venue
        venue_type = normalize_venue_type(params.venue_type) or detect_category(entry.activity, preference)

        if entry.time:
            parsed = parse_time(entry.time, entry.activity)
            time_value, ambiguous = parsed.hhmm, parsed.ambiguous
        else:
            time_value, ambiguous = None, False

        keywords = list(self._keywords(entry))
        if params.cuisine and params.cuisine.lower() not in (preference or "").lower():
            keywords.insert(0, params.cuisine)

        is_fixed = source is SlotSource.FIXED_TIME
        return ActivitySlot(
            activity=entry.activity,
            location=entry.location or default_location,
            time=time_value,
            venue_type=venue_type,
            venue_preference=preference or None,
            keywords=tuple(keywords),
            min_rating=FIXED_MIN_RATING if is_fixed else 0.0,
            is_fixed=is_fixed,
            source=source,
            time_ambiguous=ambiguous,
            day=entry.day or 1,
        )

    def _apply_preferences(self, slot: ActivitySlot, preferences: Preferences) -> ActivitySlot:
        if slot.venue_type != "restaurant":
            return slot
        extra: List[str] = []
        existing = " ".join((slot.venue_preference or "",) + slot.keywords).lower()
        for cuisine in preferences.cuisine:
            if cuisine.lower() not in existing:
                extra.append(cuisine)
        if preferences.budget and preferences.budget.lower() in {"budget", "cheap", "expensive"}:
            if preferences.budget.lower() not in existing:
                extra.append(preferences.budget.lower())
        if not extra:
            return slot
        return slot.model_copy(update={"keywords": slot.keywords + tuple(extra)})

    # ------------------------------------------------------------------
    # Fallbacks
    # ------------------------------------------------------------------

    def fallback_slots(
        self,
        query: str,
        city: CityConfig,
        start_time: Optional[str] = None,
    ) -> Tuple[List[ActivitySlot], str]:
        """Keyword detection first; a single raw-query slot when nothing matches."""
        resolver = LocationResolver(city)
        areas = resolver.extract_area_references(query)
        location = areas[0].name if areas else city.default_location
        first = parse_time(start_time) if start_time else None

        slots: List[ActivitySlot] = []
        minutes = hhmm_to_minutes(first.hhmm) if first else 10 * 60
        for pattern, activity, category, duration in KEYWORD_FALLBACK_RULES:
            if not pattern.search(query):
                continue
            slots.append(
                ActivitySlot(
                    activity=activity,
                    location=location,
                    time=f"{minutes // 60 % 24:02d}:{minutes % 60:02d}",
                    venue_type=category,
                    source=SlotSource.FLEXIBLE,
                    duration_minutes=duration,
                )
            )
            minutes += duration
        if slots:
            return slots, "keywords"

        return [
            ActivitySlot(
                activity=query,
                location=location,
                time=first.hhmm if first else DEFAULT_TIME,
                venue_type=GENERAL_CATEGORY,
                venue_preference=query,
                source=SlotSource.FLEXIBLE,
                time_ambiguous=first is None,
            )
        ], "raw_query"


def deduplicate_slots(slots: Sequence[ActivitySlot]) -> List[ActivitySlot]:
    """Keep one slot per ``dedup_key``, preferring the higher ``SlotSource``.

    Equal-priority collisions keep the slot seen first. Output preserves the
    position of each key's first appearance.
    """
    winners: Dict[Tuple[str, str, str], ActivitySlot] = {}
    order: List[Tuple[str, str, str]] = []
    for slot in slots:
        key = slot.dedup_key
        current = winners.get(key)
        if current is None:
            winners[key] = slot
            order.append(key)
        elif slot.source > current.source:
            winners[key] = slot
    return [winners[key] for key in order]


_MENTION_STOPWORDS = frozenset({"the", "and", "for", "with", "then", "some", "visit", "grab", "have"})


def _mention_terms(activity: str) -> List[str]:
    text = activity.strip().lower()
    words = [w for w in re.findall(r"[a-z]+", text) if len(w) >= 3 and w not in _MENTION_STOPWORDS]
    return [text] + [w for w in words if w != text] if text else []


def assign_mention_order(slots: Sequence[ActivitySlot], query: str) -> List[ActivitySlot]:
    """Record the offset at which each slot's activity is mentioned in ``query``.

    The whole activity text is tried first, then its individual words.
    Repeated activities claim successive mentions. Slots that cannot be found
    keep ``mention_index`` unset.
    """
    lowered = query.lower()
    claimed: Dict[str, int] = {}
    result: List[ActivitySlot] = []
    for slot in slots:
        position: Optional[int] = None
        chosen = ""
        for term in _mention_terms(slot.activity):
            match = re.compile(rf"\b{re.escape(term)}\b").search(lowered, claimed.get(term, 0))
            if match and (position is None or match.start() < position):
                position, chosen = match.start(), term
        if position is not None:
            claimed[chosen] = position + len(chosen)
        result.append(slot.model_copy(update={"mention_index": position}))
    return result


def sort_slots(slots: Sequence[ActivitySlot]) -> List[ActivitySlot]:
    """Chronological order by (day, time).

    Unscheduled slots sit right after the slot mentioned before them. Slots
    with no known mention keep their list position and come after those with one.
    """
    mentioned = sorted(
        enumerate(slots),
        key=lambda item: (item[1].mention_index is None, item[1].mention_index or 0, item[0]),
    )
    keyed = []
    last_minutes = -1
    for rank, (_, slot) in enumerate(mentioned):
        if not slot.is_scheduled:
            minutes = last_minutes
        else:
            minutes = hhmm_to_minutes(slot.time)
            last_minutes = minutes
        keyed.append(((slot.day, minutes, rank), slot))
    return [slot for _, slot in sorted(keyed, key=lambda item: item[0])]


__all__ = [
    "ActivityExtractor",
    "CATEGORY_RULES",
    "ExtractionPayload",
    "ExtractionResult",
    "assign_mention_order",
    "clean_nulls",
    "deduplicate_slots",
    "detect_category",
    "parse_llm_json",
    "sort_slots",
]
