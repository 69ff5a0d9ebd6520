"""Tests for activity extraction, reshaping and fallbacks."""

from __future__ import annotations

import asyncio
import json

from agents.activity_extractor import (
    ActivityExtractor,
    assign_mention_order,
    clean_nulls,
    deduplicate_slots,
    detect_category,
    parse_llm_json,
)
from workflows.cache import TTLCache
from workflows.circuit_breaker import CircuitBreaker
from workflows.schemas import ActivitySlot, SlotSource

FULL_PAYLOAD = {
    "timeBlocks": [
        {
            "startTime": "10:00",
            "endTime": "12:00",
            "activity": "work session",
            "location": "Soho",
            "searchParameters": {"ambience": "quiet", "specificRequirements": ["wifi"]},
        }
    ],
    "fixedAppointments": [{"time": "15:00", "activity": "client meeting", "location": "Mayfair"}],
    "fixedTimeEntries": [
        {
            "time": "1pm",
            "activity": "lunch",
            "location": "Soho",
            "venuePreference": "ramen restaurant",
            "searchParameters": {"cuisine": "japanese", "priceLevel": None},
        }
    ],
    "flexibleTimeEntries": [{"activity": "visit a museum", "location": "Kensington"}],
    "preferences": {"budget": "cheap", "cuisine": None},
    "specialRequests": "wheelchair access",
}


def _run(extractor: ActivityExtractor, query: str, city, start_time=None):
    return asyncio.run(extractor.extract_async(query, city, None, start_time))


def _slot(activity="coffee", location="Soho", time="10:00", venue_type="cafe", source=SlotSource.FLEXIBLE):
    return ActivitySlot(activity=activity, location=location, time=time, venue_type=venue_type, source=source)


# ==================== LLM EXTRACTION ====================


def test_converts_all_four_categories(settings, london, fake_llm):
    llm = fake_llm(FULL_PAYLOAD)
    result = _run(ActivityExtractor(settings=settings, llm=llm), "work, lunch, museum, meeting", london, "10:00")

    assert result.used_fallback is False
    assert result.special_requests == ["wheelchair access"]
    by_activity = {slot.activity: slot for slot in result.slots}

    work = by_activity["work session"]
    assert (work.time, work.end_time, work.duration_minutes) == ("10:00", "12:00", 120)
    assert work.venue_type == "cafe"
    assert work.venue_preference == "quiet workspace"
    assert work.keywords == ("wifi",)
    assert work.is_fixed and work.min_rating == 4.0
    assert work.source is SlotSource.TIME_BLOCK

    meeting = by_activity["client meeting"]
    assert meeting.is_skip
    assert meeting.duration_minutes == 60
    assert meeting.source is SlotSource.FIXED_APPOINTMENT

    lunch = by_activity["lunch"]
    assert lunch.time == "13:00"
    assert lunch.venue_type == "restaurant"
    assert lunch.keywords == ("japanese", "cheap")
    assert lunch.min_rating == 4.0

    museum = by_activity["visit a museum"]
    assert museum.venue_type == "museum"
    assert museum.is_scheduled is False
    assert museum.is_fixed is False

    timed = [slot.activity for slot in result.slots if slot.is_scheduled]
    assert timed == ["work session", "lunch", "client meeting"]

    system_prompt = llm.calls[0][0].content
    assert "day-planning assistant for London" in system_prompt
    assert "Start time: 10:00" in system_prompt


def test_list_content_reply_is_joined(settings, london, fake_llm):
    payload = {"flexibleTimeEntries": [{"activity": "coffee", "location": "Soho"}]}
    llm = fake_llm([[{"type": "text", "text": json.dumps(payload)}]])
    result = _run(ActivityExtractor(settings=settings, llm=llm), "coffee in soho", london)
    assert [slot.venue_type for slot in result.slots] == ["cafe"]


def test_second_attempt_uses_next_temperature(settings, london, fake_llm):
    created = []

    def factory(temperature):
        created.append(temperature)
        replies = ["not json"] if temperature == 0.2 else [{"fixedTimeEntries": [{"time": "19:00", "activity": "dinner"}]}]
        return fake_llm(replies)

    result = _run(ActivityExtractor(settings=settings, llm_factory=factory), "dinner at 7", london)
    assert created == [0.2, 0.4]
    assert result.used_fallback is False
    assert result.slots[0].location == "Central London"
    assert result.slots[0].time == "19:00"


def test_extraction_results_are_cached(settings, london, fake_llm):
    llm = fake_llm({"flexibleTimeEntries": [{"activity": "coffee"}]})
    extractor = ActivityExtractor(settings=settings, llm=llm, cache=TTLCache())
    first = _run(extractor, "Coffee please", london)
    second = _run(extractor, "coffee please", london)
    assert first is second
    assert len(llm.calls) == 1


def test_untimed_entry_keeps_its_mentioned_position(settings, london, fake_llm):
    payload = {
        "fixedTimeEntries": [
            {"time": "12:00", "activity": "lunch", "location": "Mayfair"},
            {"time": "19:00", "activity": "drinks", "location": "Chelsea"},
        ],
        "flexibleTimeEntries": [{"activity": "coffee", "location": "nearby"}],
    }
    query = "Lunch in Mayfair at 12, then coffee nearby, then drinks in Chelsea at 7pm"
    result = _run(ActivityExtractor(settings=settings, llm=fake_llm(payload)), query, london)

    assert [slot.activity for slot in result.slots] == ["lunch", "coffee", "drinks"]
    lowered = query.lower()
    assert [slot.mention_index for slot in result.slots] == [0, lowered.index("coffee"), lowered.index("drinks")]
    assert result.slots[1].is_scheduled is False


def test_repeated_activities_claim_successive_mentions():
    query = "Coffee in Soho, a gallery, then coffee in Shoreditch"
    slots = assign_mention_order(
        [
            _slot("coffee"),
            _slot("art gallery", time=None),
            _slot("coffee", location="Shoreditch"),
            _slot("picnic", time=None),
        ],
        query,
    )
    lowered = query.lower()
    assert [s.mention_index for s in slots] == [0, lowered.index("gallery"), lowered.rindex("coffee"), None]


# ==================== FALLBACKS ====================


def test_keyword_fallback_after_two_failed_attempts(settings, london, fake_llm):
    llm = fake_llm([RuntimeError("quota exceeded"), "Sorry, I can't help with that."])
    cache = TTLCache()
    extractor = ActivityExtractor(settings=settings, llm=llm, cache=cache)
    result = _run(extractor, "coffee in Soho then lunch", london)

    assert len(llm.calls) == 2
    assert result.used_fallback is True
    assert result.fallback_kind == "keywords"
    assert "not valid JSON" in result.llm_error
    assert [(s.activity, s.venue_type, s.time, s.location) for s in result.slots] == [
        ("Coffee", "cafe", "10:00", "Soho"),
        ("Lunch", "restaurant", "11:00", "Soho"),
    ]
    assert len(cache) == 0


def test_keyword_fallback_uses_first_mentioned_area(settings, london, fake_llm):
    llm = fake_llm([RuntimeError("quota exceeded"), RuntimeError("quota exceeded")])
    result = _run(ActivityExtractor(settings=settings, llm=llm), "coffee in Soho or Mayfair", london)
    assert result.fallback_kind == "keywords"
    assert [slot.location for slot in result.slots] == ["Soho"]


def test_raw_query_slot_when_no_keywords_match(settings, london, fake_llm):
    llm = fake_llm({"timeBlocks": []})
    extractor = ActivityExtractor(settings=settings, llm=llm)

    result = _run(extractor, "something memorable with friends", london)
    assert result.fallback_kind == "raw_query"
    (slot,) = result.slots
    assert slot.activity == slot.venue_preference == "something memorable with friends"
    assert slot.venue_type == "tourist_attraction"
    assert slot.location == "Central London"
    assert slot.time == "12:00"
    assert slot.time_ambiguous is True

    with_start = _run(extractor, "something memorable with friends", london, "09:30")
    assert with_start.slots[0].time == "09:30"
    assert with_start.slots[0].time_ambiguous is False


def test_open_circuit_skips_llm(settings, london, fake_llm):
    llm = fake_llm({"flexibleTimeEntries": [{"activity": "coffee"}]})
    breaker = CircuitBreaker("nlp", failure_threshold=1)
    breaker.record_failure()
    result = _run(ActivityExtractor(settings=settings, llm=llm, breaker=breaker), "coffee", london)
    assert llm.calls == []
    assert result.used_fallback is True
    assert "circuit is open" in result.llm_error


def test_empty_query_returns_no_slots(settings, london, fake_llm):
    llm = fake_llm({})
    assert _run(ActivityExtractor(settings=settings, llm=llm), "   ", london).slots == []
    assert llm.calls == []


# ==================== HELPERS ====================


def test_deduplicate_prefers_higher_source():
    fixed = _slot(activity="coffee", source=SlotSource.FIXED_TIME)
    block = _slot(activity="work", source=SlotSource.TIME_BLOCK)
    flexible = _slot(activity="coffee again", location=" soho ", source=SlotSource.FLEXIBLE)
    other = _slot(activity="drinks", venue_type="bar", time="18:00")
    assert deduplicate_slots([fixed, other, block, flexible]) == [block, other]


def test_deduplicate_tie_keeps_first():
    first = _slot(activity="first coffee", time=None)
    second = _slot(activity="second coffee", time=None)
    assert deduplicate_slots([first, second]) == [first]


def test_detect_category_order():
    assert detect_category("lunch at the museum cafe") == "museum"
    assert detect_category("coffee") == "cafe"
    assert detect_category("cocktails") == "bar"
    assert detect_category("client meeting") == "skip"
    assert detect_category("see the sights") == "tourist_attraction"


def test_parse_llm_json_variants():
    assert parse_llm_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_llm_json('Here you go: {"a": {"b": 2}} hope that helps') == {"a": {"b": 2}}
    assert parse_llm_json("[1, 2]") is None
    assert parse_llm_json("no json here") is None


def test_clean_nulls():
    raw = {"a": None, "b": "null", "c": {"d": "None", "e": 1}, "f": [None, 2, {"g": None}]}
    assert clean_nulls(raw) == {"c": {"e": 1}, "f": [2, {}]}
