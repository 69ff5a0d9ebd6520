# tools/time_parser.py
"""Normalize natural-language time expressions to 24h ``HH:MM``.

Rules are evaluated in this order, first hit wins:

1. explicit ``HH:MM`` (24h clock)
2. explicit am/pm ("3pm", "7:30 p.m.")
3. named periods ("noon", "late afternoon", "evening")
4. meal words ("lunch", "dinner") when no clock time is given
5. bare hours ("at 7"), resolved with context words and flagged ambiguous
6. default noon, also flagged ambiguous

Qualifiers such as "around", "about" or a trailing "ish" are stripped before
any rule runs. Zoned timestamps are always built in the city's timezone,
never the host's.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date as Date
from datetime import datetime, time, timedelta, tzinfo
from typing import Callable, Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo

DEFAULT_TIME = "12:00"

_QUALIFIER_RE = re.compile(
    r"\b(?:around|about|roughly|approximately|approx\.?|circa|by|at|from|ish)\b|~",
    re.IGNORECASE,
)
_HHMM_RE = re.compile(r"(?<![\d:])([01]?\d|2[0-3]):([0-5]\d)(?![\d:])(?!\s*[ap]\.?\s?m\b)", re.IGNORECASE)
_AMPM_RE = re.compile(
    r"\b(1[0-2]|0?[1-9])(?:[:.]([0-5]\d))?\s*(a\.?\s?m\.?|p\.?\s?m\.?)(?=\W|$)",
    re.IGNORECASE,
)
_BARE_HOUR_RE = re.compile(r"(?<![\d:])\b([01]?\d|2[0-3])\b(?![:\d])")

# Ordered (pattern, HH:MM) table; multi-word periods come before single words.
NAMED_PERIODS: Tuple[Tuple[re.Pattern, str], ...] = tuple(
    (re.compile(rf"\b{pattern}\b", re.IGNORECASE), value)
    for pattern, value in (
        (r"early\s+morning", "07:00"),
        (r"late\s+morning", "11:00"),
        (r"early\s+afternoon", "13:00"),
        (r"late\s+afternoon", "16:00"),
        (r"early\s+evening", "17:00"),
        (r"late\s+evening", "21:00"),
        (r"midnight", "00:00"),
        (r"noon|midday", "12:00"),
        (r"sunrise", "06:30"),
        (r"sunset", "18:30"),
        (r"morning", "09:00"),
        (r"afternoon", "14:00"),
        (r"evening", "18:00"),
        (r"tonight|night", "20:00"),
    )
)

MEAL_TIMES: Tuple[Tuple[re.Pattern, str], ...] = tuple(
    (re.compile(rf"\b{pattern}\b", re.IGNORECASE), value)
    for pattern, value in (
        (r"breakfast", "09:00"),
        (r"brunch", "11:00"),
        (r"lunch", "12:00"),
        (r"afternoon\s+tea", "15:00"),
        (r"dinner|supper", "19:00"),
    )
)

_EVENING_CONTEXT = re.compile(
    r"\b(?:dinner|supper|drinks?|bars?|pubs?|pints?|cocktails?|wine|evening|night|tonight|shows?|theatre|theater|concert|club)\b",
    re.IGNORECASE,
)
_MORNING_CONTEXT = re.compile(
    r"\b(?:breakfast|coffee|morning|sunrise|gym|jog|run)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ParsedTime:
    """Normalized time plus how it was derived."""

    hhmm: str
    ambiguous: bool = False
    source: str = "explicit"


def _fmt(hour: int, minute: int = 0) -> str:
    return f"{hour % 24:02d}:{minute:02d}"


def _strip_qualifiers(text: str) -> str:
    cleaned = re.sub(r"(\d)\s*ish\b", r"\1", text, flags=re.IGNORECASE)
    cleaned = _QUALIFIER_RE.sub(" ", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def _match_explicit_24h(text: str, context: str) -> Optional[ParsedTime]:
    match = _HHMM_RE.search(text)
    if not match:
        return None
    return ParsedTime(_fmt(int(match.group(1)), int(match.group(2))))


def _match_ampm(text: str, context: str) -> Optional[ParsedTime]:
    match = _AMPM_RE.search(text)
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    is_pm = match.group(3).lower().startswith("p")
    if is_pm and hour != 12:
        hour += 12
    elif not is_pm and hour == 12:
        hour = 0
    return ParsedTime(_fmt(hour, minute))


def _match_named_period(text: str, context: str) -> Optional[ParsedTime]:
    if _BARE_HOUR_RE.search(text):
        return None
    for pattern, value in NAMED_PERIODS:
        if pattern.search(text):
            return ParsedTime(value, source="period")
    return None


def _match_meal(text: str, context: str) -> Optional[ParsedTime]:
    if _BARE_HOUR_RE.search(text):
        return None
    for pattern, value in MEAL_TIMES:
        if pattern.search(text):
            return ParsedTime(value, source="meal")
    return None


def _match_bare_hour(text: str, context: str) -> Optional[ParsedTime]:
    match = _BARE_HOUR_RE.search(text)
    if not match:
        return None
    hour = int(match.group(1))
    if hour == 0 or hour > 12:
        return ParsedTime(_fmt(hour), source="bare_hour")
    if hour == 12:
        return ParsedTime(_fmt(hour), ambiguous=True, source="bare_hour")

    surrounding = f"{text} {context}"
    if _EVENING_CONTEXT.search(surrounding):
        hour += 12
    elif _MORNING_CONTEXT.search(surrounding):
        pass
    elif hour <= 6:
        hour += 12
    return ParsedTime(_fmt(hour), ambiguous=True, source="bare_hour")


_RULES: Sequence[Callable[[str, str], Optional[ParsedTime]]] = (
    _match_explicit_24h,
    _match_ampm,
    _match_named_period,
    _match_meal,
    _match_bare_hour,
)


def parse_time(text: Optional[str], context: Optional[str] = None) -> ParsedTime:
    """Parse ``text`` into a ``ParsedTime``.

    ``context`` is the surrounding activity text ("drinks in Chelsea") and is
    only consulted for bare hours.
    """
    raw = (text or "").strip()
    context = context or ""
    if raw:
        explicit = _match_explicit_24h(raw, context)
        if explicit is not None:
            return explicit
        cleaned = _strip_qualifiers(raw)
        for rule in _RULES:
            parsed = rule(cleaned, context)
            if parsed is not None:
                return parsed
    return ParsedTime(DEFAULT_TIME, ambiguous=True, source="default")


def normalize_time(text: Optional[str], context: Optional[str] = None) -> str:
    """Return ``text`` as a 24h ``HH:MM`` string."""
    return parse_time(text, context).hhmm


def hhmm_to_minutes(hhmm: str) -> int:
    hour, minute = hhmm.split(":")
    return int(hour) * 60 + int(minute)


def minutes_to_hhmm(minutes: int) -> str:
    minutes = max(0, min(int(minutes), 24 * 60 - 1))
    return _fmt(minutes // 60, minutes % 60)


def add_minutes(hhmm: str, minutes: int) -> str:
    return minutes_to_hhmm(hhmm_to_minutes(hhmm) + minutes)


def _as_tz(timezone: Union[str, tzinfo]) -> tzinfo:
    return ZoneInfo(timezone) if isinstance(timezone, str) else timezone


def to_zoned_timestamp(hhmm: str, day: Date, timezone: Union[str, tzinfo]) -> datetime:
    """Interpret ``hhmm`` on ``day`` as wall-clock time in ``timezone``."""
    hour, minute = (int(part) for part in hhmm.split(":"))
    return datetime.combine(day, time(hour, minute), tzinfo=_as_tz(timezone))


def format_display_time(timestamp: datetime, timezone: Union[str, tzinfo]) -> str:
    """Render ``timestamp`` as "3:00 PM" in ``timezone``."""
    local = timestamp.astimezone(_as_tz(timezone))
    hour12 = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour12}:{local.minute:02d} {suffix}"


def shift_days(day: Date, days: int) -> Date:
    return day + timedelta(days=days)


__all__ = [
    "DEFAULT_TIME",
    "ParsedTime",
    "add_minutes",
    "format_display_time",
    "hhmm_to_minutes",
    "minutes_to_hhmm",
    "normalize_time",
    "parse_time",
    "shift_days",
    "to_zoned_timestamp",
]
