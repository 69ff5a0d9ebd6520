# tools/opening_hours.py
"""Opening-hours parsing and open/closed checks.

Periods use the Places convention: ``day`` 0=Sunday .. 6=Saturday and
``HHMM`` wall-clock strings in the venue's local time. A period whose close
time is earlier than its open time runs past midnight into the next day.
"""
from __future__ import annotations

import re
from datetime import datetime, tzinfo
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from workflows.schemas import HoursCheck, OpeningHours, OpeningPeriod, Venue

WEEKDAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")

_RANGE_RE = re.compile(
    r"(\d{1,2})(?::(\d{2}))?\s*([AP]M)?\s*[–—-]\s*(\d{1,2})(?::(\d{2}))?\s*([AP]M)?",
    re.IGNORECASE,
)


def _hhmm(hour: Any, minute: Any = 0) -> Optional[str]:
    try:
        return f"{int(hour):02d}{int(minute or 0):02d}"
    except (TypeError, ValueError):
        return None


def _parse_point(point: Optional[Dict[str, Any]]) -> Tuple[Optional[int], Optional[str]]:
    """Accept both ``{"day", "hour", "minute"}`` and ``{"day", "time": "HHMM"}``."""
    if not isinstance(point, dict):
        return None, None
    day = point.get("day")
    if "time" in point:
        value = str(point.get("time") or "")
        value = value if re.fullmatch(r"\d{4}", value) else None
    else:
        value = _hhmm(point.get("hour"), point.get("minute"))
    try:
        return (int(day) if day is not None else None), value
    except (TypeError, ValueError):
        return None, value


def parse_opening_hours(payload: Optional[Dict[str, Any]]) -> Optional[OpeningHours]:
    """Normalize a Places ``regularOpeningHours`` / ``opening_hours`` payload."""
    if not isinstance(payload, dict) or not payload:
        return None

    periods: List[OpeningPeriod] = []
    for raw in payload.get("periods") or []:
        day, open_time = _parse_point(raw.get("open"))
        if day is None or open_time is None or not 0 <= day <= 6:
            continue
        _, close_time = _parse_point(raw.get("close"))
        periods.append(OpeningPeriod(day=day, open=open_time, close=close_time))

    weekday_text = payload.get("weekdayDescriptions") or payload.get("weekday_text") or []
    open_now = payload.get("openNow", payload.get("open_now"))

    if not periods and not weekday_text and open_now is None:
        return None
    return OpeningHours(
        periods=tuple(periods),
        weekday_text=tuple(str(line) for line in weekday_text),
        open_now=open_now if isinstance(open_now, bool) else None,
    )


def _to_minutes(hhmm: str) -> int:
    return int(hhmm[:2]) * 60 + int(hhmm[2:])


def _google_weekday(local: datetime) -> int:
    return local.isoweekday() % 7


def _is_always_open(periods: Iterable[OpeningPeriod]) -> bool:
    periods = list(periods)
    return len(periods) == 1 and periods[0].close is None and periods[0].open == "0000"


def _check_periods(periods: Tuple[OpeningPeriod, ...], local: datetime) -> bool:
    now = local.hour * 60 + local.minute
    today = _google_weekday(local)
    yesterday = (today - 1) % 7

    for period in periods:
        start = _to_minutes(period.open)
        if period.close is None:
            if period.day == today and now >= start:
                return True
            continue
        end = _to_minutes(period.close)
        overnight = end <= start
        if period.day == today:
            if overnight and now >= start:
                return True
            if not overnight and start <= now < end:
                return True
        elif period.day == yesterday and overnight and now < end:
            return True
    return False


def _time_token_to_minutes(hour: str, minute: Optional[str], meridiem: Optional[str]) -> int:
    h = int(hour) % 24
    if meridiem:
        meridiem = meridiem.upper()
        if meridiem == "PM" and h != 12:
            h += 12
        elif meridiem == "AM" and h == 12:
            h = 0
    return h * 60 + int(minute or 0)


def _line_for(lines: Tuple[str, ...], day_name: str) -> Optional[str]:
    line = next((l for l in lines if l.strip().lower().startswith(day_name)), None)
    if line is None:
        return None
    return line.replace("\u202f", " ").replace("\u2009", " ").replace("\xa0", " ")


def _line_ranges(text: str) -> List[Tuple[int, int]]:
    return [
        (_time_token_to_minutes(sh, sm, sap or eap), _time_token_to_minutes(eh, em, eap))
        for sh, sm, sap, eh, em, eap in _RANGE_RE.findall(text)
    ]


def _check_weekday_text(lines: Tuple[str, ...], local: datetime) -> Optional[HoursCheck]:
    weekday = _google_weekday(local)
    day_name = WEEKDAY_NAMES[weekday]
    now = local.hour * 60 + local.minute

    # Early hours may still belong to yesterday's late opening.
    previous = _line_for(lines, WEEKDAY_NAMES[(weekday - 1) % 7])
    if previous is not None and "closed" not in previous.lower():
        for start, end in _line_ranges(previous):
            if end <= start and now < end:
                return HoursCheck(open=True, confidence="medium")

    text = _line_for(lines, day_name)
    if text is None:
        return None
    lowered = text.lower()
    if "closed" in lowered:
        return HoursCheck(open=False, confidence="medium", reason=f"Closed on {day_name.title()}")
    if "24 hours" in lowered:
        return HoursCheck(open=True, confidence="medium", reason="Open 24 hours")

    ranges = _line_ranges(text)
    if not ranges:
        return None

    for start, end in ranges:
        if end <= start:
            if now >= start:
                return HoursCheck(open=True, confidence="medium")
        elif start <= now < end:
            return HoursCheck(open=True, confidence="medium")
    return HoursCheck(open=False, confidence="medium", reason=f"Outside listed hours: {text}")


def is_open_at(
    venue: Union[Venue, OpeningHours, None],
    timestamp: datetime,
    timezone: Union[str, tzinfo],
) -> HoursCheck:
    """Decide whether the venue is open at ``timestamp``.

    Missing data is treated as open with ``confidence="unknown"``.
    """
    hours = venue.opening_hours if isinstance(venue, Venue) else venue
    if hours is None:
        return HoursCheck(open=True, confidence="unknown", reason="No opening hours available")

    tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
    local = timestamp.astimezone(tz)

    if hours.periods:
        if _is_always_open(hours.periods):
            return HoursCheck(open=True, confidence="high", reason="Open 24 hours")
        if _check_periods(hours.periods, local):
            return HoursCheck(open=True, confidence="high")
        return HoursCheck(
            open=False,
            confidence="high",
            reason=f"Closed at {format_hhmm(local.strftime('%H%M'))} on {WEEKDAY_NAMES[_google_weekday(local)].title()}",
        )

    if hours.weekday_text:
        result = _check_weekday_text(hours.weekday_text, local)
        if result is not None:
            return result
        return HoursCheck(open=True, confidence="low", reason="Could not parse listed hours")

    return HoursCheck(open=True, confidence="unknown", reason="No opening hours available")


def format_hhmm(hhmm: str) -> str:
    """``"1730"`` -> ``"5:30 PM"``."""
    hour, minute = int(hhmm[:2]), int(hhmm[2:])
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


def suggest_alternative_times(
    hours: Optional[OpeningHours],
    timestamp: datetime,
    timezone: Union[str, tzinfo],
    limit: int = 3,
) -> List[str]:
    """Return up to ``limit`` ``HH:MM`` times on the same local day when the venue is open."""
    if hours is None or not hours.periods:
        return []
    tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
    local = timestamp.astimezone(tz)
    today = _google_weekday(local)

    suggestions: List[str] = []
    for period in sorted((p for p in hours.periods if p.day == today), key=lambda p: p.open):
        start = _to_minutes(period.open)
        end = _to_minutes(period.close) if period.close else 24 * 60
        if end <= start:
            end = 24 * 60
        slot = start
        while slot < end and len(suggestions) < limit:
            suggestions.append(f"{slot // 60:02d}:{slot % 60:02d}")
            slot += 60
        if len(suggestions) >= limit:
            break
    return suggestions


__all__ = [
    "format_hhmm",
    "is_open_at",
    "parse_opening_hours",
    "suggest_alternative_times",
]
