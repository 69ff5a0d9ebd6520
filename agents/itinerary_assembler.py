# agents/itinerary_assembler.py
"""ItineraryAssembler: schedule slots and turn chosen venues into an Itinerary.

Scheduling is a greedy single pass in mention order. Slots with a time keep
it. A run of slots without one is laid out every two hours, starting 30
minutes after the timed slot before it, or at the start time (10:00 by
default, 09:00 on later days of a multi-day trip). A run that would collide
with the next timed slot is squeezed into the gap instead. For cities with an
area matrix, runs of flexible entries between fixed anchors are reordered by
nearest neighbour and take over the time positions of the run, so fixed
entries never move.
"""
from __future__ import annotations

import logging
from datetime import date as Date
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tools.time_parser import hhmm_to_minutes, minutes_to_hhmm, parse_time, shift_days, to_zoned_timestamp
from tools.travel_time import TravelEstimator, get_travel_estimator, total_minutes
from workflows.schemas import ActivitySlot, CityConfig, Itinerary, ItineraryEntry, VenueChoice

logger = logging.getLogger(__name__)

FIRST_DAY_START = "10:00"
LATER_DAY_START = "09:00"
FLEXIBLE_SPACING_MINUTES = 120
AFTER_FIXED_GAP_MINUTES = 30
FIXED_DURATION_MINUTES = 60
FLEXIBLE_DURATION_MINUTES = 90
MIN_ENTRIES_FOR_OPTIMIZATION = 3

Stop = Tuple[ActivitySlot, VenueChoice]


def slot_duration(slot: ActivitySlot) -> int:
    if slot.duration_minutes:
        return slot.duration_minutes
    return FIXED_DURATION_MINUTES if slot.is_fixed else FLEXIBLE_DURATION_MINUTES


def lay_out_run(
    run: Sequence[ActivitySlot],
    previous: Optional[int],
    following: Optional[int],
    day_start: int,
) -> List[ActivitySlot]:
    """Give a run of timeless slots times between their timed neighbours.

    ``previous`` and ``following`` are minutes past midnight. The run starts
    30 minutes after ``previous`` (or at ``day_start``) with two hours between
    slots. If that would reach ``following``, the run is spread evenly across
    the gap so every slot stays before the next timed one.
    """
    if not run:
        return []
    start = previous + AFTER_FIXED_GAP_MINUTES if previous is not None else day_start
    times = [start + index * FLEXIBLE_SPACING_MINUTES for index in range(len(run))]
    if following is not None and (previous is None or following > previous) and times[-1] >= following:
        floor = previous if previous is not None else max(0, following - len(run) * FLEXIBLE_SPACING_MINUTES)
        step = (following - floor) / (len(run) + 1)
        times = [int(floor + step * (index + 1)) for index in range(len(run))]
    return [slot.model_copy(update={"time": minutes_to_hhmm(minutes)}) for slot, minutes in zip(run, times)]


def build_title(activities: Sequence[str], query: str, city: CityConfig) -> str:
    unique: List[str] = []
    for activity in activities:
        text = activity.strip()
        if text and text.lower() not in (u.lower() for u in unique):
            unique.append(text)
    if unique:
        return f"{', '.join(unique[:3])} in {city.name}"
    return f"Trip: {query[:50]}... in {city.name}"


def build_description(query: str, city: CityConfig) -> str:
    return f'Generated for {city.name} from: "{query}"'


class ItineraryAssembler:
    def __init__(self, city: CityConfig, estimator: Optional[TravelEstimator] = None) -> None:
        self.city = city
        self.estimator = estimator or get_travel_estimator(city)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(
        self,
        slots: Sequence[ActivitySlot],
        start_time: Optional[str] = None,
        trip_duration: int = 1,
    ) -> List[ActivitySlot]:
        """Give every slot a time and return them ordered by (day, time)."""
        days = max(1, trip_duration)
        first_start = parse_time(start_time).hhmm if start_time else FIRST_DAY_START

        by_day: Dict[int, List[ActivitySlot]] = {}
        for slot in slots:
            day = min(max(1, slot.day), days)
            if day != slot.day:
                slot = slot.model_copy(update={"day": day})
            by_day.setdefault(day, []).append(slot)

        scheduled: List[ActivitySlot] = []
        for day in sorted(by_day):
            day_start = hhmm_to_minutes(first_start if day == 1 else LATER_DAY_START)
            previous: Optional[int] = None
            run: List[ActivitySlot] = []
            for slot in by_day[day]:
                if not slot.is_scheduled:
                    run.append(slot)
                    continue
                minutes = hhmm_to_minutes(slot.time)
                scheduled.extend(lay_out_run(run, previous, minutes, day_start))
                scheduled.append(slot)
                run = []
                previous = minutes if previous is None else max(previous, minutes)
            scheduled.extend(lay_out_run(run, previous, None, day_start))

        indexed = list(enumerate(scheduled))
        indexed.sort(key=lambda item: (item[1].day, hhmm_to_minutes(item[1].time), item[0]))
        return [slot for _, slot in indexed]

    def timestamp_for(self, slot: ActivitySlot, date: Date) -> datetime:
        return to_zoned_timestamp(slot.time, shift_days(date, slot.day - 1), self.city.tz)

    # ------------------------------------------------------------------
    # Route optimization
    # ------------------------------------------------------------------

    def optimize_route(self, stops: Sequence[Stop]) -> List[Stop]:
        """Reorder runs of flexible stops between pinned anchors, within each day.

        Fixed stops and stops already placed "nearby" the previous one are pinned.

        Each reordered stop takes the time of the position it moves into, so
        the overall timeline stays ordered and fixed stops keep their times.
        """
        if not self.estimator.has_area_matrix or len(stops) < MIN_ENTRIES_FOR_OPTIMIZATION:
            return list(stops)

        result: List[Stop] = []
        run: List[Stop] = []

        def flush() -> None:
            if len(run) > 1:
                anchor = result[-1][1].venue if result and result[-1][0].day == run[0][0].day else None
                order = self.estimator.optimize_order([choice.venue for _, choice in run], start=anchor)
                times = [slot.time for slot, _ in run]
                for position, index in enumerate(order):
                    slot, choice = run[index]
                    result.append((slot.model_copy(update={"time": times[position]}), choice))
            else:
                result.extend(run)
            run.clear()

        for stop in stops:
            slot = stop[0]
            pinned = slot.is_fixed or slot.resolved_address is not None
            if pinned or (run and run[0][0].day != slot.day):
                flush()
            if pinned:
                result.append(stop)
            else:
                run.append(stop)
        flush()
        return result

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def assemble(
        self,
        stops: Sequence[Stop],
        *,
        query: str,
        date: Date,
        trip_duration: int = 1,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Itinerary:
        """Build the final itinerary from scheduled slots and their chosen venues."""
        ordered = self.optimize_route(stops)
        ordered = sorted(
            enumerate(ordered),
            key=lambda item: (item[1][0].day, hhmm_to_minutes(item[1][0].time), item[0]),
        )
        ordered = [stop for _, stop in ordered]

        entries: List[ItineraryEntry] = []
        for index, (slot, choice) in enumerate(ordered):
            following = ordered[index + 1] if index + 1 < len(ordered) else None
            travel, mode = None, None
            if following is not None and following[0].day == slot.day:
                travel, mode = self.estimator.minutes_between(choice.venue, following[1].venue)

            entries.append(
                ItineraryEntry(
                    venue=choice.venue,
                    scheduled_time=self.timestamp_for(slot, date),
                    duration_minutes=slot_duration(slot),
                    travel_time_to_next_minutes=travel,
                    travel_mode=mode,
                    activity=slot.activity,
                    venue_type=slot.venue_type,
                    is_fixed=slot.is_fixed,
                    day=slot.day,
                    time_ambiguous=slot.time_ambiguous,
                    hours=choice.hours,
                    weather=choice.weather,
                    substitution_reason=choice.substitution_reason,
                    alternatives=tuple(choice.alternatives),
                    caveats=tuple(choice.caveats),
                )
            )

        itinerary = Itinerary(
            title=build_title([slot.activity for slot, _ in ordered], query, self.city),
            description=build_description(query, self.city),
            query=query,
            date=date,
            city_slug=self.city.slug,
            entries=tuple(entries),
            total_travel_time=total_minutes(e.travel_time_to_next_minutes for e in entries),
            trip_duration=max(1, trip_duration),
            created_at=datetime.now(timezone.utc),
            meta=dict(meta or {}),
        )
        logger.info(f"Assembled {len(entries)} entries for {self.city.slug} ({itinerary.total_travel_time} min travel)")
        return itinerary


__all__ = [
    "ItineraryAssembler",
    "build_description",
    "build_title",
    "lay_out_run",
    "slot_duration",
]
