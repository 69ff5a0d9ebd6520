# tools/query_complexity.py
"""Rough complexity scoring for planning queries.

The score is informational: it is logged and stored on the itinerary meta so
slow or degraded plans can be correlated with the kind of request that
produced them.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

_TIME_PATTERNS = (
    re.compile(r"\b(\d{1,2}:\d{2}|\d{1,2}\s*(?:am|pm))\b"),
    re.compile(r"\b(morning|afternoon|evening|night|noon|midnight)\b"),
    re.compile(r"\b(in \d+ hours?|hours? later|\d+ hours? from)\b"),
    re.compile(r"\b(early|late|around|about|roughly)\b"),
)
_SEQUENCE_RE = re.compile(r"\b(before|after|then|next|followed by|later|afterwards)\b")
_LOCATION_PATTERNS = (
    re.compile(r"\b(in|at|near|around|by|close to|next to)\s+[A-Z][a-z]+"),
    re.compile(r"\b(street|st|avenue|ave|road|rd|boulevard|blvd|square)\b", re.IGNORECASE),
    re.compile(r"\b(then go to|move to|head to|walk to|next stop)\b", re.IGNORECASE),
)
_ACTIVITY_WORDS = (
    "coffee", "lunch", "dinner", "breakfast", "brunch", "drinks", "cocktails",
    "museum", "gallery", "show", "theater", "theatre", "concert", "shopping", "walk",
    "visit", "see", "explore", "tour", "meeting", "appointment", "work",
)
_ACTIVITY_RE = re.compile(r"\b(" + "|".join(_ACTIVITY_WORDS) + r")\b")
_MULTI_DAY_RE = re.compile(r"\b(day \d|\d+ days?|weekend|tomorrow|next day|multi-day)\b")
_CONSTRAINT_RE = re.compile(
    r"\b(quiet|cheap|budget|expensive|upscale|vegan|vegetarian|halal|kosher|gluten|wheelchair|accessible|wifi|outdoor|kid|family)\b"
)


@dataclass
class ComplexityAnalysis:
    level: str
    score: int
    factors: List[str] = field(default_factory=list)
    time_references: int = 0
    location_references: int = 0
    activity_count: int = 0
    constraints: int = 0
    sequencing: bool = False
    multi_day: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def analyze_query_complexity(query: str) -> ComplexityAnalysis:
    text = query or ""
    lowered = text.lower()
    factors: List[str] = []
    score = 0

    time_refs = sum(len(p.findall(lowered)) for p in _TIME_PATTERNS)
    if time_refs > 3:
        score += 15
        factors.append("Multiple time references")
    elif time_refs > 1:
        score += 8
        factors.append("Some time complexity")

    location_refs = sum(len(p.findall(text)) for p in _LOCATION_PATTERNS)
    if location_refs > 4:
        score += 20
        factors.append("Multiple locations with routing")
    elif location_refs > 2:
        score += 10
        factors.append("Several locations mentioned")

    activities = len(_ACTIVITY_RE.findall(lowered))
    if activities > 5:
        score += 25
        factors.append("Many activities planned")
    elif activities > 3:
        score += 15
        factors.append("Several activities")

    constraints = len(_CONSTRAINT_RE.findall(lowered))
    if constraints:
        score += min(15, constraints * 5)
        factors.append("Venue constraints")

    sequencing = bool(_SEQUENCE_RE.search(lowered))
    if sequencing:
        score += 10
        factors.append("Sequenced activities")

    multi_day = bool(_MULTI_DAY_RE.search(lowered))
    if multi_day:
        score += 15
        factors.append("Multi-day planning")

    score = min(score, 100)
    if score >= 60:
        level = "very_complex"
    elif score >= 35:
        level = "complex"
    elif score >= 15:
        level = "moderate"
    else:
        level = "simple"

    return ComplexityAnalysis(
        level=level,
        score=score,
        factors=factors,
        time_references=time_refs,
        location_references=location_refs,
        activity_count=activities,
        constraints=constraints,
        sequencing=sequencing,
        multi_day=multi_day,
    )


__all__ = ["ComplexityAnalysis", "analyze_query_complexity"]
