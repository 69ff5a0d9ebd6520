"""Tests for time normalization and zoned timestamps."""

from __future__ import annotations

import time
from datetime import date, timezone

import pytest

from tools import time_parser
from tools.time_parser import format_display_time, normalize_time, parse_time, to_zoned_timestamp


@pytest.mark.parametrize(
    "text, expected",
    [
        ("15:30", "15:30"),
        ("9:05", "09:05"),
        ("3pm", "15:00"),
        ("7 p.m.", "19:00"),
        ("12am", "00:00"),
        ("12pm", "12:00"),
        ("around 3pm", "15:00"),
        ("noon", "12:00"),
        ("morning", "09:00"),
        ("afternoon", "14:00"),
        ("evening", "18:00"),
        ("night", "20:00"),
        ("late afternoon", "16:00"),
        ("dinner", "19:00"),
    ],
)
def test_normalize_time_rules(text, expected):
    assert normalize_time(text) == expected


def test_explicit_time_beats_named_period():
    assert normalize_time("morning at 10:30") == "10:30"


def test_bare_hour_uses_evening_context():
    parsed = parse_time("at 7", "drinks in Chelsea")
    assert parsed.hhmm == "19:00"
    assert parsed.ambiguous is True
    assert parsed.source == "bare_hour"


def test_bare_hour_uses_morning_context():
    parsed = parse_time("7", "breakfast")
    assert parsed.hhmm == "07:00"
    assert parsed.ambiguous is True


def test_bare_hour_without_context():
    assert parse_time("3").hhmm == "15:00"
    assert parse_time("9").hhmm == "09:00"
    assert parse_time("at 12").hhmm == "12:00"
    assert parse_time("at 19").ambiguous is False


def test_bare_twelve_is_noon_but_flagged():
    parsed = parse_time("at 12", "lunch")
    assert parsed.hhmm == "12:00"
    assert parsed.ambiguous is True


def test_coffee_is_morning_context():
    parsed = parse_time("6", "coffee")
    assert parsed.hhmm == "06:00"
    assert parsed.ambiguous is True
    assert parse_time("6", "coffee and cocktails").hhmm == "18:00"


def test_unparseable_defaults_to_noon_and_is_ambiguous():
    parsed = parse_time("whenever")
    assert parsed.hhmm == "12:00"
    assert parsed.ambiguous is True
    assert parse_time(None).source == "default"


def test_zoned_timestamp_is_city_local():
    ts = to_zoned_timestamp("15:00", date(2025, 7, 1), "Europe/London")
    assert ts.utcoffset().total_seconds() == 3600
    assert ts.astimezone(timezone.utc).hour == 14


def test_display_round_trip_ignores_host_timezone(monkeypatch):
    """"3pm" shows as "3:00 PM" in London even when the host runs in another zone."""
    if not hasattr(time, "tzset"):
        pytest.skip("tzset not available on this platform")
    monkeypatch.setenv("TZ", "America/Los_Angeles")
    time.tzset()
    try:
        hhmm = normalize_time("3pm")
        ts = to_zoned_timestamp(hhmm, date(2025, 3, 14), "Europe/London")
        assert format_display_time(ts, "Europe/London") == "3:00 PM"
        assert format_display_time(ts.astimezone(timezone.utc), "Europe/London") == "3:00 PM"
    finally:
        monkeypatch.undo()
        time.tzset()


def test_minute_helpers():
    assert time_parser.add_minutes("23:30", 90) == "23:59"
    assert time_parser.minutes_to_hhmm(605) == "10:05"
    assert time_parser.hhmm_to_minutes("01:30") == 90
