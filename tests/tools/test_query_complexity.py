"""Tests for query complexity scoring."""

from __future__ import annotations

from tools.query_complexity import analyze_query_complexity


def test_simple_query():
    result = analyze_query_complexity("coffee")
    assert result.level == "simple"
    assert result.score < 15


def test_sequenced_multi_activity_query_scores_higher():
    simple = analyze_query_complexity("lunch in Mayfair")
    busy = analyze_query_complexity(
        "Breakfast at 9am in Soho, then a museum, lunch at noon, coffee, shopping and dinner at 7pm "
        "in Chelsea, then drinks, cheap and vegan please, over 2 days"
    )
    assert busy.score > simple.score
    assert busy.level in {"complex", "very_complex"}
    assert busy.sequencing is True
    assert busy.multi_day is True
    assert "Sequenced activities" in busy.factors


def test_to_dict_round_trips_fields():
    payload = analyze_query_complexity("then dinner").to_dict()
    assert set(payload) >= {"level", "score", "factors", "sequencing", "multi_day"}
