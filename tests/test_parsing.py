import json

import pytest

from gamepulse.config import LLMProvider
from gamepulse.summarization.parsing import (
    FALLBACK_NOTICE,
    extract_json_object,
    normalize_percentages,
    parse_summary_response,
    validate_aspects,
    validate_sentiment,
    validate_sentiment_breakdown,
    validate_themes,
)
from gamepulse.summarization.prompt import build_summarization_prompt, select_review_excerpts

from conftest import VALID_SUMMARY, make_game, make_review


@pytest.mark.parametrize("value,expected", [
    (7.5, 7.5),
    ("7.5", 7.5),
    ("999", 10.0),
    (0, 1.0),
    (-3, 1.0),
    ("abc", 5.0),
    (None, 5.0),
    (True, 5.0),
    (float("nan"), 5.0),
    ([8], 5.0),
])
def test_validate_sentiment(value, expected):
    assert validate_sentiment(value) == expected


@pytest.mark.parametrize("breakdown", [
    {"positive": 70, "mixed": 20, "negative": 10},
    {"positive": 33, "mixed": 33, "negative": 33},
    {"positive": 1, "mixed": 1, "negative": 1},
    {"positive": 200, "mixed": 100, "negative": 0},
    {"positive": "50", "mixed": "30", "negative": "25"},
    {"positive": 0.6, "mixed": 0.25, "negative": 0.15},
    {"positive": -10, "mixed": 50, "negative": 50},
    {"positive": 1e308, "mixed": 1e308, "negative": 1},
    {"positive": 1e308, "mixed": 1, "negative": 1},
])
def test_breakdown_always_sums_to_100(breakdown):
    result = validate_sentiment_breakdown(breakdown)

    values = [result.positive, result.mixed, result.negative]
    assert sum(values) == 100
    assert all(0 <= v <= 100 for v in values)


def test_breakdown_keeps_exact_values():
    result = validate_sentiment_breakdown({"positive": 70, "mixed": 20, "negative": 10})

    assert (result.positive, result.mixed, result.negative) == (70, 20, 10)


def test_breakdown_zero_is_a_valid_share():
    result = validate_sentiment_breakdown({"positive": 100, "mixed": 0, "negative": 0})

    assert (result.positive, result.mixed, result.negative) == (100, 0, 0)


@pytest.mark.parametrize("breakdown", [
    None,
    "70/20/10",
    {"positive": 70, "mixed": 20},
    {"positive": "lots", "mixed": 20, "negative": 10},
    {"positive": 0, "mixed": 0, "negative": 0},
])
def test_breakdown_defaults(breakdown):
    result = validate_sentiment_breakdown(breakdown)

    assert (result.positive, result.mixed, result.negative) == (60, 25, 15)


def test_normalize_percentages_largest_remainder():
    assert normalize_percentages({"a": 1, "b": 1, "c": 1}) == {"a": 34, "b": 33, "c": 33}


def test_validate_aspects_filters_and_caps():
    aspects = ["Great music", 42, "", "  Smooth controls  ", None, "Co-op", "Story", "Art", "Price"]

    assert validate_aspects(aspects, 5) == ["Great music", "Smooth controls", "Co-op", "Story", "Art"]
    assert validate_aspects("not a list", 5) == []


def test_validate_themes():
    themes = [
        {"theme": "Gameplay", "mentions": "12", "sentiment": 11},
        {"theme": "", "mentions": 3, "sentiment": 5},
        "Graphics",
        {"theme": "Performance", "mentions": "many", "sentiment": "bad"},
        {"theme": "Story", "mentions": -4, "sentiment": 6},
    ]

    result = validate_themes(themes)

    assert [t.theme for t in result] == ["Gameplay", "Performance", "Story"]
    assert result[0].mentions == 12
    assert result[0].sentiment == 10.0
    assert result[1].mentions == 0
    assert result[1].sentiment == 5.0
    assert result[2].mentions == 0


def test_validate_themes_capped():
    themes = [{"theme": f"Theme {i}", "mentions": i, "sentiment": 5} for i in range(10)]

    assert len(validate_themes(themes)) == 6


def test_extract_json_from_prose():
    text = 'Sure! Here is the summary: {"overall_sentiment": 8, "note": "uses {braces}"} Let me know.'

    assert extract_json_object(text) == {"overall_sentiment": 8, "note": "uses {braces}"}


def test_extract_json_skips_invalid_candidates():
    text = 'Format: {like this} and the answer {"overall_sentiment": 6}'

    assert extract_json_object(text) == {"overall_sentiment": 6}


def test_extract_json_none():
    assert extract_json_object("I cannot help with that.") is None
    assert extract_json_object("") is None
    assert extract_json_object('{"unterminated": ') is None


def test_parse_valid_response():
    text = "```json\n" + json.dumps(VALID_SUMMARY) + "\n```"

    summary = parse_summary_response(text, review_count=42)

    assert summary.overall_sentiment == 8.2
    assert summary.sentiment_breakdown.positive == 70
    assert summary.positive_aspects == VALID_SUMMARY["positive_aspects"]
    assert summary.negative_aspects == VALID_SUMMARY["negative_aspects"]
    assert [t.theme for t in summary.common_themes] == ["Gameplay", "Community"]
    assert summary.review_count == 42
    assert summary.is_fallback is False


def test_parse_caps_aspect_lists():
    data = dict(VALID_SUMMARY, positive_aspects=[f"p{i}" for i in range(9)], negative_aspects=[f"n{i}" for i in range(9)])

    summary = parse_summary_response(json.dumps(data), review_count=3)

    assert len(summary.positive_aspects) == 5
    assert len(summary.negative_aspects) == 3


def test_huge_breakdown_values_do_not_discard_other_fields():
    data = dict(VALID_SUMMARY, sentiment_breakdown={"positive": 1e308, "mixed": 1, "negative": 1})

    summary = parse_summary_response(json.dumps(data), review_count=10)

    assert summary.is_fallback is False
    assert summary.overall_sentiment == 8.2
    assert summary.positive_aspects == VALID_SUMMARY["positive_aspects"]
    assert len(summary.common_themes) == 2
    assert (summary.sentiment_breakdown.positive, summary.sentiment_breakdown.mixed, summary.sentiment_breakdown.negative) == (100, 0, 0)


def test_parse_partial_response_uses_defaults():
    summary = parse_summary_response('{"overall_sentiment": "999"}', review_count=7)

    assert summary.overall_sentiment == 10.0
    assert (summary.sentiment_breakdown.positive, summary.sentiment_breakdown.mixed, summary.sentiment_breakdown.negative) == (60, 25, 15)
    assert summary.positive_aspects == []
    assert summary.is_fallback is False


@pytest.mark.parametrize("response", ["I cannot help with that.", "", None, "[1, 2, 3]"])
def test_parse_unusable_response_returns_fallback(response):
    summary = parse_summary_response(response, review_count=12)

    assert summary.is_fallback is True
    assert summary.notice == FALLBACK_NOTICE
    assert summary.overall_sentiment == 5.0
    assert (summary.sentiment_breakdown.positive, summary.sentiment_breakdown.mixed, summary.sentiment_breakdown.negative) == (34, 33, 33)
    assert summary.positive_aspects == []
    assert summary.negative_aspects == []
    assert summary.common_themes == []
    assert summary.review_count == 12


def test_select_review_excerpts():
    reviews = [
        make_review(rid="1", text="Too short", voted_up=True),
        make_review(rid="2", text="Exactly 10", voted_up=True),
        make_review(rid="3", text="Loved every minute of it", voted_up=True),
        make_review(rid="4", text="x" * 800, voted_up=False),
    ]

    excerpts = select_review_excerpts(reviews)

    assert excerpts[0] == "[POSITIVE] Loved every minute of it"
    assert excerpts[1] == "[NEGATIVE] " + "x" * 500
    assert len(excerpts) == 2


def test_select_review_excerpts_caps_count():
    reviews = [make_review(rid=str(i), text=f"Review number {i} is long enough") for i in range(600)]

    assert len(select_review_excerpts(reviews)) == 500


def test_prompt_contents():
    reviews = [make_review(rid="1", text="Loved every minute of it")]

    prompt = build_summarization_prompt(reviews, make_game(), LLMProvider.OPENAI)

    assert "Game: Dota 2" in prompt
    assert "Total Reviews: 1" in prompt
    assert "[POSITIVE] Loved every minute of it" in prompt
    assert '"sentiment_breakdown"' in prompt
    assert "Respond only with valid JSON" not in prompt


def test_ollama_prompt_demands_json_only():
    prompt = build_summarization_prompt([make_review()], None, LLMProvider.OLLAMA)

    assert "Game: Unknown Game" in prompt
    assert prompt.endswith("Respond only with valid JSON, no additional text.")
