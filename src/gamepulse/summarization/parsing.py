"""
Parsing and validation of model output.

The model is asked for an exact JSON shape but nothing binds it to that
shape, so every field is validated on its own and a labelled fallback
summary replaces output that cannot be parsed at all.
"""

import json
import math
from typing import Any, List, Optional

from gamepulse import config
from gamepulse.data_models import SentimentBreakdown, Summary, Theme
from gamepulse.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SENTIMENT = 5.0
DEFAULT_BREAKDOWN = {"positive": 60, "mixed": 25, "negative": 15}
FALLBACK_BREAKDOWN = {"positive": 34, "mixed": 33, "negative": 33}
FALLBACK_NOTICE = (
    "Automatic summary unavailable: the model response could not be parsed. "
    "Scores are neutral placeholders."
)


def extract_json_object(text: str) -> Optional[dict]:
    """
    Return the first balanced {...} substring of text that parses as a JSON object.

    Braces inside JSON string literals are ignored while matching.
    """
    if not text:
        return None

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    try:
                        parsed = json.loads(text[start : i + 1])
                    except ValueError:
                        break
                    if isinstance(parsed, dict):
                        return parsed
                    break
        start = text.find("{", start + 1)
    return None


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def validate_sentiment(value: Any) -> float:
    score = _to_number(value)
    if score is None:
        return DEFAULT_SENTIMENT
    return float(max(1.0, min(10.0, score)))


def normalize_percentages(values: dict) -> dict:
    """Scale to sum exactly 100, handing rounding leftovers to the largest remainders."""
    # Relative to the peak first so huge finite inputs cannot overflow the sum
    peak = max(values.values())
    values = {k: v / peak for k, v in values.items()}
    total = sum(values.values())
    scaled = {k: v * 100.0 / total for k, v in values.items()}
    result = {k: int(math.floor(v)) for k, v in scaled.items()}
    leftover = 100 - sum(result.values())
    by_remainder = sorted(scaled, key=lambda k: scaled[k] - result[k], reverse=True)
    for key in by_remainder[:leftover]:
        result[key] += 1
    return result


def validate_sentiment_breakdown(breakdown: Any) -> SentimentBreakdown:
    if not isinstance(breakdown, dict):
        return SentimentBreakdown(**DEFAULT_BREAKDOWN)

    values = {}
    for key in ("positive", "mixed", "negative"):
        number = _to_number(breakdown.get(key))
        if number is None or math.isinf(number):
            return SentimentBreakdown(**DEFAULT_BREAKDOWN)
        values[key] = max(0.0, number)

    if sum(values.values()) <= 0:
        return SentimentBreakdown(**DEFAULT_BREAKDOWN)

    return SentimentBreakdown(**normalize_percentages(values))


def validate_aspects(aspects: Any, limit: int) -> List[str]:
    if not isinstance(aspects, list):
        return []
    cleaned = [a.strip() for a in aspects if isinstance(a, str) and a.strip()]
    return cleaned[:limit]


def validate_themes(themes: Any, limit: int = config.MAX_THEMES) -> List[Theme]:
    if not isinstance(themes, list):
        return []

    results = []
    for item in themes:
        if not isinstance(item, dict):
            continue
        name = item.get("theme")
        if name is None or not str(name).strip():
            continue
        mentions = _to_number(item.get("mentions"))
        if mentions is None or math.isinf(mentions):
            mentions = 0
        results.append(Theme(
            theme=str(name).strip(),
            mentions=max(0, int(mentions)),
            sentiment=validate_sentiment(item.get("sentiment")),
        ))
        if len(results) >= limit:
            break
    return results


def fallback_summary(review_count: int) -> Summary:
    return Summary(
        overall_sentiment=DEFAULT_SENTIMENT,
        sentiment_breakdown=SentimentBreakdown(**FALLBACK_BREAKDOWN),
        positive_aspects=[],
        negative_aspects=[],
        common_themes=[],
        review_count=review_count,
        is_fallback=True,
        notice=FALLBACK_NOTICE,
    )


def parse_summary_response(response: Optional[str], review_count: int) -> Summary:
    try:
        parsed = extract_json_object((response or "").strip())
        if parsed is None:
            raise ValueError("No valid JSON found in response")

        return Summary(
            overall_sentiment=validate_sentiment(parsed.get("overall_sentiment")),
            sentiment_breakdown=validate_sentiment_breakdown(parsed.get("sentiment_breakdown")),
            positive_aspects=validate_aspects(parsed.get("positive_aspects"), config.MAX_POSITIVE_ASPECTS),
            negative_aspects=validate_aspects(parsed.get("negative_aspects"), config.MAX_NEGATIVE_ASPECTS),
            common_themes=validate_themes(parsed.get("common_themes")),
            review_count=review_count,
        )
    except Exception as e:
        logger.warning(f"Failed to parse LLM response, using fallback summary: {e}")
        return fallback_summary(review_count)
