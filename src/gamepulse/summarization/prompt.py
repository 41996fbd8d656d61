"""
Prompt construction for review summarization.
"""

from typing import List, Optional

from gamepulse import config
from gamepulse.config import LLMProvider
from gamepulse.data_models import Game, Review

SYSTEM_PROMPT = "You are a helpful assistant that analyzes game reviews and provides structured JSON responses."

RESPONSE_SHAPE = """{
  "overall_sentiment": <number between 1-10>,
  "sentiment_breakdown": {
    "positive": <percentage of positive reviews>,
    "mixed": <percentage of mixed reviews>,
    "negative": <percentage of negative reviews>
  },
  "positive_aspects": [
    "<most commonly mentioned positive aspect>",
    "<second most common positive aspect>",
    "<third most common positive aspect>",
    "<fourth most common positive aspect>"
  ],
  "negative_aspects": [
    "<most commonly mentioned negative aspect>",
    "<second most common negative aspect>",
    "<third most common negative aspect>"
  ],
  "common_themes": [
    {
      "theme": "<theme name>",
      "mentions": <estimated number of mentions>,
      "sentiment": <sentiment score for this theme 1-10>
    }
  ]
}"""


def select_review_excerpts(
    reviews: List[Review],
    min_length: int = config.MIN_REVIEW_LENGTH,
    max_reviews: int = config.MAX_PROMPT_REVIEWS,
    max_chars: int = config.MAX_REVIEW_CHARS,
) -> List[str]:
    """Tagged, truncated excerpts of the reviews worth sending to the model."""
    excerpts = []
    for review in reviews:
        text = (review.review or "").strip()
        if len(text) <= min_length:
            continue
        tag = "POSITIVE" if review.voted_up else "NEGATIVE"
        excerpts.append(f"[{tag}] {text[:max_chars]}")
        if len(excerpts) >= max_reviews:
            break
    return excerpts


def build_summarization_prompt(
    reviews: List[Review],
    game: Optional[Game] = None,
    provider: LLMProvider = LLMProvider.OLLAMA,
) -> str:
    review_texts = "\n\n".join(select_review_excerpts(reviews))
    game_name = game.name if game else "Unknown Game"

    prompt = f"""Analyze the following Steam game reviews and provide a comprehensive summary.

Game: {game_name}
Total Reviews: {len(reviews)}

Reviews:
{review_texts}

Please provide your analysis in the following JSON structure:
{RESPONSE_SHAPE}

Focus on:
1. Overall sentiment score (1-10 scale)
2. Key positive and negative aspects mentioned frequently
3. Common themes like gameplay, graphics, performance, story, etc.
4. Accurate sentiment breakdown percentages"""

    # Local models drift into prose more often than the hosted ones
    if provider == LLMProvider.OLLAMA:
        prompt += "\n\nRespond only with valid JSON, no additional text."

    return prompt
