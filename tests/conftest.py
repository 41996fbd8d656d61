import json
from typing import Callable, List, Optional

import httpx
import pytest

from gamepulse.config import LLMProvider, ProviderConfig
from gamepulse.data_models import Game, GameSearchResult, Review, ReviewFetchOptions
from gamepulse.ingestion.providers.provider import BaseReviewProvider
from gamepulse.storage.sql_store import SqlStore
from gamepulse.summarization import StaticCredentials, SummarizationClient

STEAM_BASE = "https://store.steampowered.com"

VALID_SUMMARY = {
    "overall_sentiment": 8.2,
    "sentiment_breakdown": {"positive": 70, "mixed": 20, "negative": 10},
    "positive_aspects": ["Deep strategic gameplay", "Free to play", "Regular updates"],
    "negative_aspects": ["Toxic community", "Steep learning curve"],
    "common_themes": [
        {"theme": "Gameplay", "mentions": 30, "sentiment": 8.5},
        {"theme": "Community", "mentions": 12, "sentiment": 3.0},
    ],
}


def make_review(app_id: int = 570, rid: str = "1", text: str = "A genuinely great game with lots to do", voted_up: bool = True, ts: int = 1700000000) -> Review:
    return Review(
        app_id=app_id,
        recommendationid=rid,
        author_steamid=f"7656{rid}",
        playtime_forever=1200,
        review=text,
        timestamp_created=ts,
        voted_up=voted_up,
        votes_up=3,
    )


def make_reviews(count: int, app_id: int = 570, start: int = 0) -> List[Review]:
    return [
        make_review(app_id=app_id, rid=str(start + i), voted_up=i % 3 != 0, ts=1700000000 + start + i)
        for i in range(count)
    ]


def make_game(app_id: int = 570, name: str = "Dota 2") -> Game:
    return Game(
        app_id=app_id,
        name=name,
        developer="Valve",
        publisher="Valve",
        release_date="9 Jul, 2013",
        price="Free",
        description="Every day, millions of players worldwide enter battle.",
        header_image=f"https://cdn.akamai.steamstatic.com/steam/apps/{app_id}/header.jpg",
        genres=[{"id": "1", "description": "Action"}],
        categories=[{"id": 1, "description": "Multi-player"}],
    )


def steam_raw_review(rid: str, voted_up: bool = True, text: str = "Really fun with friends, would recommend") -> dict:
    return {
        "recommendationid": rid,
        "author": {
            "steamid": f"7656119{rid}",
            "playtime_forever": 5000,
            "playtime_last_two_weeks": 100,
            "playtime_at_review": 4000,
            "last_played": 1700000500,
        },
        "language": "english",
        "review": text,
        "timestamp_created": 1700000000 + int(rid),
        "timestamp_updated": 1700000000 + int(rid),
        "voted_up": voted_up,
        "votes_up": 4,
        "votes_funny": 1,
        "weighted_vote_score": "0.523",
        "comment_count": 0,
        "steam_purchase": True,
        "received_for_free": False,
        "written_during_early_access": False,
    }


def steam_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=STEAM_BASE)


def llm_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def ollama_handler(text: str):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/generate"
        return httpx.Response(200, json={"model": "llama2", "response": text, "done": True})
    return handler


def ollama_summarizer(text: str) -> SummarizationClient:
    return SummarizationClient(
        ProviderConfig(provider=LLMProvider.OLLAMA),
        credentials=StaticCredentials({}),
        http_client=llm_client(ollama_handler(text)),
    )


class FakeReviewProvider(BaseReviewProvider):
    """In-memory storefront used by pipeline and API tests."""

    def __init__(self, games: Optional[dict] = None, reviews: Optional[dict] = None, error: Optional[Exception] = None):
        self.games = games or {}
        self.reviews = reviews or {}
        self.error = error
        self.detail_calls = 0
        self.review_calls = 0

    async def search_games(self, query: str, max_results: int = 20) -> List[GameSearchResult]:
        return [
            GameSearchResult(app_id=g.app_id, name=g.name, price=g.price, header_image=g.header_image)
            for g in self.games.values()
            if query.lower() in g.name.lower()
        ][:max_results]

    async def get_game_details(self, app_id: int) -> Game:
        from gamepulse.errors import ErrorKind, SteamAPIError

        self.detail_calls += 1
        if app_id not in self.games:
            raise SteamAPIError(f"Game {app_id} not found", ErrorKind.NOT_FOUND)
        return self.games[app_id]

    async def fetch_reviews_iter(self, app_id: int, options: Optional[ReviewFetchOptions] = None):
        options = options or ReviewFetchOptions()
        self.review_calls += 1
        if self.error is not None:
            raise self.error
        for review in self.reviews.get(app_id, [])[: options.max_reviews]:
            yield review


@pytest.fixture
def store(tmp_path):
    return SqlStore(connection_string=f"sqlite:///{tmp_path / 'test.db'}")


@pytest.fixture
def valid_summary_text():
    return "Here is the analysis you asked for:\n" + json.dumps(VALID_SUMMARY) + "\nHope this helps!"
