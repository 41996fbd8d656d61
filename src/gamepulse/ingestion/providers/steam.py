import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from gamepulse import config
from gamepulse.data_models import Game, GameSearchResult, Review, ReviewFetchOptions
from gamepulse.errors import ErrorKind, SteamAPIError, classify_http_error
from gamepulse.logging import get_logger
from .provider import BaseReviewProvider

logger = get_logger(__name__)

ERROR_MESSAGES = {
    ErrorKind.NETWORK_UNREACHABLE: "Network error: Unable to connect to Steam API",
    ErrorKind.TIMEOUT: "Request timeout: Steam API took too long to respond",
    ErrorKind.ACCESS_DENIED: "Access denied: Steam API blocked the request",
    ErrorKind.RATE_LIMITED: "Rate limited: Too many requests to Steam API",
    ErrorKind.SERVER_ERROR: "Steam API server error",
    ErrorKind.NOT_FOUND: "Steam API resource not found",
}

# Served when the store search endpoint refuses us (403/429).
POPULAR_GAMES = [
    (730, "Counter-Strike 2", "Free"),
    (570, "Dota 2", "Free"),
    (440, "Team Fortress 2", "Free"),
    (1172470, "Apex Legends", "Free"),
    (271590, "Grand Theft Auto V", "$29.99"),
    (413150, "Stardew Valley", "$14.99"),
    (1245620, "ELDEN RING", "$59.99"),
    (1938090, "Call of Duty®", "$69.99"),
    (2369390, "Lethal Company", "$9.99"),
    (892970, "Valheim", "$19.99"),
]


def header_image_url(app_id: int) -> str:
    return f"{config.STEAM_CDN_URL}/{app_id}/header.jpg"


class SteamReviewProvider(BaseReviewProvider):
    BASE_URL = config.STEAM_STORE_URL

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        page_delay: float = config.REVIEW_PAGE_DELAY_SECONDS,
        max_requests: int = config.MAX_REVIEW_REQUESTS,
        batch_size: int = config.REVIEW_BATCH_SIZE,
        timeout: float = config.STEAM_TIMEOUT_SECONDS,
    ):
        self.client = client or httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"User-Agent": config.STEAM_USER_AGENT},
            timeout=timeout,
        )
        self.page_delay = page_delay
        self.max_requests = max_requests
        self.batch_size = batch_size

    async def aclose(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _get_json(self, path: str, params: Dict[str, Any], action: str) -> Any:
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            kind = classify_http_error(e)
            message = ERROR_MESSAGES.get(kind, f"Failed to {action}: {e}")
            logger.error(f"Steam request {path} failed ({kind.value}): {e}")
            raise SteamAPIError(message, kind) from e
        except ValueError as e:
            logger.error(f"Steam request {path} returned invalid JSON: {e}")
            raise SteamAPIError(f"Failed to {action}: invalid response from Steam", ErrorKind.MALFORMED_RESPONSE) from e

    async def search_games(self, query: str, max_results: int = 20) -> List[GameSearchResult]:
        logger.info(f"Searching Steam for: {query}")
        try:
            data = await self._get_json(
                "/api/storesearch/",
                {"term": query, "l": "english", "cc": "US"},
                action="search Steam games",
            )
        except SteamAPIError as e:
            if e.kind in (ErrorKind.ACCESS_DENIED, ErrorKind.RATE_LIMITED):
                logger.warning(f"Steam search unavailable ({e.kind.value}), using popular games list")
                return self.search_games_fallback(query, max_results)
            raise

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []

        try:
            return [self._parse_search_item(item) for item in items[:max_results]]
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            logger.error(f"Malformed Steam search result for '{query}': {e!r}")
            raise SteamAPIError(
                "Failed to search Steam games: malformed search result from Steam",
                ErrorKind.MALFORMED_RESPONSE,
            ) from e

    @staticmethod
    def _parse_search_item(item: Dict[str, Any]) -> GameSearchResult:
        price = item.get("price")
        if not price:
            label = "Free"
        elif isinstance(price.get("final"), (int, float)):
            label = f"${price['final'] / 100:.2f}"
        else:
            label = "Price not available"
        return GameSearchResult(
            app_id=item["id"],
            name=item["name"],
            price=label,
            header_image=item.get("tiny_image") or header_image_url(item["id"]),
        )

    def search_games_fallback(self, query: str, max_results: int = 20) -> List[GameSearchResult]:
        needle = query.lower()
        matches = [g for g in POPULAR_GAMES if needle in g[1].lower()][:max_results]

        if not matches:
            return [
                GameSearchResult(
                    app_id=app_id,
                    name=f"{name} (showing popular games)",
                    price=price,
                    header_image=header_image_url(app_id),
                    developer="Various",
                    release_date="Various",
                )
                for app_id, name, price in POPULAR_GAMES[:3]
            ]

        return [
            GameSearchResult(app_id=app_id, name=name, price=price, header_image=header_image_url(app_id))
            for app_id, name, price in matches
        ]

    async def get_game_details(self, app_id: int) -> Game:
        data = await self._get_json(
            "/api/appdetails",
            {"appids": app_id, "l": "english"},
            action="fetch game details",
        )
        entry = data.get(str(app_id)) if isinstance(data, dict) else None
        if not entry or not entry.get("success") or not entry.get("data"):
            raise SteamAPIError(f"Game {app_id} not found", ErrorKind.NOT_FOUND)

        details = entry["data"]
        if details.get("is_free"):
            price = "Free"
        elif details.get("price_overview"):
            price = details["price_overview"].get("final_formatted", "Price not available")
        else:
            price = "Price not available"

        return Game(
            app_id=app_id,
            name=details["name"],
            developer=(details.get("developers") or ["Unknown"])[0],
            publisher=(details.get("publishers") or ["Unknown"])[0],
            release_date=(details.get("release_date") or {}).get("date") or "Unknown",
            price=price,
            description=details.get("short_description") or "No description available",
            header_image=details.get("header_image"),
            genres=details.get("genres") or [],
            categories=details.get("categories") or [],
        )

    async def fetch_reviews_iter(self, app_id: int, options: Optional[ReviewFetchOptions] = None) -> AsyncIterator[Review]:
        options = options or ReviewFetchOptions()
        cursor = "*"
        seen = set()
        request_count = 0

        logger.info(f"Fetching reviews for app {app_id}, max_reviews={options.max_reviews}")

        while len(seen) < options.max_reviews:
            if request_count >= self.max_requests:
                logger.warning(f"Stopped after {request_count} requests for app {app_id} (request cap)")
                break
            if request_count:
                await asyncio.sleep(self.page_delay)
            request_count += 1

            params = {
                "json": 1,
                "cursor": cursor,
                "language": options.language,
                "filter": "recent",
                "review_type": options.review_type.value,
                "purchase_type": "all",
                "num_per_page": min(self.batch_size, options.max_reviews - len(seen)),
            }
            data = await self._get_json(f"/appreviews/{app_id}", params, action="fetch game reviews")

            if not isinstance(data, dict) or data.get("success") != 1 or not data.get("reviews"):
                logger.info(f"No more reviews for app {app_id}")
                break

            for raw in data["reviews"]:
                try:
                    review = self._parse_review(raw, app_id)
                except (KeyError, TypeError, AttributeError, ValueError) as e:
                    logger.error(f"Malformed review payload for app {app_id}: {e!r}")
                    raise SteamAPIError(
                        "Failed to fetch game reviews: malformed review from Steam",
                        ErrorKind.MALFORMED_RESPONSE,
                    ) from e
                # Steam occasionally repeats reviews across pages
                if review.recommendationid in seen:
                    continue
                seen.add(review.recommendationid)
                yield review
                if len(seen) >= options.max_reviews:
                    break

            next_cursor = data.get("cursor")
            if not next_cursor or next_cursor == cursor:
                break
            cursor = next_cursor

        logger.info(f"Fetched {len(seen)} reviews for app {app_id} in {request_count} requests")

    @staticmethod
    def _parse_review(raw: Dict[str, Any], app_id: int) -> Review:
        author = raw.get("author") or {}
        return Review(
            app_id=app_id,
            recommendationid=str(raw["recommendationid"]),
            author_steamid=author.get("steamid"),
            playtime_forever=author.get("playtime_forever") or 0,
            playtime_last_two_weeks=author.get("playtime_last_two_weeks") or 0,
            playtime_at_review=author.get("playtime_at_review"),
            last_played=author.get("last_played"),
            language=raw.get("language") or "english",
            review=raw.get("review") or "",
            timestamp_created=raw.get("timestamp_created") or 0,
            timestamp_updated=raw.get("timestamp_updated"),
            voted_up=bool(raw.get("voted_up")),
            votes_up=raw.get("votes_up") or 0,
            votes_funny=raw.get("votes_funny") or 0,
            weighted_vote_score=raw.get("weighted_vote_score") or 0.0,
            comment_count=raw.get("comment_count") or 0,
            steam_purchase=bool(raw.get("steam_purchase")),
            received_for_free=bool(raw.get("received_for_free")),
            written_during_early_access=bool(raw.get("written_during_early_access")),
        )
