"""Live check against the real Steam store. Needs network access."""

import asyncio
import sys

from gamepulse.data_models import ReviewFetchOptions
from gamepulse.ingestion.providers.steam import SteamReviewProvider
from gamepulse.logging import get_logger

logger = get_logger("smoke_steam")


async def main(query: str = "Dota"):
    async with SteamReviewProvider() as provider:
        results = await provider.search_games(query, max_results=5)
        for r in results:
            logger.info(f"{r.app_id}: {r.name} ({r.price})")
        if not results:
            logger.error(f"No games found for {query}")
            return

        game = await provider.get_game_details(results[0].app_id)
        logger.info(f"Details: {game.name} by {game.developer}, released {game.release_date}")

        reviews = await provider.fetch_reviews(game.app_id, ReviewFetchOptions(max_reviews=50))
        logger.info(f"Count: {len(reviews)}")
        if reviews:
            logger.info(f"Sample content: {reviews[0].review[:50]}...")


if __name__ == "__main__":
    asyncio.run(main(*sys.argv[1:2]))
