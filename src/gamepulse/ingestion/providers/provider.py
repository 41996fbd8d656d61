from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional

from gamepulse.data_models import Game, GameSearchResult, Review, ReviewFetchOptions


class BaseReviewProvider(ABC):
    @abstractmethod
    async def search_games(self, query: str, max_results: int = 20) -> List[GameSearchResult]:
        pass

    @abstractmethod
    async def get_game_details(self, app_id: int) -> Game:
        pass

    @abstractmethod
    def fetch_reviews_iter(self, app_id: int, options: Optional[ReviewFetchOptions] = None) -> AsyncIterator[Review]:
        pass

    async def fetch_reviews(self, app_id: int, options: Optional[ReviewFetchOptions] = None) -> List[Review]:
        return [r async for r in self.fetch_reviews_iter(app_id, options)]
