from abc import ABC, abstractmethod
from typing import List, Optional

from gamepulse.data_models import Game, JobState, ProcessingStatus, RecentGame, Review, Summary


class RecordStore(ABC):
    @abstractmethod
    def save_game(self, game: Game):
        pass

    @abstractmethod
    def get_game(self, app_id: int) -> Optional[Game]:
        pass

    @abstractmethod
    def save_reviews(self, app_id: int, reviews: List[Review]):
        """Insert or replace a batch of reviews for one game, all or nothing."""
        pass

    @abstractmethod
    def get_reviews(self, app_id: int, limit: Optional[int] = None) -> List[Review]:
        pass

    @abstractmethod
    def save_summary(self, app_id: int, summary: Summary) -> Summary:
        pass

    @abstractmethod
    def get_summary(self, app_id: int) -> Optional[Summary]:
        pass

    @abstractmethod
    def get_recent_analyzed(self, limit: int = 10) -> List[RecentGame]:
        pass

    @abstractmethod
    def clear_cache(self):
        pass

    @abstractmethod
    def add_to_processing_queue(self, app_id: int) -> ProcessingStatus:
        pass

    @abstractmethod
    def set_processing_status(
        self,
        job_id: int,
        status: JobState,
        progress: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        """Returns False when the update was ignored (unknown or already completed job)."""
        pass

    @abstractmethod
    def get_processing_status(self, app_id: int) -> Optional[ProcessingStatus]:
        pass

    @abstractmethod
    def get_processing_queue(self) -> List[ProcessingStatus]:
        pass
