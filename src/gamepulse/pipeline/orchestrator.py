"""
Pipeline Orchestrator.

Runs one analysis job per game: game metadata -> reviews -> summary -> status.
"""

import asyncio
from typing import Dict, Iterable, Optional, Union

from gamepulse.config import ProviderConfig
from gamepulse.data_models import (
    AnalysisResult,
    JobState,
    ProcessingStatus,
    ProgressEvent,
    ReviewFetchOptions,
)
from gamepulse.ingestion.providers.provider import BaseReviewProvider
from gamepulse.ingestion.providers.steam import SteamReviewProvider
from gamepulse.logging import get_logger
from gamepulse.storage import RecordStore, StorageType, get_storage
from gamepulse.summarization import CredentialProvider, SummarizationClient
from .events import ProgressChannel

logger = get_logger(__name__)


class AnalysisPipeline:
    """
    Sequences a single job:

    processing 0% -> game resolved 20% -> reviews saved 60% -> completed 100%

    Any failure marks the job failed with the error message and re-raises.
    Writes committed before the failure (e.g. reviews) are kept.
    """

    def __init__(
        self,
        store: RecordStore,
        review_provider: BaseReviewProvider,
        summarizer: SummarizationClient,
        events: Optional[ProgressChannel] = None,
    ):
        self.store = store
        self.review_provider = review_provider
        self.summarizer = summarizer
        self.events = events if events is not None else ProgressChannel()

    async def aclose(self):
        await self.summarizer.aclose()
        close = getattr(self.review_provider, "aclose", None)
        if close is not None:
            await close()

    def _emit(self, job_id: int, app_id: int, step: str, percent: int, message: str):
        try:
            self.events.publish(ProgressEvent(job_id=job_id, app_id=app_id, step=step, percent=percent, message=message))
        except Exception as e:
            logger.warning(f"Dropped progress event for job {job_id}: {e}")

    def _advance(self, job_id: int, app_id: int, step: str, percent: int, message: str):
        self.store.set_processing_status(job_id, JobState.PROCESSING, percent)
        self._emit(job_id, app_id, step, percent, message)

    async def run_analysis(
        self,
        app_id: int,
        options: Optional[ReviewFetchOptions] = None,
        job_id: Optional[int] = None,
    ) -> AnalysisResult:
        options = options or ReviewFetchOptions()

        if job_id is None:
            job_id = self.store.add_to_processing_queue(app_id).job_id
            self._emit(job_id, app_id, "queued", 0, "Queued for analysis")

        logger.info(f"Starting analysis job {job_id} for app {app_id}")
        try:
            self._advance(job_id, app_id, "starting", 0, "Starting analysis")

            # STAGE 1: Game metadata, network only on a cache miss
            game = self.store.get_game(app_id)
            if game is None:
                game = await self.review_provider.get_game_details(app_id)
                self.store.save_game(game)
                detail_message = f"Fetched details for {game.name}"
            else:
                detail_message = f"Loaded cached details for {game.name}"
            self._advance(job_id, app_id, "game_details", 20, detail_message)

            # STAGE 2: Reviews
            reviews = await self.review_provider.fetch_reviews(app_id, options)
            self.store.save_reviews(app_id, reviews)
            self._advance(job_id, app_id, "reviews", 60, f"Saved {len(reviews)} reviews")

            # STAGE 3: Summary
            summary = await self.summarizer.generate_summary(reviews, game)
            summary = self.store.save_summary(app_id, summary)

            self.store.set_processing_status(job_id, JobState.COMPLETED, 100)
            self._emit(job_id, app_id, "completed", 100, "Analysis complete")
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"Analysis job {job_id} for app {app_id} failed: {message}")
            try:
                self.store.set_processing_status(job_id, JobState.FAILED, error_message=message)
            except Exception as status_error:
                logger.error(f"Could not mark job {job_id} failed: {status_error}")
            self._emit(job_id, app_id, "failed", 0, message)
            raise

        logger.info(f"Job {job_id} complete: {len(reviews)} reviews -> sentiment {summary.overall_sentiment}")
        return AnalysisResult(game=game, summary=summary, review_count=len(reviews))

    async def run_many(
        self,
        app_ids: Iterable[int],
        options: Optional[ReviewFetchOptions] = None,
    ) -> Dict[int, Union[AnalysisResult, BaseException]]:
        """Run independent jobs concurrently; failures are returned per game, not raised."""
        app_ids = list(dict.fromkeys(app_ids))
        jobs = {app_id: self.store.add_to_processing_queue(app_id).job_id for app_id in app_ids}
        outcomes = await asyncio.gather(
            *(self.run_analysis(app_id, options, job_id=jobs[app_id]) for app_id in app_ids),
            return_exceptions=True,
        )
        return dict(zip(app_ids, outcomes))

    def get_processing_status(self, app_id: int) -> Optional[ProcessingStatus]:
        return self.store.get_processing_status(app_id)


def create_pipeline(
    provider_config: ProviderConfig,
    storage_type: StorageType = StorageType.SQLITE,
    storage_config: Optional[dict] = None,
    credentials: Optional[CredentialProvider] = None,
    events: Optional[ProgressChannel] = None,
) -> AnalysisPipeline:
    return AnalysisPipeline(
        store=get_storage(storage_type, config=storage_config),
        review_provider=SteamReviewProvider(),
        summarizer=SummarizationClient(provider_config, credentials),
        events=events,
    )
