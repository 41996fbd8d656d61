import asyncio
from typing import Optional
from prefect import flow, task
from prefect.cache_policies import NO_CACHE
from prefect.logging import get_run_logger

from gamepulse.config import load_provider_config
from gamepulse.data_models import ReviewFetchOptions, ReviewType
from gamepulse.pipeline import AnalysisPipeline, create_pipeline
from gamepulse.storage.types import StorageType


def build_pipeline(storage_type: StorageType, storage_config: Optional[dict]) -> AnalysisPipeline:
    return create_pipeline(load_provider_config(), storage_type=storage_type, storage_config=storage_config)


@task(log_prints=True, cache_policy=NO_CACHE)
def queue_jobs(pipeline: AnalysisPipeline, app_ids: list[int]) -> dict[int, int]:
    logger = get_run_logger()
    jobs = {app_id: pipeline.store.add_to_processing_queue(app_id).job_id for app_id in app_ids}
    logger.info(f"Queued {len(jobs)} analysis jobs")
    return jobs


@task(log_prints=True, cache_policy=NO_CACHE)
async def analyze_game(pipeline: AnalysisPipeline, app_id: int, options: ReviewFetchOptions, job_id: int) -> dict:
    logger = get_run_logger()
    result = await pipeline.run_analysis(app_id, options, job_id=job_id)
    logger.info(
        f"{result.game.name}: {result.review_count} reviews, "
        f"sentiment {result.summary.overall_sentiment}"
    )
    return {
        "app_id": app_id,
        "status": "completed",
        "name": result.game.name,
        "review_count": result.review_count,
        "overall_sentiment": result.summary.overall_sentiment,
        "is_fallback": result.summary.is_fallback,
    }


@flow(name="Steam Game Analysis")
async def analyze_games(
    app_ids: list[int],
    max_reviews: int = 1000,
    language: str = "english",
    review_type: ReviewType = ReviewType.ALL,
    storage_type: StorageType = StorageType.SQLITE,
    storage_config: Optional[dict] = None
) -> dict[int, dict]:
    logger = get_run_logger()
    app_ids = list(dict.fromkeys(app_ids))
    options = ReviewFetchOptions(max_reviews=max_reviews, language=language, review_type=review_type)

    pipeline = build_pipeline(storage_type, storage_config)
    try:
        jobs = queue_jobs(pipeline, app_ids)

        # Each game is an independent job; one failure does not stop the others
        outcomes = await asyncio.gather(
            *(analyze_game(pipeline, app_id, options, jobs[app_id]) for app_id in app_ids),
            return_exceptions=True,
        )
    finally:
        await pipeline.aclose()

    results = {}
    for app_id, outcome in zip(app_ids, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"Analysis failed for app {app_id}: {outcome}")
            results[app_id] = {"app_id": app_id, "status": "failed", "error": str(outcome)}
        else:
            results[app_id] = outcome

    completed = sum(1 for r in results.values() if r["status"] == "completed")
    logger.info(f"Analysis complete. {completed}/{len(results)} games summarized")
    return results


if __name__ == "__main__":
    # Dota 2 and Stardew Valley
    asyncio.run(analyze_games(app_ids=[570, 413150], max_reviews=100))
