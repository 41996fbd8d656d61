from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from gamepulse.config import ProviderConfig, load_provider_config
from gamepulse.data_models import (
    AnalysisResult,
    ConnectionTestResult,
    Game,
    GameSearchResult,
    ProcessingStatus,
    RecentGame,
    Review,
    ReviewFetchOptions,
    Summary,
)
from gamepulse.errors import ErrorKind, GamePulseError
from gamepulse.logging import get_logger
from gamepulse.pipeline import AnalysisPipeline, create_pipeline
from gamepulse.summarization import SummarizationClient, get_providers

logger = get_logger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.TIMEOUT: 504,
}


def create_app(pipeline: Optional[AnalysisPipeline] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = pipeline is None
        app.state.pipeline = pipeline or create_pipeline(load_provider_config())
        yield
        if owned:
            await app.state.pipeline.aclose()

    app = FastAPI(title="gamepulse API", description="API for Steam Review Analysis", lifespan=lifespan)

    @app.exception_handler(GamePulseError)
    async def gamepulse_error_handler(request: Request, exc: GamePulseError):
        return JSONResponse(
            status_code=STATUS_BY_KIND.get(exc.kind, 502),
            content={"detail": exc.message, "kind": exc.kind.value},
        )

    _register_routes(app)
    return app


def get_pipeline(request: Request) -> AnalysisPipeline:
    return request.app.state.pipeline


def _register_routes(app: FastAPI):
    @app.get("/")
    async def root():
        return {"message": "gamepulse is running"}

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    @app.get("/games/search", response_model=List[GameSearchResult])
    async def search_games(
        q: str = Query(..., min_length=1),
        limit: int = Query(20, ge=1, le=50),
        pipeline: AnalysisPipeline = Depends(get_pipeline),
    ):
        return await pipeline.review_provider.search_games(q, limit)

    @app.get("/games/recent", response_model=List[RecentGame])
    async def recent_games(limit: int = Query(10, ge=1, le=100), pipeline: AnalysisPipeline = Depends(get_pipeline)):
        return pipeline.store.get_recent_analyzed(limit)

    @app.get("/games/{app_id}", response_model=Game)
    async def game_details(app_id: int, pipeline: AnalysisPipeline = Depends(get_pipeline)):
        game = pipeline.store.get_game(app_id)
        if game is None:
            game = await pipeline.review_provider.get_game_details(app_id)
            pipeline.store.save_game(game)
        return game

    @app.get("/games/{app_id}/reviews", response_model=List[Review])
    async def game_reviews(
        app_id: int,
        limit: Optional[int] = Query(None, ge=1),
        pipeline: AnalysisPipeline = Depends(get_pipeline),
    ):
        return pipeline.store.get_reviews(app_id, limit)

    @app.get("/games/{app_id}/summary", response_model=Summary)
    async def game_summary(app_id: int, pipeline: AnalysisPipeline = Depends(get_pipeline)):
        summary = pipeline.store.get_summary(app_id)
        if summary is None:
            raise HTTPException(status_code=404, detail=f"No summary for app {app_id}")
        return summary

    @app.post("/games/{app_id}/analysis", response_model=AnalysisResult)
    async def run_analysis(
        app_id: int,
        options: Optional[ReviewFetchOptions] = None,
        pipeline: AnalysisPipeline = Depends(get_pipeline),
    ):
        return await pipeline.run_analysis(app_id, options)

    @app.get("/games/{app_id}/status", response_model=ProcessingStatus)
    async def processing_status(app_id: int, pipeline: AnalysisPipeline = Depends(get_pipeline)):
        status = pipeline.get_processing_status(app_id)
        if status is None:
            raise HTTPException(status_code=404, detail=f"No analysis job for app {app_id}")
        return status

    @app.get("/queue", response_model=List[ProcessingStatus])
    async def processing_queue(pipeline: AnalysisPipeline = Depends(get_pipeline)):
        return pipeline.store.get_processing_queue()

    @app.delete("/cache")
    async def clear_cache(pipeline: AnalysisPipeline = Depends(get_pipeline)):
        pipeline.store.clear_cache()
        return {"success": True}

    @app.get("/llm/providers")
    async def llm_providers():
        return get_providers()

    @app.get("/llm/models")
    async def llm_models(pipeline: AnalysisPipeline = Depends(get_pipeline)):
        return await pipeline.summarizer.list_models()

    @app.get("/llm/check")
    async def llm_check(pipeline: AnalysisPipeline = Depends(get_pipeline)):
        return {"connected": await pipeline.summarizer.check_connection()}

    @app.post("/llm/test-connection", response_model=ConnectionTestResult)
    async def llm_test_connection(provider_config: ProviderConfig, pipeline: AnalysisPipeline = Depends(get_pipeline)):
        return await SummarizationClient.test_connection(
            provider_config,
            credentials=pipeline.summarizer.credentials,
            http_client=pipeline.summarizer.http_client,
        )


app = create_app()
