from datetime import datetime
from enum import Enum
from typing import List, Optional, Any, Dict
from pydantic import BaseModel, Field


class Game(BaseModel):
    app_id: int
    name: str
    developer: str = "Unknown"
    publisher: str = "Unknown"
    release_date: str = "Unknown"
    price: str = "Price not available"
    description: str = "No description available"
    header_image: Optional[str] = None
    genres: List[Dict[str, Any]] = Field(default_factory=list)
    categories: List[Dict[str, Any]] = Field(default_factory=list)


class GameSearchResult(BaseModel):
    app_id: int
    name: str
    price: str
    header_image: Optional[str] = None
    developer: str = "Click to view details"
    release_date: str = "Click to view details"


class RecentGame(Game):
    overall_sentiment: Optional[float] = None
    review_count: Optional[int] = None
    last_analyzed: Optional[datetime] = None


class Review(BaseModel):
    app_id: int
    recommendationid: str
    author_steamid: Optional[str] = None
    playtime_forever: int = 0
    playtime_last_two_weeks: int = 0
    playtime_at_review: Optional[int] = None
    last_played: Optional[int] = None
    language: str = "english"
    review: str = ""
    timestamp_created: int = 0
    timestamp_updated: Optional[int] = None
    voted_up: bool = False
    votes_up: int = 0
    votes_funny: int = 0
    weighted_vote_score: float = 0.0
    comment_count: int = 0
    steam_purchase: bool = False
    received_for_free: bool = False
    written_during_early_access: bool = False

    model_config = {
        "extra": "ignore"
    }


class ReviewType(str, Enum):
    ALL = "all"
    POSITIVE = "positive"
    NEGATIVE = "negative"


class ReviewFetchOptions(BaseModel):
    max_reviews: int = Field(default=1000, ge=1)
    language: str = "english"
    review_type: ReviewType = ReviewType.ALL


class SentimentBreakdown(BaseModel):
    positive: int
    mixed: int
    negative: int


class Theme(BaseModel):
    theme: str
    mentions: int = 0
    sentiment: float = 5.0


class Summary(BaseModel):
    app_id: Optional[int] = None
    overall_sentiment: float
    sentiment_breakdown: SentimentBreakdown
    positive_aspects: List[str] = Field(default_factory=list)
    negative_aspects: List[str] = Field(default_factory=list)
    common_themes: List[Theme] = Field(default_factory=list)
    review_count: int
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    is_fallback: bool = False
    notice: Optional[str] = None


class JobState(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingStatus(BaseModel):
    job_id: int
    app_id: int
    status: JobState = JobState.QUEUED
    progress: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    game_name: Optional[str] = None


class ProgressEvent(BaseModel):
    job_id: int
    app_id: int
    step: str
    percent: int
    message: str


class AnalysisResult(BaseModel):
    game: Game
    summary: Summary
    review_count: int


class ConnectionTestResult(BaseModel):
    success: bool
    message: str
