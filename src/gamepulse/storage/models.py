from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Boolean, Text, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

from datetime import datetime

class Game(Base):
    __tablename__ = "games"

    app_id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String, nullable=False)
    developer = Column(String)
    publisher = Column(String)
    release_date = Column(String)
    price = Column(String)
    description = Column(Text)
    header_image = Column(String)
    genres = Column(JSON, default=list)
    categories = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reviews = relationship("Review", back_populates="game")
    summaries = relationship("Summary", back_populates="game")

class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("app_id", "recommendationid", name="uq_reviews_app_recommendation"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    app_id = Column(Integer, ForeignKey("games.app_id"), index=True, nullable=False)
    recommendationid = Column(String, nullable=False)

    author_steamid = Column(String)
    language = Column(String)
    review_text = Column(Text)
    timestamp_created = Column(Integer, index=True)
    voted_up = Column(Boolean)

    # Store the full review so every field survives the round trip
    raw_data = Column(JSON)
    ingestion_time = Column(DateTime, default=datetime.utcnow)

    game = relationship("Game", back_populates="reviews")

class Summary(Base):
    __tablename__ = "summaries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    app_id = Column(Integer, ForeignKey("games.app_id"), index=True, nullable=False)
    overall_sentiment = Column(Float)
    sentiment_breakdown = Column(JSON)
    positive_aspects = Column(JSON)
    negative_aspects = Column(JSON)
    common_themes = Column(JSON)
    review_count = Column(Integer)
    is_fallback = Column(Boolean, default=False)
    notice = Column(String)
    generated_at = Column(DateTime, default=datetime.utcnow, index=True)

    game = relationship("Game", back_populates="summaries")

class ProcessingJob(Base):
    __tablename__ = "processing_queue"

    # No foreign key: a job is queued before its game metadata is cached
    id = Column(Integer, primary_key=True, autoincrement=True)
    app_id = Column(Integer, index=True, nullable=False)
    status = Column(String, default="queued", nullable=False)
    progress = Column(Integer, default=0)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    error_message = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
