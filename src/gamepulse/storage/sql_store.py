from typing import List, Optional
from datetime import datetime

from sqlalchemy import create_engine, delete, func, and_, update
from sqlalchemy.orm import sessionmaker
from sqlalchemy.dialects import postgresql, sqlite

from gamepulse import config
from gamepulse.logging import get_logger
from gamepulse.storage.storage import RecordStore
from gamepulse.data_models import (
    Game,
    JobState,
    ProcessingStatus,
    RecentGame,
    Review,
    Summary,
)
from . import models

logger = get_logger(__name__)

GAME_FIELDS = (
    "name", "developer", "publisher", "release_date", "price",
    "description", "header_image", "genres", "categories",
)


class SqlStore(RecordStore):
    def __init__(self, connection_string: str = config.DATABASE_URL, batch_size: int = 100, **kwargs):
        self.engine = create_engine(connection_string)
        self.Session = sessionmaker(bind=self.engine)
        self.batch_size = batch_size

        models.Base.metadata.create_all(self.engine)

    def _insert(self, table):
        if self.engine.dialect.name == "postgresql":
            return postgresql.insert(table)
        if self.engine.dialect.name == "sqlite":
            return sqlite.insert(table)
        raise ValueError(f"Upserts are not supported on {self.engine.dialect.name}")

    # Games

    def save_game(self, game: Game):
        session = self.Session()
        try:
            data = game.model_dump(include=set(GAME_FIELDS) | {"app_id"})
            now = datetime.utcnow()
            stmt = self._insert(models.Game).values(**data, created_at=now, updated_at=now)
            stmt = stmt.on_conflict_do_update(
                index_elements=[models.Game.app_id],
                set_={**{f: stmt.excluded[f] for f in GAME_FIELDS}, "updated_at": stmt.excluded.updated_at},
            )
            session.execute(stmt)
            session.commit()
            logger.info(f"Saved game {game.app_id} ({game.name})")
        except Exception as e:
            logger.error(f"Error saving game {game.app_id}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def get_game(self, app_id: int) -> Optional[Game]:
        session = self.Session()
        try:
            row = session.get(models.Game, app_id)
            return self._to_game(row) if row else None
        finally:
            session.close()

    @staticmethod
    def _to_game(row: models.Game) -> Game:
        return Game(
            app_id=row.app_id,
            **{f: getattr(row, f) for f in GAME_FIELDS if getattr(row, f) is not None},
        )

    # Reviews

    def save_reviews(self, app_id: int, reviews: List[Review]):
        if not reviews:
            return

        session = self.Session()
        try:
            now = datetime.utcnow()
            values = []
            for r in reviews:
                data = r.model_dump()
                data["app_id"] = app_id
                values.append({
                    "app_id": app_id,
                    "recommendationid": r.recommendationid,
                    "author_steamid": r.author_steamid,
                    "language": r.language,
                    "review_text": r.review,
                    "timestamp_created": r.timestamp_created,
                    "voted_up": r.voted_up,
                    "raw_data": data,
                    "ingestion_time": now,
                })

            # One transaction for the whole batch, committed once at the end
            for i in range(0, len(values), self.batch_size):
                batch = values[i : i + self.batch_size]
                stmt = self._insert(models.Review).values(batch)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[models.Review.app_id, models.Review.recommendationid],
                    set_={
                        "author_steamid": stmt.excluded.author_steamid,
                        "language": stmt.excluded.language,
                        "review_text": stmt.excluded.review_text,
                        "timestamp_created": stmt.excluded.timestamp_created,
                        "voted_up": stmt.excluded.voted_up,
                        "raw_data": stmt.excluded.raw_data,
                        "ingestion_time": stmt.excluded.ingestion_time,
                    }
                )
                session.execute(stmt)

            session.commit()
            logger.info(f"Saved/Upserted {len(values)} reviews for app {app_id}")
        except Exception as e:
            logger.error(f"Error saving reviews for app {app_id}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def get_reviews(self, app_id: int, limit: Optional[int] = None) -> List[Review]:
        session = self.Session()
        try:
            query = (
                session.query(models.Review)
                .filter(models.Review.app_id == app_id)
                .order_by(models.Review.timestamp_created.desc(), models.Review.id.desc())
            )
            if limit:
                query = query.limit(limit)

            return [Review(**(r.raw_data or {})) for r in query.all()]
        finally:
            session.close()

    # Summaries

    def save_summary(self, app_id: int, summary: Summary) -> Summary:
        session = self.Session()
        try:
            row = models.Summary(
                app_id=app_id,
                overall_sentiment=summary.overall_sentiment,
                sentiment_breakdown=summary.sentiment_breakdown.model_dump(),
                positive_aspects=list(summary.positive_aspects),
                negative_aspects=list(summary.negative_aspects),
                common_themes=[t.model_dump() for t in summary.common_themes],
                review_count=summary.review_count,
                is_fallback=summary.is_fallback,
                notice=summary.notice,
                generated_at=summary.generated_at,
            )
            session.add(row)
            session.commit()
            logger.info(f"Saved summary for app {app_id} ({summary.review_count} reviews)")
            return summary.model_copy(update={"app_id": app_id})
        except Exception as e:
            logger.error(f"Error saving summary for app {app_id}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def get_summary(self, app_id: int) -> Optional[Summary]:
        session = self.Session()
        try:
            row = (
                session.query(models.Summary)
                .filter(models.Summary.app_id == app_id)
                .order_by(models.Summary.generated_at.desc(), models.Summary.id.desc())
                .first()
            )
            return self._to_summary(row) if row else None
        finally:
            session.close()

    @staticmethod
    def _to_summary(row: models.Summary) -> Summary:
        return Summary(
            app_id=row.app_id,
            overall_sentiment=row.overall_sentiment,
            sentiment_breakdown=row.sentiment_breakdown,
            positive_aspects=row.positive_aspects or [],
            negative_aspects=row.negative_aspects or [],
            common_themes=row.common_themes or [],
            review_count=row.review_count,
            generated_at=row.generated_at,
            is_fallback=bool(row.is_fallback),
            notice=row.notice,
        )

    def get_recent_analyzed(self, limit: int = 10) -> List[RecentGame]:
        session = self.Session()
        try:
            latest = (
                session.query(
                    models.Summary.app_id.label("app_id"),
                    func.max(models.Summary.generated_at).label("last_analyzed"),
                )
                .group_by(models.Summary.app_id)
                .subquery()
            )
            rows = (
                session.query(models.Game, models.Summary)
                .join(latest, models.Game.app_id == latest.c.app_id)
                .join(models.Summary, and_(
                    models.Summary.app_id == latest.c.app_id,
                    models.Summary.generated_at == latest.c.last_analyzed,
                ))
                .order_by(latest.c.last_analyzed.desc(), models.Summary.id.desc())
                .all()
            )

            results = []
            seen = set()
            for game, summary in rows:
                if game.app_id in seen:
                    continue
                seen.add(game.app_id)
                results.append(RecentGame(
                    **self._to_game(game).model_dump(),
                    overall_sentiment=summary.overall_sentiment,
                    review_count=summary.review_count,
                    last_analyzed=summary.generated_at,
                ))
                if len(results) >= limit:
                    break
            return results
        finally:
            session.close()

    def clear_cache(self):
        session = self.Session()
        try:
            session.execute(delete(models.Summary))
            session.execute(delete(models.Review))
            session.execute(delete(models.ProcessingJob))
            session.commit()
            logger.info("Cache cleared successfully")
        except Exception as e:
            logger.error(f"Error clearing cache: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    # Processing queue

    def add_to_processing_queue(self, app_id: int) -> ProcessingStatus:
        session = self.Session()
        try:
            row = models.ProcessingJob(
                app_id=app_id,
                status=JobState.QUEUED.value,
                progress=0,
                created_at=datetime.utcnow(),
            )
            session.add(row)
            session.commit()
            logger.info(f"Queued job {row.id} for app {app_id}")
            return self._to_status(row)
        except Exception as e:
            logger.error(f"Error queueing app {app_id}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def set_processing_status(
        self,
        job_id: int,
        status: JobState,
        progress: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        status = JobState(status)
        now = datetime.utcnow()
        values = {"status": status.value}
        if progress is not None:
            values["progress"] = progress
        if status == JobState.PROCESSING:
            values["started_at"] = func.coalesce(models.ProcessingJob.started_at, now)
        elif status in (JobState.COMPLETED, JobState.FAILED):
            values["completed_at"] = now
        if error_message:
            values["error_message"] = error_message

        session = self.Session()
        try:
            # A completed job is final; stale progress updates must not revive it
            result = session.execute(
                update(models.ProcessingJob)
                .where(
                    models.ProcessingJob.id == job_id,
                    models.ProcessingJob.status != JobState.COMPLETED.value,
                )
                .values(**values)
            )
            session.commit()
            applied = result.rowcount > 0
            if not applied:
                logger.debug(f"Ignored status update {status.value} for job {job_id}")
            return applied
        except Exception as e:
            logger.error(f"Error updating job {job_id}: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def get_processing_status(self, app_id: int) -> Optional[ProcessingStatus]:
        session = self.Session()
        try:
            row = (
                session.query(models.ProcessingJob)
                .filter(models.ProcessingJob.app_id == app_id)
                .order_by(models.ProcessingJob.created_at.desc(), models.ProcessingJob.id.desc())
                .first()
            )
            return self._to_status(row) if row else None
        finally:
            session.close()

    def get_processing_queue(self) -> List[ProcessingStatus]:
        session = self.Session()
        try:
            rows = (
                session.query(models.ProcessingJob, models.Game.name)
                .outerjoin(models.Game, models.ProcessingJob.app_id == models.Game.app_id)
                .filter(models.ProcessingJob.status != JobState.COMPLETED.value)
                .order_by(models.ProcessingJob.created_at.asc(), models.ProcessingJob.id.asc())
                .all()
            )
            return [self._to_status(job, game_name=name) for job, name in rows]
        finally:
            session.close()

    @staticmethod
    def _to_status(row: models.ProcessingJob, game_name: Optional[str] = None) -> ProcessingStatus:
        return ProcessingStatus(
            job_id=row.id,
            app_id=row.app_id,
            status=JobState(row.status),
            progress=row.progress or 0,
            started_at=row.started_at,
            completed_at=row.completed_at,
            error_message=row.error_message,
            created_at=row.created_at,
            game_name=game_name,
        )
