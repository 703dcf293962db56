"""Video store with full-text relevance search.

Videos (metadata plus full transcript) are kept in a relational database via
SQLAlchemy. Keyword candidates are ranked with a TF-IDF model over the stored
transcripts, which stands in for a document database's text index: English
stop words are ignored, and only videos sharing at least one indexed term
with the keyword score above zero.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING

from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity
from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    func,
    select,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from transcript_qa.tools.rag.config import get_rag_config
from transcript_qa.tools.rag.errors import PersistenceError
from transcript_qa.tools.rag.models import VideoRecord

if TYPE_CHECKING:
    from collections.abc import Iterable

    from transcript_qa.tools.rag.config import RAGConfig
    from transcript_qa.tools.rag.models import VideoInput

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class VideoRow(Base):
    __tablename__ = "videos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    video_id: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(500))
    publication_date: Mapped[date] = mapped_column(Date)
    video_url: Mapped[str] = mapped_column(String(2048))
    category: Mapped[str] = mapped_column(String(200), index=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    transcript: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_record(self) -> VideoRecord:
        return VideoRecord(
            video_id=self.video_id,
            title=self.title,
            publication_date=self.publication_date,
            video_url=self.video_url,
            category=self.category,
            tags=list(self.tags or []),
            transcript=self.transcript,
        )


def create_db_engine(database_url: str) -> Engine:
    """Create a SQLAlchemy engine, preparing SQLite files and pools.

    In-memory SQLite databases share one connection across threads so that
    worker threads see the same data as the caller.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url)

    if url.database and url.database != ":memory:":
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


class VideoStore:
    """Persistence and full-text search for videos.

    Attributes:
        engine: SQLAlchemy engine bound to the video database.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        Base.metadata.create_all(engine)

    def add_video(self, video: VideoInput) -> VideoRecord:
        """Insert a video and return the stored record.

        Raises:
            PersistenceError: If the database rejects the insert.
        """
        row = VideoRow(
            video_id=uuid.uuid4().hex,
            title=video.title,
            publication_date=video.publication_date,
            video_url=video.video_url,
            category=video.category,
            tags=list(video.tags),
            transcript=video.transcript,
        )
        try:
            with self._session_factory() as session, session.begin():
                session.add(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save video {video.title!r}: {e}") from e

        logger.info(f"Saved video {row.video_id} ({video.title!r})")
        return row.to_record()

    def get_video(self, video_id: str) -> VideoRecord | None:
        with self._session_factory() as session:
            row = session.scalar(select(VideoRow).where(VideoRow.video_id == video_id))
            return row.to_record() if row else None

    def get_videos(self, video_ids: Iterable[str]) -> dict[str, VideoRecord]:
        """Look up several videos at once, keyed by video_id.

        Unknown ids are simply absent from the result.
        """
        ids = list(dict.fromkeys(video_ids))
        if not ids:
            return {}
        with self._session_factory() as session:
            rows = session.scalars(select(VideoRow).where(VideoRow.video_id.in_(ids)))
            return {row.video_id: row.to_record() for row in rows}

    def list_videos(self, category: str | None = None) -> list[VideoRecord]:
        """List videos in insertion order, optionally for one category."""
        with self._session_factory() as session:
            return [row.to_record() for row in self._rows(session, category)]

    def count(self) -> int:
        with self._session_factory() as session:
            return session.scalar(select(func.count()).select_from(VideoRow)) or 0

    def full_text_search(
        self,
        keyword: str,
        category: str | None = None,
    ) -> list[tuple[VideoRecord, float]]:
        """Rank videos whose transcript is relevant to the keyword.

        Args:
            keyword: Free-text keyword or phrase.
            category: Optional category filter (case-insensitive).

        Returns:
            (video, score) pairs with score > 0, best first. Ties keep
            insertion order.
        """
        with self._session_factory() as session:
            rows = list(self._rows(session, None))
        if not rows or not keyword.strip():
            return []

        vectorizer = TfidfVectorizer(stop_words="english")
        try:
            tfidf_matrix = vectorizer.fit_transform([row.transcript for row in rows])
        except ValueError:
            # Every transcript reduced to stop words; nothing is indexable.
            logger.warning("Full-text index is empty after stop-word removal")
            return []

        query_vec = vectorizer.transform([keyword])
        similarities = cosine_similarity(query_vec, tfidf_matrix).flatten()

        wanted_category = category.strip().lower() if category else None
        scored = [
            (row.to_record(), float(score))
            for row, score in zip(rows, similarities)
            if score > 0
            and (wanted_category is None or row.category.lower() == wanted_category)
        ]
        scored.sort(key=lambda pair: pair[1], reverse=True)

        logger.debug(f"Full-text search for {keyword!r} matched {len(scored)} videos")
        return scored

    @staticmethod
    def _rows(session: Session, category: str | None) -> Iterable[VideoRow]:
        stmt = select(VideoRow).order_by(VideoRow.id)
        if category:
            stmt = stmt.where(VideoRow.category == category)
        return session.scalars(stmt)


def create_video_store(config: RAGConfig) -> VideoStore:
    """Create a VideoStore for the configured database URL."""
    return VideoStore(create_db_engine(config.database_url))


@lru_cache
def get_video_store() -> VideoStore:
    """Get the cached VideoStore built from the global configuration."""
    return create_video_store(get_rag_config())
