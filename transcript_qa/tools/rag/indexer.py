"""Ingest pipeline: store a video, chunk its transcript and index the chunks.

A video is saved first and is kept even if some of its chunks fail to
embed or persist; those failures are counted in the IngestResult. Chunk
embeddings run concurrently up to a configured limit while chunks are
persisted one by one in transcript order.

Example:
    >>> from transcript_qa.tools.rag.tools import get_indexer
    >>> indexer = get_indexer()
    >>> result = await indexer.ingest({
    ...     "title": "Order blocks explained",
    ...     "publicationDate": "2024-03-01",
    ...     "videoUrl": "https://youtu.be/abc123",
    ...     "category": "education",
    ...     "tags": "trading, ICT",
    ...     "transcript": "00:00:05 intro text. 00:01:10 detail about order blocks.",
    ... })
    >>> result.chunks_created
    1
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from transcript_qa.tools.rag.chunker import TranscriptChunker
from transcript_qa.tools.rag.embeddings import EmbeddingClient, EmbeddingMode
from transcript_qa.tools.rag.errors import PersistenceError, ValidationError
from transcript_qa.tools.rag.models import ChunkRecord, IngestResult, VideoInput

if TYPE_CHECKING:
    from langchain_core.documents import Document

    from transcript_qa.tools.rag.config import RAGConfig
    from transcript_qa.tools.rag.documents import VideoStore
    from transcript_qa.tools.rag.models import VideoRecord
    from transcript_qa.tools.rag.store import ChunkIndex

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "title": ("title",),
    "publicationDate": ("publicationDate", "publication_date"),
    "videoUrl": ("videoUrl", "video_url"),
    "category": ("category",),
    "transcript": ("transcript",),
}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_video_payload(payload: Mapping[str, Any] | VideoInput) -> VideoInput:
    """Check required fields and build a VideoInput.

    Raises:
        ValidationError: Naming every missing field, or describing the first
            malformed one.
    """
    if isinstance(payload, VideoInput):
        return payload

    missing = [
        name
        for name, keys in REQUIRED_FIELDS.items()
        if all(_is_blank(payload.get(key)) for key in keys)
    ]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            missing_fields=missing,
        )

    try:
        return VideoInput.model_validate(dict(payload))
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid value for {location}: {first['msg']}") from e


class TranscriptIndexer:
    """Stores videos and indexes their transcript chunks.

    Attributes:
        video_store: Relational store for video records.
        chunk_index: Vector index for chunk embeddings.
        chunker: Sliding-window chunker.
        embedding_client: Client producing DOCUMENT embeddings.
        concurrency: Maximum embeddings in flight per video.
        embedding_timeout: Seconds allowed for one chunk embedding.
    """

    def __init__(
        self,
        video_store: VideoStore,
        chunk_index: ChunkIndex,
        chunker: TranscriptChunker,
        embedding_client: EmbeddingClient,
        concurrency: int = 4,
        embedding_timeout: float = 30.0,
    ) -> None:
        self.video_store = video_store
        self.chunk_index = chunk_index
        self.chunker = chunker
        self.embedding_client = embedding_client
        self.concurrency = concurrency
        self.embedding_timeout = embedding_timeout

    @classmethod
    def from_config(
        cls,
        config: RAGConfig,
        video_store: VideoStore,
        chunk_index: ChunkIndex,
        embedding_client: EmbeddingClient,
    ) -> TranscriptIndexer:
        return cls(
            video_store=video_store,
            chunk_index=chunk_index,
            chunker=TranscriptChunker(config),
            embedding_client=embedding_client,
            concurrency=config.ingest_embedding_concurrency,
            embedding_timeout=config.embedding_timeout_seconds,
        )

    async def ingest(self, payload: Mapping[str, Any] | VideoInput) -> IngestResult:
        """Validate, store and index one video.

        Args:
            payload: Video fields. Keys may be camelCase or snake_case; tags
                may be a list or a comma-separated string.

        Returns:
            IngestResult with chunk and failure counts.

        Raises:
            ValidationError: If a required field is missing or malformed.
                Nothing is stored in that case.
            PersistenceError: If the video record itself cannot be saved.
        """
        video = validate_video_payload(payload)
        record = self.video_store.add_video(video)
        logger.info(f"Video saved: {record.video_id}. Starting chunking and embedding...")
        return await self.index_video(record)

    async def index_video(self, video: VideoRecord) -> IngestResult:
        """Chunk, embed and persist the transcript of a stored video."""
        result = IngestResult(video_id=video.video_id)
        documents = self.chunker.chunk(video.transcript)
        if not documents:
            logger.info(f"Video {video.video_id} has no transcript text to index")
            return result

        semaphore = asyncio.Semaphore(self.concurrency)
        embeddings = await asyncio.gather(
            *(self._embed_chunk(semaphore, doc) for doc in documents)
        )

        for doc, embedding in zip(documents, embeddings):
            chunk_index = doc.metadata["chunk_index"]
            if embedding is None:
                result.embedding_failures += 1
                result.errors.append(f"chunk {chunk_index}: embedding failed")
                logger.warning(
                    f"Failed to generate embedding for chunk {chunk_index} of video "
                    f"{video.video_id}. Text: {doc.page_content[:100]}..."
                )
                continue

            chunk = ChunkRecord(
                chunk_id=f"{video.video_id}-{chunk_index}",
                parent_video_id=video.video_id,
                video_title=video.title,
                text=doc.page_content,
                chunk_index=chunk_index,
                embedding=embedding,
            )
            try:
                self.chunk_index.add_chunk(chunk)
            except PersistenceError as e:
                result.persistence_failures += 1
                result.errors.append(f"chunk {chunk_index}: {e.message}")
                logger.error(f"Error saving chunk {chunk_index} for video {video.video_id}: {e}")
                continue
            result.chunks_created += 1

        logger.info(
            f"Finished chunking for video {video.video_id}. {result.chunks_created} chunks "
            f"created, {result.embedding_failures} embedding generations failed, "
            f"{result.persistence_failures} chunk saves failed."
        )
        return result

    async def _embed_chunk(
        self,
        semaphore: asyncio.Semaphore,
        doc: Document,
    ) -> list[float] | None:
        async with semaphore:
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(
                        self.embedding_client.embed,
                        doc.page_content,
                        EmbeddingMode.DOCUMENT,
                    ),
                    timeout=self.embedding_timeout,
                )
            except asyncio.TimeoutError:
                logger.error(
                    f"Embedding chunk {doc.metadata['chunk_index']} timed out "
                    f"after {self.embedding_timeout:g}s"
                )
                return None

    async def backfill(self) -> list[IngestResult]:
        """Index stored videos that have no chunks yet.

        Videos with an empty transcript or with existing chunks are skipped.

        Returns:
            One IngestResult per video that was processed.
        """
        results = []
        videos = self.video_store.list_videos()
        logger.info(f"Backfill: checking {len(videos)} videos for missing chunks")
        for video in videos:
            if not video.transcript.strip():
                logger.debug(f"Backfill: skipping {video.video_id} (empty transcript)")
                continue
            existing = self.chunk_index.count_chunks(video.video_id)
            if existing:
                logger.debug(f"Backfill: skipping {video.video_id} ({existing} chunks)")
                continue
            results.append(await self.index_video(video))

        logger.info(f"Backfill complete: {len(results)} videos indexed")
        return results
